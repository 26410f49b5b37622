"""
Tareas periódicas de facturas
"""
import logging
from app.core.celery import celery_app
from app.database.database import SessionLocal
from app.modules.invoices.service import InvoiceService

logger = logging.getLogger(__name__)


@celery_app.task
def sweep_stale_pending_invoices(older_than_minutes: int = None):
    """Pasar a ERROR las facturas que quedaron en PENDING sin respuesta de ARCA."""
    db = SessionLocal()
    try:
        expired = InvoiceService(db).expire_stale_pending(older_than_minutes)
        logger.info(f"Stale pending invoice sweep completed: {expired} marked as ERROR")
        return {"status": "completed", "expired": expired}
    finally:
        db.close()
