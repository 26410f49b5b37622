"""
Tareas periódicas de certificados
"""
import logging
from app.core.celery import celery_app
from app.core.config import settings
from app.database.database import SessionLocal
from app.modules.certificates.service import CertificateService

logger = logging.getLogger(__name__)


@celery_app.task
def warn_expiring_certificates(days: int = None):
    """
    Registrar en el log los certificados activos que vencen pronto.
    """
    days = days or settings.CERTIFICATE_EXPIRY_WARNING_DAYS
    db = SessionLocal()
    try:
        expiring = CertificateService(db).get_expiring_certificates(days=days)
        for certificate in expiring:
            logger.warning(
                f"Certificate {certificate.id} for cuit {certificate.cuit} (user {certificate.user_id}) "
                f"expires at {certificate.expires_at}"
            )
        logger.info(f"Expiring certificates check completed: {len(expiring)} within {days} days")
        return {"status": "completed", "expiring": len(expiring)}
    finally:
        db.close()
