"""
Numeración de comprobantes.

El número es max + 1 dentro de (punto de venta, tipo de comprobante). La
restricción única uq_invoice_pos_type_number garantiza que dos escritores
concurrentes no graben el mismo número: el que pierde recibe IntegrityError,
hace rollback, espera un intervalo aleatorio que crece con cada intento y
vuelve a leer. Los números de comprobantes rechazados o con
error quedan consumidos.
"""
import logging
import random
import time
from typing import Callable
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.common.exceptions import NumberingConflict
from app.core.config import settings
from app.modules.invoices.models import Invoice

logger = logging.getLogger(__name__)


class InvoiceSequencer:

    def __init__(self, db: Session, max_attempts: int = None, retry_delay: float = None):
        self.db = db
        self.max_attempts = max_attempts or settings.INVOICE_NUMBERING_MAX_ATTEMPTS
        if retry_delay is None:
            retry_delay = settings.INVOICE_NUMBERING_RETRY_DELAY_MS / 1000
        self.retry_delay = retry_delay

    def _backoff(self, attempt: int) -> None:
        if attempt < self.max_attempts and self.retry_delay > 0:
            time.sleep(random.uniform(0, self.retry_delay * attempt))

    def next_number(self, point_of_sale_id: UUID, invoice_type: int) -> int:
        current = self.db.query(func.max(Invoice.number)).filter(
            Invoice.point_of_sale_id == point_of_sale_id,
            Invoice.invoice_type == invoice_type
        ).scalar()
        return (current or 0) + 1

    def insert_with_next_number(self, point_of_sale_id: UUID, invoice_type: int,
                                build_invoice: Callable[[int], Invoice]) -> Invoice:
        """
        Asignar el próximo número y guardar el comprobante que arma
        `build_invoice(number)`. Reintenta ante colisiones de numeración.
        """
        for attempt in range(1, self.max_attempts + 1):
            number = self.next_number(point_of_sale_id, invoice_type)
            invoice = build_invoice(number)
            self.db.add(invoice)
            try:
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                logger.warning(
                    f"Invoice number {number} already taken for point of sale {point_of_sale_id}, "
                    f"type {invoice_type} (attempt {attempt}/{self.max_attempts}): {e.orig}"
                )
                self._backoff(attempt)
                continue
            logger.info(f"Invoice {invoice.id} numbered {number} for point of sale {point_of_sale_id}, type {invoice_type}")
            return invoice

        logger.error(
            f"Could not assign an invoice number for point of sale {point_of_sale_id}, type {invoice_type} "
            f"after {self.max_attempts} attempts"
        )
        raise NumberingConflict()
