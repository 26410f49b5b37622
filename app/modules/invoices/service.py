"""
Servicio de facturas

Emisión de comprobantes electrónicos: valida la entrada, numera y guarda la
factura como PENDING antes de cualquier llamada a la red, pide el ticket de
acceso, envía el comprobante a ARCA y registra el resultado.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, desc
from sqlalchemy.orm import Session, selectinload

from app.common.exceptions import (
    InvalidInvoiceInput, ResourceNotFound, AccessDenied, InvoiceSubmissionFailed
)
from app.common.timeutils import utcnow
from app.common.validators import only_digits
from app.core.config import settings
from app.modules.arca import dependencies as arca_dependencies
from app.modules.arca.auth import TokenAuthenticator
from app.modules.arca.gateway import ArcaGateway
from app.modules.arca.schemas import ArcaInvoiceItem, InvoiceRequest, Approved
from app.modules.clients.service import ClientService
from app.modules.invoices.calculator import calculate_item, calculate_totals
from app.modules.invoices.models import Invoice, InvoiceItem, InvoiceStatus
from app.modules.invoices.schemas import InvoiceCreate, InvoiceFilters, InvoiceStatistics
from app.modules.invoices.sequencer import InvoiceSequencer
from app.modules.points_of_sale.models import PointOfSale
from app.modules.points_of_sale.service import PointOfSaleService
from app.modules.reference.data import (
    CONCEPT_SERVICES, CONCEPT_MIXED, get_document_type_id,
    is_valid_invoice_type, is_valid_concept_type, is_valid_currency, is_valid_vat_rate
)

logger = logging.getLogger(__name__)

STALE_PENDING_ERROR = "submission timed out"


class InvoiceService:

    def __init__(
        self,
        db: Session,
        authenticator: Optional[TokenAuthenticator] = None,
        gateway: Optional[ArcaGateway] = None,
        sequencer: Optional[InvoiceSequencer] = None,
    ):
        self.db = db
        self.authenticator = authenticator or arca_dependencies.get_authenticator(db)
        self.gateway = gateway or arca_dependencies.get_gateway()
        self.sequencer = sequencer or InvoiceSequencer(db)

    def validate_invoice_data(self, data: InvoiceCreate) -> None:
        """Validar la factura antes de tocar la base; lanza InvalidInvoiceInput."""
        if not is_valid_invoice_type(data.invoice_type):
            raise InvalidInvoiceInput(f"Tipo de comprobante inválido: {data.invoice_type}")
        if not is_valid_concept_type(data.concept):
            raise InvalidInvoiceInput(f"Concepto inválido: {data.concept}")
        if not is_valid_currency(data.currency):
            raise InvalidInvoiceInput(f"Moneda inválida: {data.currency}")
        if data.exchange_rate is None or data.exchange_rate <= 0:
            raise InvalidInvoiceInput("El tipo de cambio debe ser mayor a cero")
        if not data.items:
            raise InvalidInvoiceInput("La factura debe tener al menos un ítem")

        for index, item in enumerate(data.items, start=1):
            if not item.description or not item.description.strip():
                raise InvalidInvoiceInput(f"Ítem {index}: la descripción es obligatoria")
            if item.quantity <= 0:
                raise InvalidInvoiceInput(f"Ítem {index}: la cantidad debe ser mayor a cero")
            if item.unit_price < 0:
                raise InvalidInvoiceInput(f"Ítem {index}: el precio unitario no puede ser negativo")
            if not is_valid_vat_rate(item.vat_rate):
                raise InvalidInvoiceInput(
                    f"Ítem {index}: alícuota de IVA no reconocida ({item.vat_rate}). "
                    "Valores válidos: 0, 2.5, 5, 10.5, 21, 27"
                )

    def _resolve_point_of_sale(self, user_id: UUID, point_of_sale_id: Optional[UUID]) -> PointOfSale:
        pos_service = PointOfSaleService(self.db)
        if point_of_sale_id is None:
            pos = pos_service.get_default_point_of_sale(user_id)
            if not pos:
                raise ResourceNotFound("No hay un punto de venta activo. Cree uno primero.")
            return pos

        pos = pos_service.get_point_of_sale(user_id, point_of_sale_id)
        if not pos.is_active:
            raise InvalidInvoiceInput(f"El punto de venta {pos.number} está inactivo")
        return pos

    def create_invoice(self, user_id: UUID, data: InvoiceCreate) -> Invoice:
        """
        Emitir una factura.

        Hasta que la factura queda guardada como PENDING, cualquier error se
        propaga sin dejar filas. Después, una falla de autenticación o de
        comunicación deja la factura en ERROR y se informa con
        InvoiceSubmissionFailed. Un rechazo de ARCA no es una excepción: la
        factura queda REJECTED con los errores en arca_response.
        """
        self.validate_invoice_data(data)
        client = ClientService(self.db).get_client(user_id, data.client_id)
        pos = self._resolve_point_of_sale(user_id, data.point_of_sale_id)

        issue_date = data.issue_date or date.today()
        totals = calculate_totals(data.items, data.exchange_rate)
        if totals.total_amount <= 0:
            raise InvalidInvoiceInput("El importe total del comprobante debe ser mayor a cero")
        extra_data = {"notes": data.notes} if data.notes else {}
        if data.associated_invoices:
            extra_data["associated_invoices"] = [a.model_dump() for a in data.associated_invoices]

        def build_invoice(number: int) -> Invoice:
            items = []
            for position, item in enumerate(data.items):
                amounts = calculate_item(item)
                items.append(InvoiceItem(
                    position=position,
                    description=item.description.strip(),
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    vat_rate=item.vat_rate,
                    vat_amount=amounts.vat_amount,
                    total_amount=amounts.total_amount,
                ))
            return Invoice(
                user_id=user_id,
                client_id=client.id,
                point_of_sale_id=pos.id,
                invoice_type=data.invoice_type,
                number=number,
                concept=data.concept,
                status=InvoiceStatus.PENDING,
                issue_date=issue_date,
                due_date=data.due_date,
                currency=data.currency,
                exchange_rate=data.exchange_rate,
                net_amount=totals.net_amount,
                vat_amount=totals.vat_amount,
                exempt_amount=totals.exempt_amount,
                tax_amount=Decimal("0"),
                total_amount=totals.total_amount,
                extra_data=extra_data or None,
                items=items,
            )

        invoice = self.sequencer.insert_with_next_number(pos.id, data.invoice_type, build_invoice)
        invoice_id = invoice.id
        logger.info(
            f"Invoice {invoice_id} saved as PENDING ({pos.number:04d}-{invoice.number:08d}, "
            f"type {data.invoice_type}) for user {user_id}"
        )

        try:
            request = self._build_request(invoice, client, pos, data)
            cuit = only_digits(client.tax_id)
            token = self.authenticator.get_token(user_id, cuit, pos.is_production)
            result = self.gateway.submit(token, cuit, request, pos.is_production)

            invoice.arca_response = result.model_dump(mode="json")
            if isinstance(result, Approved):
                invoice.status = InvoiceStatus.APPROVED
                invoice.cae = result.cae
                invoice.cae_expiration = result.cae_expiration
                logger.info(f"Invoice {invoice_id} approved with CAE {result.cae}")
            else:
                invoice.status = InvoiceStatus.REJECTED
                logger.warning(f"Invoice {invoice_id} rejected by ARCA: {invoice.arca_response['errors']}")
            self.db.commit()
        except Exception as e:
            reason = getattr(e, "detail", None) or str(e) or type(e).__name__
            self._mark_error(invoice_id, str(reason))
            raise InvoiceSubmissionFailed(invoice_id, str(reason)) from e

        return self.get_invoice(user_id, invoice_id)

    def _build_request(self, invoice: Invoice, client, pos: PointOfSale, data: InvoiceCreate) -> InvoiceRequest:
        is_service = invoice.concept in (CONCEPT_SERVICES, CONCEPT_MIXED)
        return InvoiceRequest(
            invoice_type=invoice.invoice_type,
            point_of_sale=pos.number,
            number=invoice.number,
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            concept=invoice.concept,
            client_document_type=get_document_type_id(client.tax_id_type),
            client_document_number=only_digits(client.tax_id),
            total_amount=invoice.total_amount,
            net_amount=invoice.net_amount,
            exempt_amount=invoice.exempt_amount,
            vat_amount=invoice.vat_amount,
            tax_amount=invoice.tax_amount,
            service_from=invoice.issue_date if is_service else None,
            service_to=invoice.issue_date if is_service else None,
            payment_due=(invoice.due_date or invoice.issue_date) if is_service else None,
            currency=invoice.currency,
            exchange_rate=invoice.exchange_rate,
            items=[
                ArcaInvoiceItem(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    vat_rate=item.vat_rate,
                    vat_amount=item.vat_amount,
                    total_amount=item.total_amount,
                )
                for item in invoice.items
            ],
            associated_invoices=data.associated_invoices,
        )

    def _mark_error(self, invoice_id: UUID, reason: str) -> None:
        self.db.rollback()
        invoice = self.db.get(Invoice, invoice_id)
        invoice.status = InvoiceStatus.ERROR
        invoice.extra_data = {**(invoice.extra_data or {}), "error": reason}
        self.db.commit()
        logger.error(f"Invoice {invoice_id} marked as ERROR: {reason}")

    def get_invoice(self, user_id: UUID, invoice_id: UUID) -> Invoice:
        invoice = self.db.query(Invoice).options(
            selectinload(Invoice.items),
            selectinload(Invoice.point_of_sale)
        ).filter(Invoice.id == invoice_id).populate_existing().first()
        if not invoice:
            raise ResourceNotFound("Factura no encontrada")
        if invoice.user_id != user_id:
            raise AccessDenied("La factura pertenece a otro usuario")
        return invoice

    def list_invoices(
        self,
        user_id: UUID,
        filters: Optional[InvoiceFilters] = None,
        page: int = 1,
        limit: int = None,
    ) -> Tuple[List[Invoice], int]:
        """Facturas del usuario, las de fecha de emisión más reciente primero."""
        filters = filters or InvoiceFilters()
        limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)

        query = self.db.query(Invoice).options(
            selectinload(Invoice.point_of_sale)
        ).filter(Invoice.user_id == user_id)

        if filters.client_id:
            query = query.filter(Invoice.client_id == filters.client_id)
        if filters.point_of_sale_id:
            query = query.filter(Invoice.point_of_sale_id == filters.point_of_sale_id)
        if filters.invoice_type:
            query = query.filter(Invoice.invoice_type == filters.invoice_type)
        if filters.status:
            query = query.filter(Invoice.status == filters.status)
        if filters.date_from:
            query = query.filter(Invoice.issue_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(Invoice.issue_date <= filters.date_to)
        if filters.min_amount is not None:
            query = query.filter(Invoice.total_amount >= filters.min_amount)
        if filters.max_amount is not None:
            query = query.filter(Invoice.total_amount <= filters.max_amount)

        total = query.count()
        invoices = query.order_by(
            desc(Invoice.issue_date), desc(Invoice.created_at)
        ).offset((page - 1) * limit).limit(limit).all()
        return invoices, total

    def get_statistics(self, user_id: UUID, date_from: Optional[date] = None,
                       date_to: Optional[date] = None) -> InvoiceStatistics:
        def scoped(query):
            query = query.filter(Invoice.user_id == user_id)
            if date_from:
                query = query.filter(Invoice.issue_date >= date_from)
            if date_to:
                query = query.filter(Invoice.issue_date <= date_to)
            return query

        counts = dict(
            scoped(self.db.query(Invoice.status, func.count(Invoice.id))).group_by(Invoice.status).all()
        )
        approved_amount = scoped(
            self.db.query(func.coalesce(func.sum(Invoice.total_amount), 0))
        ).filter(Invoice.status == InvoiceStatus.APPROVED).scalar()

        return InvoiceStatistics(
            total=sum(counts.values()),
            approved=counts.get(InvoiceStatus.APPROVED, 0),
            rejected=counts.get(InvoiceStatus.REJECTED, 0),
            pending=counts.get(InvoiceStatus.PENDING, 0),
            error=counts.get(InvoiceStatus.ERROR, 0),
            approved_amount=Decimal(str(approved_amount or 0)),
        )

    def expire_stale_pending(self, older_than_minutes: int = None) -> int:
        """Pasar a ERROR las facturas PENDING que nunca recibieron respuesta."""
        minutes = older_than_minutes or settings.PENDING_INVOICE_TIMEOUT_MINUTES
        cutoff = utcnow() - timedelta(minutes=minutes)
        stale = self.db.query(Invoice).filter(
            Invoice.status == InvoiceStatus.PENDING,
            Invoice.created_at < cutoff
        ).all()

        for invoice in stale:
            invoice.status = InvoiceStatus.ERROR
            invoice.extra_data = {**(invoice.extra_data or {}), "error": STALE_PENDING_ERROR}
            logger.warning(f"Invoice {invoice.id} stuck in PENDING since {invoice.created_at}, marked as ERROR")
        self.db.commit()
        return len(stale)

    def query_authority_status(self, user_id: UUID, invoice_id: UUID) -> Dict[str, Any]:
        """Consultar en ARCA el comprobante tal como quedó registrado allá."""
        invoice = self.get_invoice(user_id, invoice_id)
        pos = invoice.point_of_sale
        cuit = only_digits(invoice.client.tax_id)
        token = self.authenticator.get_token(user_id, cuit, pos.is_production)
        authority = self.gateway.query_invoice(
            token, cuit, pos.number, invoice.invoice_type, invoice.number, pos.is_production
        )
        return {
            "invoice_id": invoice.id,
            "status": invoice.status,
            "cae": invoice.cae,
            "authority": authority,
        }

    def get_last_authorized_number(self, user_id: UUID, point_of_sale_id: UUID,
                                   invoice_type: int, cuit: str) -> Dict[str, Any]:
        if not is_valid_invoice_type(invoice_type):
            raise InvalidInvoiceInput(f"Tipo de comprobante inválido: {invoice_type}")
        pos = PointOfSaleService(self.db).get_point_of_sale(user_id, point_of_sale_id)
        cuit = only_digits(cuit)
        token = self.authenticator.get_token(user_id, cuit, pos.is_production)
        last_number = self.gateway.get_last_invoice_number(
            token, cuit, pos.number, invoice_type, pos.is_production
        )
        return {
            "point_of_sale_id": pos.id,
            "point_of_sale_number": pos.number,
            "invoice_type": invoice_type,
            "cuit": cuit,
            "last_number": last_number,
        }
