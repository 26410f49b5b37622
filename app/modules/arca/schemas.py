"""
Tipos del canal con ARCA: ticket de acceso, solicitud de autorización y
resultado de la autorización.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from app.common.timeutils import utcnow, ensure_utc


class AuthToken(BaseModel):
    """Ticket de acceso de ARCA. Inmutable: token y sign viajan siempre juntos."""
    model_config = ConfigDict(frozen=True)

    token: str
    sign: str
    expires_at: datetime

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) < ensure_utc(self.expires_at)

    def seconds_left(self, now: Optional[datetime] = None) -> int:
        return int((ensure_utc(self.expires_at) - (now or utcnow())).total_seconds())


class ArcaInvoiceItem(BaseModel):
    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total_amount: Decimal


class ArcaTax(BaseModel):
    tax_type: int
    description: str
    taxable_base: Decimal
    rate: Decimal
    amount: Decimal


class AssociatedInvoice(BaseModel):
    type: int
    point_of_sale: int
    number: int


class InvoiceRequest(BaseModel):
    """Comprobante completo tal como se envía a ARCA para obtener el CAE."""
    invoice_type: int
    point_of_sale: int
    number: int
    issue_date: date
    due_date: Optional[date] = None
    concept: int
    client_document_type: int
    client_document_number: str
    total_amount: Decimal
    net_amount: Decimal
    exempt_amount: Decimal
    vat_amount: Decimal
    tax_amount: Decimal = Decimal("0")
    service_from: Optional[date] = None
    service_to: Optional[date] = None
    payment_due: Optional[date] = None
    currency: str = "ARS"
    exchange_rate: Decimal = Decimal("1")
    items: List[ArcaInvoiceItem] = Field(default_factory=list)
    taxes: List[ArcaTax] = Field(default_factory=list)
    associated_invoices: List[AssociatedInvoice] = Field(default_factory=list)


class ArcaMessage(BaseModel):
    code: int
    message: str


class Approved(BaseModel):
    status: Literal["approved"] = "approved"
    cae: str
    cae_expiration: date
    assigned_number: int
    observations: List[ArcaMessage] = Field(default_factory=list)


class Rejected(BaseModel):
    status: Literal["rejected"] = "rejected"
    errors: List[ArcaMessage] = Field(default_factory=list)
    observations: List[ArcaMessage] = Field(default_factory=list)


SubmissionResult = Union[Approved, Rejected]
