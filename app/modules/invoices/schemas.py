from pydantic import BaseModel, Field, AliasChoices
from decimal import Decimal
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import date, datetime

from app.modules.arca.schemas import AssociatedInvoice
from app.modules.invoices.models import InvoiceStatus


# Invoice Item Schemas
class InvoiceItemCreate(BaseModel):
    """Los rangos y la alícuota se validan en el servicio."""
    description: str = Field(..., max_length=500)
    quantity: Decimal
    unit_price: Decimal = Field(..., description="Precio unitario sin IVA")
    vat_rate: Decimal = Field(..., description="Alícuota de IVA en porcentaje: 0, 2.5, 5, 10.5, 21 o 27")


class InvoiceItemOut(BaseModel):
    id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    vat_rate: Decimal
    vat_amount: Decimal
    total_amount: Decimal

    class Config:
        from_attributes = True


# Invoice Schemas
class InvoiceCreate(BaseModel):
    client_id: UUID
    point_of_sale_id: Optional[UUID] = Field(None, description="Si se omite se usa el punto de venta por defecto")
    invoice_type: int = Field(..., description="Código ARCA del comprobante (1 = Factura A, 6 = Factura B, ...)")
    concept: int = Field(1, description="1 productos, 2 servicios, 3 productos y servicios")
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    currency: str = "ARS"
    exchange_rate: Decimal = Decimal("1")
    items: List[InvoiceItemCreate]
    notes: Optional[str] = None
    associated_invoices: List[AssociatedInvoice] = Field(default_factory=list)


class InvoiceOut(BaseModel):
    id: UUID
    client_id: UUID
    point_of_sale_id: UUID
    invoice_type: int
    number: int
    formatted_number: str
    concept: int
    status: InvoiceStatus
    issue_date: date
    due_date: Optional[date] = None
    currency: str
    exchange_rate: Decimal
    net_amount: Decimal
    vat_amount: Decimal
    exempt_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    cae: Optional[str] = None
    cae_expiration: Optional[date] = None
    arca_response: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("extra_data", "metadata"))
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceOut):
    items: List[InvoiceItemOut] = []


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    total: int
    page: int
    limit: int


class InvoiceFilters(BaseModel):
    client_id: Optional[UUID] = None
    point_of_sale_id: Optional[UUID] = None
    invoice_type: Optional[int] = None
    status: Optional[InvoiceStatus] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None


class InvoiceStatistics(BaseModel):
    total: int
    approved: int
    rejected: int
    pending: int
    error: int
    approved_amount: Decimal


class LastAuthorizedNumber(BaseModel):
    point_of_sale_id: UUID
    point_of_sale_number: int
    invoice_type: int
    cuit: str
    last_number: int
