from app.database.database import Base
from sqlalchemy import Column, Integer, String, Date, ForeignKey, UniqueConstraint, Numeric, Enum, JSON, Uuid, Index
from sqlalchemy.orm import relationship
from datetime import date
from app.common.mixins import BaseMixin, OwnedMixin
import enum


class InvoiceStatus(str, enum.Enum):
    PENDING = "PENDING"    # Numerada y guardada, esperando respuesta de ARCA
    APPROVED = "APPROVED"  # Con CAE
    REJECTED = "REJECTED"  # Rechazada por ARCA (resultado de negocio)
    ERROR = "ERROR"        # Falla de autenticación, red o protocolo


class Invoice(Base, BaseMixin, OwnedMixin):
    __tablename__ = "invoices"

    # References
    client_id = Column(Uuid(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    point_of_sale_id = Column(Uuid(as_uuid=True), ForeignKey("points_of_sale.id"), nullable=False)

    # Invoice data
    invoice_type = Column(Integer, nullable=False)  # código ARCA: 1 = Factura A, 6 = Factura B, ...
    number = Column(Integer, nullable=False)        # secuencia por (punto de venta, tipo)
    concept = Column(Integer, nullable=False, default=1)
    status = Column(Enum(InvoiceStatus), nullable=False, default=InvoiceStatus.PENDING, index=True)

    # Dates
    issue_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)

    # Currency
    currency = Column(String(3), nullable=False, default="ARS")
    exchange_rate = Column(Numeric(15, 6), nullable=False, default=1)

    # Totals (calculated)
    net_amount = Column(Numeric(15, 2), nullable=False, default=0)
    vat_amount = Column(Numeric(15, 2), nullable=False, default=0)
    exempt_amount = Column(Numeric(15, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)

    # ARCA
    cae = Column(String(14), nullable=True)
    cae_expiration = Column(Date, nullable=True)
    arca_response = Column(JSON, nullable=True)
    extra_data = Column("metadata", JSON, nullable=True)  # notes, error

    # Relationships
    client = relationship("Client")
    point_of_sale = relationship("PointOfSale")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan",
                         order_by="InvoiceItem.position")

    __table_args__ = (
        UniqueConstraint("point_of_sale_id", "invoice_type", "number", name="uq_invoice_pos_type_number"),
        Index("ix_invoice_user_issue_date", "user_id", "issue_date"),
    )

    @property
    def formatted_number(self) -> str:
        pos_number = self.point_of_sale.number if self.point_of_sale else 0
        return f"{pos_number:04d}-{self.number:08d}"


class InvoiceItem(Base, BaseMixin):
    __tablename__ = "invoice_items"

    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    description = Column(String(500), nullable=False)
    quantity = Column(Numeric(15, 3), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)   # precio neto, sin IVA
    vat_rate = Column(Numeric(5, 2), nullable=False)      # porcentaje: 0, 2.5, 5, 10.5, 21, 27
    vat_amount = Column(Numeric(15, 2), nullable=False)
    total_amount = Column(Numeric(15, 2), nullable=False)  # subtotal + IVA

    # Relationships
    invoice = relationship("Invoice", back_populates="items")
