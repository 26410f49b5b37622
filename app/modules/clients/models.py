"""
Modelo de clientes (receptores de las facturas)
"""
from sqlalchemy import Column, String, JSON, UniqueConstraint
from app.database.database import Base
from app.common.mixins import BaseMixin, OwnedMixin, SoftDeleteMixin


class Client(Base, BaseMixin, OwnedMixin, SoftDeleteMixin):
    __tablename__ = "clients"

    tax_id = Column(String(20), nullable=False, index=True)
    tax_id_type = Column(String(20), nullable=False)  # código de tipo de documento: CUIT, DNI, ...
    name = Column(String(200), nullable=False)
    email = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    iva_condition = Column(String(40), nullable=False)  # código de condición de IVA: RI, CF, ...
    extra_data = Column("metadata", JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "tax_id", name="uq_client_user_tax_id"),
    )
