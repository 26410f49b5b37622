from sqlalchemy import Column, Integer, String, Boolean, JSON, UniqueConstraint
from app.database.database import Base
from app.common.mixins import BaseMixin, OwnedMixin, SoftDeleteMixin


class PointOfSale(Base, BaseMixin, OwnedMixin, SoftDeleteMixin):
    __tablename__ = "points_of_sale"

    number = Column(Integer, nullable=False)  # número de punto de venta habilitado en ARCA
    name = Column(String(100), nullable=False)
    is_production = Column(Boolean, default=False, nullable=False)
    extra_data = Column("metadata", JSON, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "number", name="uq_pos_user_number"),
    )
