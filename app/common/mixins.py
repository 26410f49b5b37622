"""
Mixins comunes para los modelos
"""
from sqlalchemy import Column, DateTime, Boolean, Uuid
from sqlalchemy.sql import func
from uuid import uuid4

from app.common.timeutils import utcnow


class OwnedMixin:
    """Mixin para entidades que pertenecen a un único usuario"""

    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)


class TimestampMixin:
    """Mixin para modelos que registran fechas de creación y actualización"""

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)


class BaseMixin(TimestampMixin):
    """Clave primaria UUID más timestamps"""

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4, index=True)


class SoftDeleteMixin:
    """Mixin para desactivación lógica (nunca se borran filas)"""

    is_active = Column(Boolean, default=True, nullable=False)

    def soft_delete(self):
        self.is_active = False

    def restore(self):
        self.is_active = True
