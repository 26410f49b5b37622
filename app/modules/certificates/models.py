from sqlalchemy import Column, String, Text, Boolean, DateTime, JSON, Index
from app.database.database import Base
from app.common.mixins import BaseMixin, OwnedMixin, SoftDeleteMixin


class Certificate(Base, BaseMixin, OwnedMixin, SoftDeleteMixin):
    """
    Certificado digital de ARCA para un CUIT y un entorno.

    A lo sumo uno activo por (usuario, CUIT, entorno); el servicio desactiva
    los anteriores al registrar uno nuevo.
    """
    __tablename__ = "certificates"

    cuit = Column(String(11), nullable=False)
    certificate = Column(Text, nullable=False)   # PEM
    private_key = Column(Text, nullable=False)   # PEM
    passphrase = Column(String, nullable=True)
    is_production = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    extra_data = Column("metadata", JSON, nullable=True)  # subject, issuer, serial, fingerprint

    __table_args__ = (
        Index("ix_certificate_identity", "user_id", "cuit", "is_production"),
    )
