"""
Servicio de certificados

Alta, consulta y baja de certificados de ARCA. Mantiene el invariante de un
único certificado activo por (usuario, CUIT, entorno) y desactiva de forma
perezosa los que vencen.
"""
import logging
from dataclasses import asdict
from datetime import timedelta
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from app.common.exceptions import (
    ResourceNotFound, AccessDenied, NoCertificate, KeyPairMismatch, DomainError
)
from app.common.timeutils import utcnow, ensure_utc
from app.modules.certificates.models import Certificate
from app.modules.certificates.schemas import CertificateCreate, CertificateUpload
from app.modules.certificates.validator import CertificateValidator, certificate_validator

logger = logging.getLogger(__name__)


class CertificateService:

    def __init__(self, db: Session, validator: Optional[CertificateValidator] = None):
        self.db = db
        self.validator = validator or certificate_validator

    def create_certificate(self, user_id: UUID, data: CertificateCreate) -> Certificate:
        info = self.validator.validate(data.certificate)
        self.validator.validate_private_key(data.private_key, data.passphrase)
        if not self.validator.validate_key_pair(data.certificate, data.private_key, data.passphrase):
            raise KeyPairMismatch()

        extracted = self.validator.extract_tax_id(data.certificate)
        if extracted and extracted != data.cuit:
            logger.warning(f"Certificate CUIT {extracted} differs from declared CUIT {data.cuit} (user {user_id})")

        # Desactivar los anteriores y crear el nuevo en la misma transacción
        self.db.query(Certificate).filter(
            Certificate.user_id == user_id,
            Certificate.cuit == data.cuit,
            Certificate.is_production == data.is_production,
            Certificate.is_active == True
        ).update({Certificate.is_active: False}, synchronize_session=False)

        certificate = Certificate(
            user_id=user_id,
            cuit=data.cuit,
            certificate=data.certificate,
            private_key=data.private_key,
            passphrase=data.passphrase,
            is_production=data.is_production,
            expires_at=info.valid_to,
            is_active=True,
            extra_data=info.as_metadata(),
        )
        self.db.add(certificate)
        self.db.commit()
        self.db.refresh(certificate)
        logger.info(
            f"Certificate {certificate.id} registered for user {user_id}, cuit {data.cuit}, "
            f"{'production' if data.is_production else 'testing'}"
        )
        return certificate

    def get_active_certificate(self, user_id: UUID, cuit: str, is_production: bool) -> Certificate:
        """
        Certificado activo para la identidad. Si el más reciente está vencido
        se desactiva y se informa que no hay certificado.
        """
        certificate = self.db.query(Certificate).filter(
            Certificate.user_id == user_id,
            Certificate.cuit == cuit,
            Certificate.is_production == is_production,
            Certificate.is_active == True
        ).order_by(Certificate.expires_at.desc()).first()

        if not certificate:
            raise NoCertificate(
                f"No hay un certificado activo para el CUIT {cuit} "
                f"({'producción' if is_production else 'homologación'}). Suba un certificado primero."
            )

        if ensure_utc(certificate.expires_at) <= utcnow():
            certificate.soft_delete()
            self.db.commit()
            logger.warning(f"Certificate {certificate.id} for cuit {cuit} expired and was deactivated")
            raise NoCertificate(f"El certificado del CUIT {cuit} está vencido. Suba un certificado nuevo.")

        return certificate

    def list_certificates(
        self,
        user_id: UUID,
        cuit: Optional[str] = None,
        is_production: Optional[bool] = None,
        active_only: bool = False
    ) -> List[Certificate]:
        query = self.db.query(Certificate).filter(Certificate.user_id == user_id)
        if cuit:
            query = query.filter(Certificate.cuit == cuit)
        if is_production is not None:
            query = query.filter(Certificate.is_production == is_production)
        if active_only:
            query = query.filter(Certificate.is_active == True)
        return query.order_by(Certificate.created_at.desc()).all()

    def get_certificate(self, user_id: UUID, certificate_id: UUID) -> Certificate:
        certificate = self.db.query(Certificate).filter(Certificate.id == certificate_id).first()
        if not certificate:
            raise ResourceNotFound("Certificado no encontrado")
        if certificate.user_id != user_id:
            raise AccessDenied("El certificado pertenece a otro usuario")
        return certificate

    def deactivate_certificate(self, user_id: UUID, certificate_id: UUID) -> Certificate:
        certificate = self.get_certificate(user_id, certificate_id)
        certificate.soft_delete()
        self.db.commit()
        logger.info(f"Certificate {certificate.id} deactivated by user {user_id}")
        return certificate

    def get_expiring_certificates(self, user_id: Optional[UUID] = None, days: int = 30) -> List[Certificate]:
        """Certificados activos que vencen dentro de los próximos `days` días."""
        now = utcnow()
        query = self.db.query(Certificate).filter(
            Certificate.is_active == True,
            Certificate.expires_at > now,
            Certificate.expires_at <= now + timedelta(days=days)
        )
        if user_id is not None:
            query = query.filter(Certificate.user_id == user_id)
        return query.order_by(Certificate.expires_at.asc()).all()

    def validate_upload(self, data: CertificateUpload) -> dict:
        """Diagnóstico de un par certificado/clave sin guardar nada."""
        result = {
            "valid": False,
            "certificate_info": None,
            "private_key_valid": False,
            "key_pair_match": False,
            "extracted_cuit": None,
            "errors": [],
        }

        try:
            result["certificate_info"] = asdict(self.validator.parse(data.certificate))
            self.validator.validate(data.certificate)
            result["extracted_cuit"] = self.validator.extract_tax_id(data.certificate)
        except DomainError as e:
            result["errors"].append(str(e.detail))

        try:
            self.validator.validate_private_key(data.private_key, data.passphrase)
            result["private_key_valid"] = True
        except DomainError as e:
            result["errors"].append(str(e.detail))

        result["key_pair_match"] = self.validator.validate_key_pair(
            data.certificate, data.private_key, data.passphrase
        )
        if result["private_key_valid"] and result["certificate_info"] and not result["key_pair_match"]:
            result["errors"].append(KeyPairMismatch.default_detail)

        result["valid"] = not result["errors"]
        return result
