"""
Validación de certificados X.509 y claves privadas emitidos por ARCA.

ARCA entrega un certificado PEM asociado al CUIT del contribuyente; la clave
privada la genera el propio contribuyente. Para emitir comprobantes ambos
tienen que estar vigentes y formar un par.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.x509.oid import NameOID

from app.common.exceptions import (
    InvalidCertificate, CertificateExpired, CertificateNotYetValid, InvalidPrivateKey
)
from app.common.timeutils import utcnow

logger = logging.getLogger(__name__)

KEY_PAIR_PROBE = b"test-data"

_NAME_OVERRIDES = {NameOID.SERIAL_NUMBER: "serialNumber"}


@dataclass(frozen=True)
class CertificateInfo:
    subject: str
    issuer: str
    serial_number: str
    valid_from: datetime
    valid_to: datetime
    fingerprint: str

    def as_metadata(self) -> dict:
        return {
            "subject": self.subject,
            "issuer": self.issuer,
            "serial_number": self.serial_number,
            "fingerprint": self.fingerprint,
            "valid_from": self.valid_from.isoformat(),
        }


def load_certificate(pem: str) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(pem.encode("utf-8"))
    except (ValueError, TypeError, AttributeError) as e:
        raise InvalidCertificate(f"Formato de certificado inválido: {e}")


def load_private_key(pem: str, passphrase: Optional[str] = None):
    password = passphrase.encode("utf-8") if passphrase else None
    try:
        return serialization.load_pem_private_key(pem.encode("utf-8"), password=password)
    except (ValueError, TypeError, AttributeError, UnsupportedAlgorithm) as e:
        raise InvalidPrivateKey(f"Clave privada inválida: {e}")


def _name_to_string(name: x509.Name) -> str:
    return name.rfc4514_string(_NAME_OVERRIDES)


class CertificateValidator:
    """Validador sin estado; se puede compartir entre hilos."""

    def parse(self, pem: str) -> CertificateInfo:
        cert = load_certificate(pem)
        return CertificateInfo(
            subject=_name_to_string(cert.subject),
            issuer=_name_to_string(cert.issuer),
            serial_number=format(cert.serial_number, "x").upper(),
            valid_from=cert.not_valid_before_utc,
            valid_to=cert.not_valid_after_utc,
            fingerprint=cert.fingerprint(hashes.SHA256()).hex(":").upper(),
        )

    def validate(self, pem: str) -> CertificateInfo:
        """Parsear y verificar que el certificado esté dentro de su vigencia."""
        info = self.parse(pem)
        now = utcnow()
        if now < info.valid_from:
            raise CertificateNotYetValid(
                f"El certificado es válido recién a partir de {info.valid_from.isoformat()}"
            )
        if now > info.valid_to:
            raise CertificateExpired(f"El certificado venció el {info.valid_to.isoformat()}")
        return info

    def validate_private_key(self, pem: str, passphrase: Optional[str] = None):
        return load_private_key(pem, passphrase)

    def validate_key_pair(self, cert_pem: str, key_pem: str, passphrase: Optional[str] = None) -> bool:
        """
        Firma un mensaje de prueba con la clave y lo verifica con la clave
        pública del certificado. Nunca lanza: cualquier falla es False.
        """
        try:
            public_key = load_certificate(cert_pem).public_key()
            private_key = load_private_key(key_pem, passphrase)
        except (InvalidCertificate, InvalidPrivateKey):
            return False

        try:
            if isinstance(private_key, rsa.RSAPrivateKey) and isinstance(public_key, rsa.RSAPublicKey):
                signature = private_key.sign(KEY_PAIR_PROBE, padding.PKCS1v15(), hashes.SHA256())
                public_key.verify(signature, KEY_PAIR_PROBE, padding.PKCS1v15(), hashes.SHA256())
                return True
            if isinstance(private_key, ec.EllipticCurvePrivateKey) and isinstance(public_key, ec.EllipticCurvePublicKey):
                signature = private_key.sign(KEY_PAIR_PROBE, ec.ECDSA(hashes.SHA256()))
                public_key.verify(signature, KEY_PAIR_PROBE, ec.ECDSA(hashes.SHA256()))
                return True
        except (InvalidSignature, ValueError, TypeError) as e:
            logger.debug(f"Key pair verification failed: {e}")
            return False
        return False

    def extract_tax_id(self, pem: str) -> Optional[str]:
        """CUIT del subject del certificado, si se encuentra."""
        try:
            subject = _name_to_string(load_certificate(pem).subject)
        except InvalidCertificate:
            return None

        for pattern in (r"CUIT\s*(\d{11})", r"serialNumber=(\d{11})", r"(\d{11})"):
            match = re.search(pattern, subject, re.IGNORECASE)
            if match:
                return match.group(1)
        return None


certificate_validator = CertificateValidator()
