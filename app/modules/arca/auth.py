"""
Autenticación contra WSAA.

Se arma el Ticket de Requerimiento de Acceso (TRA), se firma como CMS
(PKCS#7 SignedData, SHA-256) con el certificado del contribuyente y se
intercambia por un token y un sign que valen unas 12 horas.
"""
import base64
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from app.common.exceptions import AuthenticationFailed
from app.common.timeutils import utcnow
from app.core.config import settings
from app.modules.arca.cache import TokenCache, token_cache_key
from app.modules.arca.schemas import AuthToken
from app.modules.arca.transport import ArcaTransport
from app.modules.certificates.validator import load_certificate, load_private_key

logger = logging.getLogger(__name__)

# (user_id, cuit, is_production) -> Certificate activo; lanza NoCertificate
CertificateProvider = Callable[[UUID, str, bool], object]


def build_tra(service: str, now: Optional[datetime] = None, ttl_hours: int = 12) -> str:
    now = now or utcnow()
    generation_time = now.isoformat(timespec="seconds")
    expiration_time = (now + timedelta(hours=ttl_hours)).isoformat(timespec="seconds")
    unique_id = int(now.timestamp())
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<loginTicketRequest version="1.0">\n'
        '  <header>\n'
        f'    <uniqueId>{unique_id}</uniqueId>\n'
        f'    <generationTime>{generation_time}</generationTime>\n'
        f'    <expirationTime>{expiration_time}</expirationTime>\n'
        '  </header>\n'
        f'  <service>{service}</service>\n'
        '</loginTicketRequest>'
    )


def sign_tra(tra: str, certificate_pem: str, private_key_pem: str, passphrase: Optional[str] = None) -> str:
    """CMS SignedData con el TRA embebido, en DER codificado en base64."""
    certificate = load_certificate(certificate_pem)
    private_key = load_private_key(private_key_pem, passphrase)
    signed = (
        pkcs7.PKCS7SignatureBuilder()
        .set_data(tra.encode("utf-8"))
        .add_signer(certificate, private_key, hashes.SHA256())
        .sign(serialization.Encoding.DER, [pkcs7.PKCS7Options.Binary])
    )
    return base64.b64encode(signed).decode("ascii")


class TokenAuthenticator:

    def __init__(
        self,
        certificate_provider: CertificateProvider,
        cache: TokenCache,
        transport: ArcaTransport,
        service_name: str = None,
        ticket_ttl_hours: int = None,
    ):
        self.certificate_provider = certificate_provider
        self.cache = cache
        self.transport = transport
        self.service_name = service_name or settings.ARCA_SERVICE_NAME
        self.ticket_ttl_hours = ticket_ttl_hours or settings.ARCA_TICKET_TTL_HOURS

    def get_token(self, user_id: UUID, cuit: str, is_production: bool) -> AuthToken:
        """
        Ticket vigente para la identidad, desde la caché o pidiendo uno nuevo.

        NoCertificate se propaga tal cual; cualquier otra falla al firmar o
        al intercambiar el ticket se informa como AuthenticationFailed.
        """
        key = token_cache_key(user_id, cuit, is_production)
        cached = self.cache.get(key)
        if cached is not None and cached.is_valid():
            logger.debug(f"Using cached ARCA token for user {user_id}, cuit {cuit}")
            return cached

        certificate = self.certificate_provider(user_id, cuit, is_production)

        try:
            tra = build_tra(self.service_name, ttl_hours=self.ticket_ttl_hours)
            signed_ticket = sign_tra(
                tra, certificate.certificate, certificate.private_key, certificate.passphrase
            )
            token = self.transport.request_token(signed_ticket, is_production)
        except Exception as e:
            logger.error(
                f"ARCA authentication failed for user {user_id}, cuit {cuit}, "
                f"{'production' if is_production else 'testing'}: {e}",
                exc_info=True
            )
            raise AuthenticationFailed(f"No se pudo autenticar con ARCA: {e}") from e

        self.cache.put(key, token, token.seconds_left())
        logger.info(f"ARCA token obtained for user {user_id}, cuit {cuit}, expires at {token.expires_at}")
        return token

    def clear_token(self, user_id: UUID, cuit: str, is_production: bool) -> None:
        self.cache.delete(token_cache_key(user_id, cuit, is_production))
        logger.info(f"Cleared ARCA token cache for user {user_id}, cuit {cuit}")
