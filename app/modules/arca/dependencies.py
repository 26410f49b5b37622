"""
Instancias compartidas del canal con ARCA.

La caché de tickets y el transporte viven a nivel de proceso; el
autenticador se arma por request porque busca certificados con la sesión
de base de datos del request.
"""
from sqlalchemy.orm import Session

from app.modules.arca.auth import TokenAuthenticator
from app.modules.arca.cache import TokenCache, build_token_cache
from app.modules.arca.gateway import ArcaGateway
from app.modules.arca.transport import ArcaTransport, SimulatedArcaTransport
from app.modules.certificates.service import CertificateService

token_cache: TokenCache = build_token_cache()
transport: ArcaTransport = SimulatedArcaTransport()
gateway = ArcaGateway(transport)


def get_authenticator(db: Session) -> TokenAuthenticator:
    return TokenAuthenticator(CertificateService(db).get_active_certificate, token_cache, transport)


def get_gateway() -> ArcaGateway:
    return gateway
