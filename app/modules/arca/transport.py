"""
Transporte hacia los web services de ARCA (WSAA y WSFE).

`ArcaTransport` es el contrato que usan el autenticador y el gateway. La
implementación por defecto simula a la autoridad fiscal; una implementación
SOAP real se registra en `app.modules.arca.dependencies` sin tocar el resto.
"""
import logging
import secrets
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Any, Dict

from app.common.timeutils import utcnow
from app.core.config import settings
from app.modules.arca.schemas import AuthToken

logger = logging.getLogger(__name__)

WSAA_URLS = {
    True: "https://wsaa.afip.gov.ar/ws/services/LoginCms",
    False: "https://wsaahomo.afip.gov.ar/ws/services/LoginCms",
}
WSFE_URLS = {
    True: "https://servicios1.afip.gov.ar/wsfev1/service.asmx",
    False: "https://wswhomo.afip.gov.ar/wsfev1/service.asmx",
}


class TransportError(Exception):
    """Falla de red o de protocolo al hablar con ARCA."""


class ArcaTransport(ABC):

    @abstractmethod
    def request_token(self, signed_ticket: str, is_production: bool) -> AuthToken:
        """LoginCms: intercambia el TRA firmado (CMS en base64) por token y sign."""

    @abstractmethod
    def submit_invoice(self, token: str, sign: str, cuit: str, payload: Dict[str, Any],
                       is_production: bool) -> Dict[str, Any]:
        """
        FECAESolicitar. Respuesta cruda:
        {"success": bool, "cae": str, "cae_expiration": "YYYY-MM-DD", "number": int,
         "observations": [{"code", "message"}], "errors": [{"code", "message"}]}
        """

    @abstractmethod
    def get_last_invoice_number(self, token: str, sign: str, cuit: str, point_of_sale: int,
                                invoice_type: int, is_production: bool) -> int:
        """FECompUltimoAutorizado."""

    @abstractmethod
    def query_invoice(self, token: str, sign: str, cuit: str, point_of_sale: int,
                      invoice_type: int, number: int, is_production: bool) -> Dict[str, Any]:
        """FECompConsultar."""


class SimulatedArcaTransport(ArcaTransport):
    """
    Autoridad simulada: aprueba todo, con CAE de 14 dígitos que empieza con 7.
    """

    def request_token(self, signed_ticket: str, is_production: bool) -> AuthToken:
        if not signed_ticket:
            raise TransportError("Empty signed ticket")
        logger.warning(f"Using simulated ARCA login ({WSAA_URLS[is_production]})")
        return AuthToken(
            token=secrets.token_hex(32),
            sign=secrets.token_hex(32),
            expires_at=utcnow() + timedelta(hours=settings.ARCA_TICKET_TTL_HOURS),
        )

    def submit_invoice(self, token, sign, cuit, payload, is_production):
        logger.warning(
            f"Using simulated ARCA invoice authorization for cuit {cuit}, "
            f"type {payload.get('invoice_type')}, point of sale {payload.get('point_of_sale')}"
        )
        cae = "7" + f"{secrets.randbelow(10 ** 13):013d}"
        return {
            "success": True,
            "cae": cae,
            "cae_expiration": (date.today() + timedelta(days=settings.ARCA_CAE_VALIDITY_DAYS)).isoformat(),
            "number": payload.get("number"),
            "observations": [],
            "errors": [],
        }

    def get_last_invoice_number(self, token, sign, cuit, point_of_sale, invoice_type, is_production):
        logger.warning("Using simulated ARCA last invoice number")
        return 0

    def query_invoice(self, token, sign, cuit, point_of_sale, invoice_type, number, is_production):
        logger.warning("Using simulated ARCA invoice query")
        return {"found": False, "message": "Consulta no disponible en el modo simulado"}
