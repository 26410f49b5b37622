"""
Gateway de autorización de comprobantes (WSFE).

Valida la solicitud, la envía con el ticket de acceso y traduce la respuesta
cruda en Approved o Rejected. Una fila rechazada es un resultado de negocio;
las fallas de red o de protocolo se informan como GatewayUnavailable.
"""
import logging
from datetime import date
from typing import Any, Dict

from pydantic import ValidationError

from app.common.exceptions import InvalidSubmission, GatewayUnavailable
from app.modules.arca.schemas import (
    AuthToken, InvoiceRequest, Approved, Rejected, SubmissionResult, ArcaMessage
)
from app.modules.arca.transport import ArcaTransport
from app.modules.reference.data import CONCEPT_SERVICES, CONCEPT_MIXED

logger = logging.getLogger(__name__)

VALID_CONCEPTS = (1, 2, 3)


class ArcaGateway:

    def __init__(self, transport: ArcaTransport):
        self.transport = transport

    def validate_request(self, req: InvoiceRequest) -> None:
        """Lanza InvalidSubmission con la primera regla incumplida."""
        if req.invoice_type is None or req.invoice_type < 1:
            raise InvalidSubmission("El tipo de comprobante es obligatorio y debe ser positivo")
        if req.point_of_sale is None or req.point_of_sale < 1:
            raise InvalidSubmission("El punto de venta es obligatorio y debe ser positivo")
        if req.concept not in VALID_CONCEPTS:
            raise InvalidSubmission("El concepto debe ser 1 (productos), 2 (servicios) o 3 (mixto)")
        if not req.client_document_type or not (req.client_document_number or "").strip():
            raise InvalidSubmission("El tipo y número de documento del cliente son obligatorios")
        if req.total_amount is None or req.total_amount <= 0:
            raise InvalidSubmission("El importe total debe ser mayor a cero")
        if not req.items:
            raise InvalidSubmission("El comprobante debe tener al menos un ítem")
        if req.concept in (CONCEPT_SERVICES, CONCEPT_MIXED) and (not req.service_from or not req.service_to):
            raise InvalidSubmission("Para servicios se requieren las fechas de inicio y fin del servicio")

    def submit(self, token: AuthToken, cuit: str, req: InvoiceRequest, is_production: bool) -> SubmissionResult:
        self.validate_request(req)
        payload = req.model_dump(mode="json")

        try:
            raw = self.transport.submit_invoice(token.token, token.sign, cuit, payload, is_production)
            result = self._interpret(raw, req)
        except Exception as e:
            logger.error(
                f"ARCA submission failed for cuit {cuit}, type {req.invoice_type}, "
                f"point of sale {req.point_of_sale}, number {req.number}: {e}",
                exc_info=True
            )
            raise GatewayUnavailable(f"Falla de comunicación con ARCA: {e}") from e

        if isinstance(result, Approved):
            logger.info(f"Invoice {req.point_of_sale}-{req.number} approved with CAE {result.cae}")
        else:
            logger.warning(f"Invoice {req.point_of_sale}-{req.number} rejected: {result.errors}")
        return result

    def _interpret(self, raw: Dict[str, Any], req: InvoiceRequest) -> SubmissionResult:
        if not isinstance(raw, dict) or "success" not in raw:
            raise ValueError(f"Respuesta de ARCA con formato inesperado: {raw!r}")

        observations = [ArcaMessage(**o) for o in raw.get("observations") or []]
        if raw["success"]:
            if not raw.get("cae") or not raw.get("cae_expiration"):
                raise ValueError("Respuesta aprobada sin CAE")
            try:
                return Approved(
                    cae=str(raw["cae"]),
                    cae_expiration=date.fromisoformat(str(raw["cae_expiration"])),
                    assigned_number=int(raw.get("number") or req.number),
                    observations=observations,
                )
            except ValidationError as e:
                raise ValueError(f"Respuesta aprobada inválida: {e}") from e

        return Rejected(
            errors=[ArcaMessage(**err) for err in raw.get("errors") or []],
            observations=observations,
        )

    def get_last_invoice_number(self, token: AuthToken, cuit: str, point_of_sale: int,
                                invoice_type: int, is_production: bool) -> int:
        """Último número autorizado por ARCA para el punto de venta y tipo."""
        try:
            return int(self.transport.get_last_invoice_number(
                token.token, token.sign, cuit, point_of_sale, invoice_type, is_production
            ))
        except Exception as e:
            logger.error(f"ARCA last invoice number query failed for cuit {cuit}: {e}", exc_info=True)
            raise GatewayUnavailable(f"Falla de comunicación con ARCA: {e}") from e

    def query_invoice(self, token: AuthToken, cuit: str, point_of_sale: int, invoice_type: int,
                      number: int, is_production: bool) -> Dict[str, Any]:
        try:
            return self.transport.query_invoice(
                token.token, token.sign, cuit, point_of_sale, invoice_type, number, is_production
            )
        except Exception as e:
            logger.error(f"ARCA invoice query failed for cuit {cuit}: {e}", exc_info=True)
            raise GatewayUnavailable(f"Falla de comunicación con ARCA: {e}") from e
