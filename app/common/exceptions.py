"""
Errores de dominio.

Todos heredan de HTTPException: los servicios los lanzan, los routers los
dejan propagar y FastAPI responde con el status correspondiente.
"""
from typing import Any, Optional
from fastapi import HTTPException, status


class DomainError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Error de dominio"

    def __init__(self, detail: Optional[Any] = None):
        super().__init__(status_code=type(self).status_code, detail=detail or self.default_detail)


# ===== Errores de entrada (400) =====

class InvalidInvoiceInput(DomainError):
    default_detail = "Datos de factura inválidos"


class InvalidSubmission(DomainError):
    default_detail = "Solicitud de autorización inválida"


class InvalidCertificate(DomainError):
    default_detail = "Formato de certificado inválido"


class CertificateExpired(InvalidCertificate):
    default_detail = "El certificado está vencido"


class CertificateNotYetValid(InvalidCertificate):
    default_detail = "El certificado todavía no es válido"


class InvalidPrivateKey(DomainError):
    default_detail = "Clave privada inválida"


class KeyPairMismatch(DomainError):
    default_detail = "El certificado y la clave privada no coinciden"


# ===== Propiedad y existencia (403 / 404 / 409) =====

class ResourceNotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Recurso no encontrado"


class AccessDenied(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Acceso denegado"


class NoCertificate(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "No hay un certificado activo. Suba un certificado primero."


class ResourceConflict(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "El recurso ya existe"


class NumberingConflict(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "No se pudo asignar un número de factura, reintente la operación"


# ===== Autoridad fiscal (502) =====

class AuthenticationFailed(DomainError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "No se pudo autenticar con ARCA"


class GatewayUnavailable(DomainError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "El servicio de facturación de ARCA no está disponible"


class InvoiceSubmissionFailed(DomainError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "No se pudo enviar la factura a ARCA"

    def __init__(self, invoice_id, reason: str):
        self.invoice_id = invoice_id
        self.reason = reason
        super().__init__(detail={
            "message": f"No se pudo enviar la factura a ARCA: {reason}",
            "invoice_id": str(invoice_id),
        })
