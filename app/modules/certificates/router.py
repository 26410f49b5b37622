"""
Router de certificados de ARCA

Las respuestas nunca incluyen la clave privada.
"""
from fastapi import APIRouter, status, Query, Path
from typing import List, Optional
from uuid import UUID

from app.core.config import settings
from app.dependencies.dbDependencies import db_dependency
from app.dependencies.userDependencies import user_dependency
from app.modules.certificates.service import CertificateService
from app.modules.certificates.schemas import (
    CertificateCreate, CertificateUpload, CertificateOut, CertificateValidationResult
)

router = APIRouter(
    prefix="/certificates",
    tags=["Certificates"],
    responses={404: {"description": "Not found"}}
)


@router.post("/", response_model=CertificateOut, status_code=status.HTTP_201_CREATED)
def upload_certificate(
    data: CertificateCreate,
    db: db_dependency,
    current_user: user_dependency
):
    """
    Subir un certificado de ARCA.

    Valida vigencia, clave privada y correspondencia del par. Los certificados
    activos anteriores del mismo CUIT y entorno se desactivan.
    """
    return CertificateService(db).create_certificate(current_user.id, data)


@router.post("/validate", response_model=CertificateValidationResult)
def validate_certificate(
    data: CertificateUpload,
    db: db_dependency,
    current_user: user_dependency
):
    """Validar un certificado y su clave sin guardarlos."""
    return CertificateService(db).validate_upload(data)


@router.get("/", response_model=List[CertificateOut])
def list_certificates(
    db: db_dependency,
    current_user: user_dependency,
    cuit: Optional[str] = Query(None),
    is_production: Optional[bool] = Query(None),
    active_only: bool = Query(False)
):
    return CertificateService(db).list_certificates(current_user.id, cuit, is_production, active_only)


@router.get("/expiring", response_model=List[CertificateOut])
def list_expiring_certificates(
    db: db_dependency,
    current_user: user_dependency,
    days: int = Query(settings.CERTIFICATE_EXPIRY_WARNING_DAYS, ge=1, le=365)
):
    return CertificateService(db).get_expiring_certificates(current_user.id, days)


@router.get("/{certificate_id}", response_model=CertificateOut)
def get_certificate(
    db: db_dependency,
    current_user: user_dependency,
    certificate_id: UUID = Path(...)
):
    return CertificateService(db).get_certificate(current_user.id, certificate_id)


@router.delete("/{certificate_id}", response_model=CertificateOut)
def deactivate_certificate(
    db: db_dependency,
    current_user: user_dependency,
    certificate_id: UUID = Path(...)
):
    return CertificateService(db).deactivate_certificate(current_user.id, certificate_id)
