from pydantic import BaseModel, Field, AliasChoices, field_validator
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime

from app.common.validators import only_digits, validate_cuit


class CertificateUpload(BaseModel):
    certificate: str = Field(..., description="Certificado X.509 en formato PEM")
    private_key: str = Field(..., description="Clave privada en formato PEM")
    passphrase: Optional[str] = None


class CertificateCreate(CertificateUpload):
    cuit: str
    is_production: bool = False

    @field_validator('cuit')
    @classmethod
    def validate_cuit(cls, v):
        if not validate_cuit(v):
            raise ValueError('CUIT inválido')
        return only_digits(v)


class CertificateInfoOut(BaseModel):
    subject: str
    issuer: str
    serial_number: str
    valid_from: datetime
    valid_to: datetime
    fingerprint: str


class CertificateValidationResult(BaseModel):
    valid: bool
    certificate_info: Optional[CertificateInfoOut] = None
    private_key_valid: bool
    key_pair_match: bool
    extracted_cuit: Optional[str] = None
    errors: List[str] = Field(default_factory=list)


class CertificateOut(BaseModel):
    """Nunca incluye la clave privada ni la passphrase."""
    id: UUID
    cuit: str
    is_production: bool
    expires_at: datetime
    is_active: bool
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("extra_data", "metadata"))
    created_at: datetime

    class Config:
        from_attributes = True
