from pydantic import BaseModel, EmailStr, Field, AliasChoices, field_validator, model_validator
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime

from app.common.validators import only_digits, validate_cuit
from app.modules.reference.data import is_valid_document_type, is_valid_iva_condition

CUIT_DOCUMENT_TYPES = ("CUIT", "CUIL", "CDI")


def _validate_iva_condition(v):
    if v is None:
        return v
    code = v.strip().upper()
    if not is_valid_iva_condition(code):
        raise ValueError(f'Condición de IVA inválida: {v}')
    return code


class ClientBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    iva_condition: str
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('iva_condition')
    @classmethod
    def validate_iva_condition(cls, v):
        return _validate_iva_condition(v)


class ClientCreate(ClientBase):
    tax_id: str = Field(..., min_length=1, max_length=20)
    tax_id_type: str = Field(..., description="Código de tipo de documento (CUIT, DNI, PASAPORTE, ...)")

    @field_validator('tax_id_type')
    @classmethod
    def validate_tax_id_type(cls, v):
        code = v.strip().upper()
        if not is_valid_document_type(code):
            raise ValueError(f'Tipo de documento inválido: {v}')
        return code

    @model_validator(mode='after')
    def validate_tax_id(self):
        if self.tax_id_type in CUIT_DOCUMENT_TYPES:
            if not validate_cuit(self.tax_id):
                raise ValueError(f'{self.tax_id_type} inválido: {self.tax_id}')
            self.tax_id = only_digits(self.tax_id)
        else:
            self.tax_id = self.tax_id.strip()
        return self


class ClientUpdate(BaseModel):
    """El documento no se puede modificar."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    iva_condition: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('iva_condition')
    @classmethod
    def validate_iva_condition(cls, v):
        return _validate_iva_condition(v)


class ClientOut(BaseModel):
    id: UUID
    tax_id: str
    tax_id_type: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    iva_condition: str
    is_active: bool
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("extra_data", "metadata"))
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClientList(BaseModel):
    clients: List[ClientOut]
    total: int
    page: int
    limit: int
