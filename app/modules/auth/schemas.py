from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from app.common.validators import only_digits, validate_cuit
from app.modules.auth.models import UserTier, UserStatus


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    name: str = Field(..., min_length=2, max_length=120)
    company: Optional[str] = Field(None, max_length=200)
    tax_id: Optional[str] = Field(None, description="CUIT del usuario (opcional)")
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator('tax_id')
    @classmethod
    def validate_tax_id(cls, v):
        if v is None or v.strip() == "":
            return None
        if not validate_cuit(v):
            raise ValueError('CUIT inválido. Debe tener 11 dígitos y un dígito verificador correcto')
        return only_digits(v)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    id: UUID
    email: str
    name: str
    company: Optional[str] = None
    tax_id: Optional[str] = None
    phone: Optional[str] = None
    tier: UserTier
    status: UserStatus
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


# API keys
class ApiKeyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    scopes: List[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = None


class ApiKeyOut(BaseModel):
    id: UUID
    name: str
    key_prefix: str
    scopes: List[str]
    is_active: bool
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ApiKeyCreated(ApiKeyOut):
    """La clave en texto plano solo se devuelve al crearla."""
    api_key: str
