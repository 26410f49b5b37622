from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime


class PointOfSaleCreate(BaseModel):
    number: int = Field(..., ge=1, le=99999, description="Número de punto de venta en ARCA")
    name: str = Field(..., min_length=1, max_length=100)
    is_production: bool
    metadata: Optional[Dict[str, Any]] = None


class PointOfSaleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    is_production: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None


class PointOfSaleOut(BaseModel):
    id: UUID
    number: int
    name: str
    is_production: bool
    is_active: bool
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias=AliasChoices("extra_data", "metadata"))
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PointOfSaleList(BaseModel):
    points_of_sale: List[PointOfSaleOut]
    total: int


class NextInvoiceNumber(BaseModel):
    point_of_sale_id: UUID
    point_of_sale_number: int
    invoice_type: int
    next_number: int
    formatted: str  # 0001-00000001
