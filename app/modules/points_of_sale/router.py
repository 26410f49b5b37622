from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.common.exceptions import ResourceNotFound
from app.database.database import get_db
from app.modules.auth.dependencies import get_current_user
from app.modules.auth.models import User
from app.modules.points_of_sale.service import PointOfSaleService
from app.modules.points_of_sale.schemas import (
    PointOfSaleCreate, PointOfSaleUpdate, PointOfSaleOut, PointOfSaleList, NextInvoiceNumber
)

router = APIRouter(
    prefix="/points-of-sale",
    tags=["Points of Sale"],
    responses={404: {"description": "Not found"}}
)


@router.post("/", response_model=PointOfSaleOut, status_code=status.HTTP_201_CREATED)
def create_point_of_sale(
    data: PointOfSaleCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Registrar un punto de venta habilitado en ARCA.

    - **number**: número asignado por ARCA (único por usuario)
    - **is_production**: producción u homologación
    """
    return PointOfSaleService(db).create_point_of_sale(current_user.id, data)


@router.get("/", response_model=PointOfSaleList)
def list_points_of_sale(
    is_production: Optional[bool] = Query(None),
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    items = PointOfSaleService(db).list_points_of_sale(current_user.id, is_production, active_only)
    return {"points_of_sale": items, "total": len(items)}


@router.get("/default", response_model=PointOfSaleOut)
def get_default_point_of_sale(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    pos = PointOfSaleService(db).get_default_point_of_sale(current_user.id)
    if not pos:
        raise ResourceNotFound("No hay puntos de venta activos")
    return pos


@router.get("/{pos_id}", response_model=PointOfSaleOut)
def get_point_of_sale(
    pos_id: UUID = Path(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return PointOfSaleService(db).get_point_of_sale(current_user.id, pos_id)


@router.get("/{pos_id}/next-invoice-number/{invoice_type}", response_model=NextInvoiceNumber)
def get_next_invoice_number(
    invoice_type: int = Path(..., ge=1),
    pos_id: UUID = Path(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Próximo número de comprobante para el tipo indicado (solo informativo)."""
    return PointOfSaleService(db).get_next_invoice_number(current_user.id, pos_id, invoice_type)


@router.put("/{pos_id}", response_model=PointOfSaleOut)
def update_point_of_sale(
    data: PointOfSaleUpdate,
    pos_id: UUID = Path(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return PointOfSaleService(db).update_point_of_sale(current_user.id, pos_id, data)


@router.delete("/{pos_id}", response_model=PointOfSaleOut)
def deactivate_point_of_sale(
    pos_id: UUID = Path(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return PointOfSaleService(db).deactivate_point_of_sale(current_user.id, pos_id)
