"""
Router para el módulo de Facturas

Emisión de comprobantes electrónicos con CAE de ARCA, consultas y
estadísticas del usuario autenticado.
"""
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database.database import get_db
from app.modules.auth.dependencies import get_current_user
from app.modules.auth.models import User
from app.modules.invoices.models import InvoiceStatus
from app.modules.invoices.schemas import (
    InvoiceCreate, InvoiceDetail, InvoiceList, InvoiceFilters, InvoiceStatistics, LastAuthorizedNumber
)
from app.modules.invoices.service import InvoiceService

router = APIRouter(
    prefix="/invoices",
    tags=["Invoices"],
    responses={404: {"description": "Not found"}}
)


@router.post("/", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Emitir una factura electrónica

    La factura se numera y se guarda como PENDING antes de enviarla a ARCA.

    - **APPROVED**: ARCA otorgó el CAE
    - **REJECTED**: ARCA rechazó el comprobante (ver `arca_response.errors`)
    - **502**: falla de autenticación o comunicación; la factura queda en ERROR
      y su ID viaja en el detalle del error
    """
    return InvoiceService(db).create_invoice(current_user.id, invoice_data)


@router.get("/", response_model=InvoiceList)
def get_invoices(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    client_id: Optional[UUID] = Query(None),
    point_of_sale_id: Optional[UUID] = Query(None),
    invoice_type: Optional[int] = Query(None),
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    min_amount: Optional[Decimal] = Query(None),
    max_amount: Optional[Decimal] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    filters = InvoiceFilters(
        client_id=client_id,
        point_of_sale_id=point_of_sale_id,
        invoice_type=invoice_type,
        status=invoice_status,
        date_from=date_from,
        date_to=date_to,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    invoices, total = InvoiceService(db).list_invoices(current_user.id, filters, page=page, limit=limit)
    return {"invoices": invoices, "total": total, "page": page, "limit": limit}


@router.get("/statistics", response_model=InvoiceStatistics)
def get_invoice_statistics(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return InvoiceService(db).get_statistics(current_user.id, date_from, date_to)


@router.get("/last-authorized", response_model=LastAuthorizedNumber)
def get_last_authorized_number(
    point_of_sale_id: UUID = Query(...),
    invoice_type: int = Query(...),
    cuit: Optional[str] = Query(None, description="CUIT emisor; por defecto el del usuario"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Último número que ARCA tiene autorizado para el punto de venta y tipo."""
    return InvoiceService(db).get_last_authorized_number(
        current_user.id, point_of_sale_id, invoice_type, cuit or current_user.tax_id or ""
    )


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(
    invoice_id: UUID = Path(..., description="ID de la factura"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return InvoiceService(db).get_invoice(current_user.id, invoice_id)


@router.get("/{invoice_id}/arca-status")
def get_invoice_arca_status(
    invoice_id: UUID = Path(..., description="ID de la factura"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return InvoiceService(db).query_authority_status(current_user.id, invoice_id)
