"""
Router para el módulo de Clientes

Todos los endpoints requieren autenticación y están acotados al usuario.
"""
from fastapi import APIRouter, Depends, status, Query, Path
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from app.core.config import settings
from app.database.database import get_db
from app.modules.auth.dependencies import get_current_user
from app.modules.auth.models import User
from app.modules.clients.service import ClientService
from app.modules.clients.schemas import ClientCreate, ClientUpdate, ClientOut, ClientList

router = APIRouter(
    prefix="/clients",
    tags=["Clients"],
    responses={404: {"description": "Not found"}}
)


@router.post("/", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create_client(
    client_data: ClientCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Crear un nuevo cliente

    - **tax_id**: Número de documento (único por usuario)
    - **tax_id_type**: Código de tipo de documento (CUIT, DNI, PASAPORTE, ...)
    - **iva_condition**: Código de condición frente al IVA (RI, CF, RM, EX, ...)
    """
    return ClientService(db).create_client(current_user.id, client_data)


@router.get("/", response_model=ClientList)
def get_clients(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    tax_id: Optional[str] = Query(None, description="Búsqueda parcial por documento"),
    name: Optional[str] = Query(None, description="Búsqueda parcial por nombre"),
    email: Optional[str] = Query(None),
    iva_condition: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    clients, total = ClientService(db).list_clients(
        current_user.id, tax_id=tax_id, name=name, email=email,
        iva_condition=iva_condition, is_active=is_active, page=page, limit=limit
    )
    return {"clients": clients, "total": total, "page": page, "limit": limit}


@router.get("/{client_id}", response_model=ClientOut)
def get_client(
    client_id: UUID = Path(..., description="ID del cliente"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ClientService(db).get_client(current_user.id, client_id)


@router.put("/{client_id}", response_model=ClientOut)
def update_client(
    client_data: ClientUpdate,
    client_id: UUID = Path(..., description="ID del cliente"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return ClientService(db).update_client(current_user.id, client_id, client_data)


@router.delete("/{client_id}", response_model=ClientOut)
def delete_client(
    client_id: UUID = Path(..., description="ID del cliente"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Baja lógica del cliente."""
    return ClientService(db).delete_client(current_user.id, client_id)
