from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.service import AuthService, ApiKeyService
from app.modules.auth.dependencies import get_current_user
from app.modules.auth.models import User
from app.modules.auth.schemas import (
    UserCreate, UserLogin, UserOut, TokenResponse,
    ApiKeyCreate, ApiKeyOut, ApiKeyCreated
)

auth_router = APIRouter()


@auth_router.post("/signup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def signup(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Registrar nuevo usuario.
    """
    return AuthService(db).create_user(user_data)


@auth_router.post("/login", response_model=TokenResponse)
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Login de usuario. Retorna token de acceso.
    """
    return AuthService(db).login(credentials.email, credentials.password)


@auth_router.get("/me", response_model=UserOut)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    return current_user


@auth_router.post("/api-keys", response_model=ApiKeyCreated, status_code=status.HTTP_201_CREATED)
def create_api_key(
    data: ApiKeyCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Crear una API key. La clave completa solo se muestra en esta respuesta.
    """
    record, plain_key = ApiKeyService(db).generate_api_key(current_user.id, data)
    return ApiKeyCreated(**ApiKeyOut.model_validate(record).model_dump(), api_key=plain_key)


@auth_router.get("/api-keys", response_model=List[ApiKeyOut])
def list_api_keys(
    active_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return ApiKeyService(db).list_api_keys(current_user.id, active_only)


@auth_router.delete("/api-keys/{api_key_id}", response_model=ApiKeyOut)
def revoke_api_key(
    api_key_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Revocar (desactivar) una API key."""
    return ApiKeyService(db).revoke_api_key(current_user.id, api_key_id)
