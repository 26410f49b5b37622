"""
Dependencias de autenticación para FastAPI.

Se acepta un JWT de sesión o una API key, en `Authorization: Bearer ...`
o en el header `X-API-Key`.
"""
import logging
from typing import Optional
from uuid import UUID
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import jwt

from app.database.database import get_db
from app.modules.auth.models import User, UserStatus
from app.modules.auth.service import ApiKeyService
from app.core.config import settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _credentials_exception(detail: str = "No se pudieron validar las credenciales") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _user_from_jwt(token: str, db: Session) -> User:
    try:
        payload = jwt.decode(token, settings.APP_SECRET_STRING, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise _credentials_exception()
        user_id = UUID(subject)
    except (jwt.PyJWTError, ValueError, TypeError):
        raise _credentials_exception()

    return db.query(User).filter(User.id == user_id).first()


def _user_from_api_key(api_key: str, db: Session) -> User:
    record = ApiKeyService(db).validate_api_key(api_key)
    if record is None:
        raise _credentials_exception("API key inválida")
    user = db.query(User).filter(User.id == record.user_id).first()
    if user is None:
        logger.warning(f"API key {record.id} belongs to non-existent user {record.user_id}")
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: Session = Depends(get_db)
) -> User:
    """Usuario autenticado; 401 si falta la credencial o la cuenta no está activa."""
    raw = credentials.credentials if credentials else x_api_key
    if not raw:
        raise _credentials_exception("Se requiere una API key o un token de acceso")

    if raw.startswith("sk_"):
        user = _user_from_api_key(raw, db)
    else:
        user = _user_from_jwt(raw, db)

    if user is None:
        raise _credentials_exception("Usuario no encontrado")
    if user.status != UserStatus.ACTIVE:
        logger.warning(f"Rejected credentials of inactive user {user.id} ({user.status.value})")
        raise _credentials_exception("La cuenta del usuario no está activa")
    return user
