import logging
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.common.exceptions import ResourceNotFound, AccessDenied
from app.common.timeutils import utcnow, ensure_utc
from app.modules.auth.models import User, UserStatus, ApiKey
from app.modules.auth.schemas import UserCreate, ApiKeyCreate
from app.modules.auth.utils import (
    hash_password, verify_password, create_access_token,
    hash_api_key, verify_api_key, generate_api_key, extract_api_key_prefix
)

logger = logging.getLogger(__name__)


class AuthService:
    """
    Registro e inicio de sesión de usuarios.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, user_data: UserCreate) -> User:
        email = user_data.email.strip().lower()
        existing_user = self.db.query(User).filter(User.email == email).first()
        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Este email ya está registrado"
            )

        user = User(
            email=email,
            password_hash=hash_password(user_data.password),
            name=user_data.name,
            company=user_data.company,
            tax_id=user_data.tax_id,
            phone=user_data.phone,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"User {user.id} registered")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not verify_password(password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Email o contraseña incorrectos",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if user.status != UserStatus.ACTIVE:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="La cuenta del usuario no está activa",
            )
        return user

    def login(self, email: str, password: str) -> dict:
        """Retorna un token de acceso JWT y los datos del usuario."""
        user = self.authenticate(email, password)
        access_token = create_access_token({"sub": str(user.id), "email": user.email})
        return {"access_token": access_token, "token_type": "bearer", "user": user}


class ApiKeyService:
    """
    Gestión de API keys.

    La clave en texto plano se devuelve una única vez; en la base solo se
    guarda su hash bcrypt junto con el prefijo, que sirve para acotar la
    búsqueda al validar.
    """

    def __init__(self, db: Session):
        self.db = db

    def generate_api_key(self, user_id: UUID, data: ApiKeyCreate) -> Tuple[ApiKey, str]:
        plain_key = generate_api_key()
        record = ApiKey(
            user_id=user_id,
            name=data.name,
            key_hash=hash_api_key(plain_key),
            key_prefix=extract_api_key_prefix(plain_key),
            scopes=list(data.scopes),
            is_active=True,
            expires_at=data.expires_at,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"API key {record.id} created for user {user_id}")
        return record, plain_key

    def validate_api_key(self, api_key: str) -> Optional[ApiKey]:
        """Devuelve el registro de la clave si es válida, activa y no vencida."""
        prefix = extract_api_key_prefix(api_key)
        if not prefix:
            return None

        candidates = self.db.query(ApiKey).filter(
            ApiKey.key_prefix == prefix,
            ApiKey.is_active == True
        ).all()

        for candidate in candidates:
            if not verify_api_key(api_key, candidate.key_hash):
                continue
            if candidate.expires_at and ensure_utc(candidate.expires_at) < utcnow():
                return None
            candidate.last_used_at = utcnow()
            self.db.commit()
            return candidate
        return None

    def list_api_keys(self, user_id: UUID, active_only: bool = False) -> List[ApiKey]:
        query = self.db.query(ApiKey).filter(ApiKey.user_id == user_id)
        if active_only:
            query = query.filter(ApiKey.is_active == True)
        return query.order_by(ApiKey.created_at.desc()).all()

    def revoke_api_key(self, user_id: UUID, api_key_id: UUID) -> ApiKey:
        record = self.db.query(ApiKey).filter(ApiKey.id == api_key_id).first()
        if not record:
            raise ResourceNotFound("API key no encontrada")
        if record.user_id != user_id:
            raise AccessDenied("La API key pertenece a otro usuario")
        record.is_active = False
        self.db.commit()
        logger.info(f"API key {record.id} revoked by user {user_id}")
        return record
