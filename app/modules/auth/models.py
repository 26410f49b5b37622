from sqlalchemy import Column, String, Boolean, ForeignKey, DateTime, Enum, JSON, Uuid
from sqlalchemy.orm import relationship, validates
from uuid import uuid4
import enum
from app.database.database import Base
from app.common.mixins import TimestampMixin, BaseMixin


class UserTier(str, enum.Enum):
    FREE = "FREE"
    BASIC = "BASIC"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    DELETED = "DELETED"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=True)
    name = Column(String, nullable=False)
    company = Column(String, nullable=True)
    tax_id = Column(String(11), nullable=True)
    phone = Column(String, nullable=True)
    tier = Column(Enum(UserTier), nullable=False, default=UserTier.FREE)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    api_keys = relationship("ApiKey", back_populates="user", cascade="all, delete-orphan")

    @validates("email")
    def normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


class ApiKey(Base, BaseMixin):
    __tablename__ = "api_keys"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    key_hash = Column(String, nullable=False)
    key_prefix = Column(String(16), nullable=False, index=True)
    scopes = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", back_populates="api_keys")
