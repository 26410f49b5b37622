from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'arca_user'
    POSTGRES_PASSWORD: str = 'arca_pass'
    POSTGRES_DB: str = 'arca_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None  # Si se define, reemplaza la URL de PostgreSQL

    # Redis settings
    REDIS_HOST: str = 'redis'
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # JWT settings
    APP_SECRET_STRING: str = 'your-super-secret-key-here-change-in-production-2024'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # API keys
    API_KEY_PREFIX: str = 'sk_live_'

    # ARCA / AFIP
    ARCA_TOKEN_CACHE_BACKEND: str = 'memory'  # memory | redis
    ARCA_SERVICE_NAME: str = 'wsfe'
    ARCA_TICKET_TTL_HOURS: int = 12
    ARCA_CAE_VALIDITY_DAYS: int = 10

    # Invoices
    INVOICE_NUMBERING_MAX_ATTEMPTS: int = 5
    INVOICE_NUMBERING_RETRY_DELAY_MS: int = 25  # base del backoff, se multiplica por el intento
    PENDING_INVOICE_TIMEOUT_MINUTES: int = 15

    # Certificates
    CERTIFICATE_EXPIRY_WARNING_DAYS: int = 30

    # Pagination
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("ARCA_TOKEN_CACHE_BACKEND", mode="before")
    @classmethod
    def parse_cache_backend(cls, v):
        value = str(v).lower().strip('"').strip("'")
        if value not in ("memory", "redis"):
            raise ValueError("ARCA_TOKEN_CACHE_BACKEND debe ser 'memory' o 'redis'")
        return value

settings = Settings()
