"""
Caché de tickets de acceso de ARCA.

La clave identifica (usuario, CUIT, entorno). El backend en memoria sirve
para un único proceso; con varios workers se usa Redis para compartir los
tickets entre ellos.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

import redis

from app.core.config import settings
from app.modules.arca.schemas import AuthToken

logger = logging.getLogger(__name__)


def token_cache_key(user_id, cuit: str, is_production: bool) -> str:
    return f"{user_id}_{cuit}_{'prod' if is_production else 'test'}"


class TokenCache(ABC):

    @abstractmethod
    def get(self, key: str) -> Optional[AuthToken]:
        """Ticket vigente para la clave o None."""

    @abstractmethod
    def put(self, key: str, token: AuthToken, ttl_seconds: int) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class InMemoryTokenCache(TokenCache):
    """Diccionario protegido por lock; guarda el AuthToken inmutable entero."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tokens: Dict[str, AuthToken] = {}

    def get(self, key: str) -> Optional[AuthToken]:
        with self._lock:
            token = self._tokens.get(key)
            if token is None:
                return None
            if not token.is_valid():
                del self._tokens[key]
                return None
            return token

    def put(self, key: str, token: AuthToken, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._tokens[key] = token

    def delete(self, key: str) -> None:
        with self._lock:
            self._tokens.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()


class RedisTokenCache(TokenCache):
    """Tickets serializados como JSON con SETEX para que Redis los expire."""

    prefix = "arca:token:"

    def __init__(self, client: Optional[redis.Redis] = None):
        self.client = client or redis.Redis.from_url(settings.redis_url)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[AuthToken]:
        raw = self.client.get(self._key(key))
        if raw is None:
            return None
        token = AuthToken.model_validate_json(raw)
        return token if token.is_valid() else None

    def put(self, key: str, token: AuthToken, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        self.client.setex(self._key(key), ttl_seconds, token.model_dump_json())

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def clear(self) -> None:
        for key in self.client.scan_iter(match=f"{self.prefix}*"):
            self.client.delete(key)


def build_token_cache() -> TokenCache:
    if settings.ARCA_TOKEN_CACHE_BACKEND == "redis":
        logger.info("Using Redis token cache")
        return RedisTokenCache()
    return InMemoryTokenCache()
