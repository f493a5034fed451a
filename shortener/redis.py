import logging
import redis.asyncio as redis
from typing import Optional

from .errors import ErrorKind
from .observability import CACHE_ERRORS

logger = logging.getLogger(__name__)

class RedisClient:
    """Thin wrapper over redis.asyncio whose failures are logged and absorbed.

    The cache is an optimization only: a failed ``get`` looks like a miss and
    a failed ``set`` is skipped, so callers fall through to the store.
    """

    def __init__(self, host: str, port: int, db: int = 0, socket_timeout: Optional[float] = None):
        self.host = host
        self.port = port
        self.db = db
        self.socket_timeout = socket_timeout
        self.client: Optional[redis.Redis] = None

    async def connect(self):
        self.client = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
            encoding="utf-8",
            decode_responses=True,
        )
        try:
            await self.client.ping()
            logger.info("Connected to redis at %s:%s", self.host, self.port)
        except redis.RedisError as exc:
            # Keep the client; the pool reconnects once redis comes back
            logger.warning("%s: redis at %s:%s unreachable: %s",
                           ErrorKind.DEPENDENCY_UNAVAILABLE.name, self.host, self.port, exc)

    async def close(self):
        if self.client:
            await self.client.aclose()
            self.client = None

    async def get(self, key: str) -> Optional[str]:
        if not self.client:
            return None
        try:
            return await self.client.get(key)
        except redis.RedisError as exc:
            self._degraded("get", key, exc)
            return None

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        if not self.client:
            return False
        try:
            await self.client.set(key, value, ex=ex)
            return True
        except redis.RedisError as exc:
            self._degraded("set", key, exc)
            return False

    def _degraded(self, operation: str, key: str, exc: Exception):
        CACHE_ERRORS.labels(operation=operation).inc()
        logger.warning("%s: cache %s failed for %s: %s",
                       ErrorKind.DEPENDENCY_UNAVAILABLE.name, operation, key, exc)
