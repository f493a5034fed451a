import logging
from typing import Union

from pydantic import ValidationError

from ..errors import Failure
from ..observability import CACHE_HITS, CACHE_MISSES
from ..redis import RedisClient
from ..schemas import ResolvedURL
from .registry import URLRegistry

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "shorturl:"
DEFAULT_TTL_SECONDS = 300

def cache_key(short_code: str) -> str:
    return f"{CACHE_KEY_PREFIX}{short_code}"

class RedirectCache:
    """Cache-aside lookup of short codes in front of the registry.

    Hits are served without re-checking the store; staleness is bounded by
    the TTL. Negative results are never cached.
    """

    def __init__(self, cache: RedisClient, registry: URLRegistry, ttl: int = DEFAULT_TTL_SECONDS):
        self.cache = cache
        self.registry = registry
        self.ttl = ttl

    async def resolve(self, short_code: str) -> Union[ResolvedURL, Failure]:
        key = cache_key(short_code)

        cached = await self.cache.get(key)
        if cached:
            try:
                resolved = ResolvedURL.model_validate_json(cached)
            except ValidationError:
                logger.warning("Discarding unreadable cache entry", extra={"short_code": short_code})
            else:
                CACHE_HITS.inc()
                return resolved

        CACHE_MISSES.inc()
        resolved = await self.registry.resolve(short_code)
        if isinstance(resolved, Failure):
            return resolved

        # A failed write is logged by the client and otherwise ignored
        await self.cache.set(key, resolved.model_dump_json(), ex=self.ttl)
        return resolved
