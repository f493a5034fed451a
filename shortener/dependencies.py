from functools import partial

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .database import AsyncSessionLocal, get_db
from .redis import RedisClient
from .services.cache import RedirectCache
from .services.classifier import ClickClassifier
from .services.recorder import ClickRecorder
from .services.redirects import RedirectService
from .services.registry import URLRegistry
from .utils import generate_short_code

# Shared clients are built in the app lifespan and read from app.state here,
# so tests can swap any of them through app.dependency_overrides.

def get_cache_client(request: Request) -> RedisClient:
    return request.app.state.cache

def get_classifier(request: Request) -> ClickClassifier:
    return request.app.state.classifier

def get_registry(db: AsyncSession = Depends(get_db)) -> URLRegistry:
    return URLRegistry(
        db,
        generate=partial(generate_short_code, settings.SHORT_CODE_LENGTH),
        max_attempts=settings.SHORT_CODE_MAX_ATTEMPTS,
    )

def get_recorder() -> ClickRecorder:
    return ClickRecorder(AsyncSessionLocal)

def get_redirect_service(
    cache: RedisClient = Depends(get_cache_client),
    registry: URLRegistry = Depends(get_registry),
    classifier: ClickClassifier = Depends(get_classifier),
    recorder: ClickRecorder = Depends(get_recorder),
) -> RedirectService:
    return RedirectService(
        RedirectCache(cache, registry, ttl=settings.CACHE_TTL_SECONDS),
        classifier,
        recorder,
        enforce_expiry=settings.ENFORCE_EXPIRY,
    )
