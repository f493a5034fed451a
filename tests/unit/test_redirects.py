from datetime import datetime, timedelta, timezone

import pytest

from shortener.errors import ErrorKind, Failure, StoreError
from shortener.services.cache import RedirectCache
from shortener.services.classifier import ClickClassifier
from shortener.services.recorder import ClickRecorder
from shortener.services.redirects import RedirectService
from shortener.services.registry import URLRegistry

@pytest.fixture
def registry(store) -> URLRegistry:
    return URLRegistry(store.session())

def make_service(store, cache_client, registry, geolocator, enforce_expiry=False) -> RedirectService:
    return RedirectService(
        RedirectCache(cache_client, registry),
        ClickClassifier(geolocator),
        ClickRecorder(store.session),
        enforce_expiry=enforce_expiry,
    )

@pytest.mark.asyncio
async def test_unknown_code_skips_enrichment_and_recording(store, cache_client, registry, geolocator, geo_requests):
    service = make_service(store, cache_client, registry, geolocator)

    result = await service.redirect("aaabbb", "8.8.8.8", "Mozilla/5.0")

    assert result == Failure(ErrorKind.NOT_FOUND)
    assert geo_requests == []
    assert store.clicks == []

@pytest.mark.asyncio
async def test_target_is_html_unescaped(store, cache_client, registry, geolocator):
    code = await registry.create_short_url("https://example.com/search?q=a&amp;page=2")
    service = make_service(store, cache_client, registry, geolocator)

    result = await service.redirect(code, "8.8.8.8", None)

    assert result == "https://example.com/search?q=a&page=2"
    assert store.clicks[0].country == "US"

@pytest.mark.asyncio
async def test_expired_code_resolves_unless_enforced(store, cache_client, registry, geolocator):
    past = datetime.now(timezone.utc) - timedelta(days=1)
    code = await registry.create_short_url("https://example.com/old", expires_at=past)

    lenient = make_service(store, cache_client, registry, geolocator)
    assert await lenient.redirect(code, None, None) == "https://example.com/old"

    strict = make_service(store, cache_client, registry, geolocator, enforce_expiry=True)
    result = await strict.redirect(code, None, None)
    assert isinstance(result, Failure)
    assert result.kind is ErrorKind.NOT_FOUND
    assert len(store.clicks) == 1

@pytest.mark.asyncio
async def test_future_expiry_still_redirects_when_enforced(store, cache_client, registry, geolocator):
    future = datetime.now(timezone.utc) + timedelta(days=1)
    code = await registry.create_short_url("https://example.com/new", expires_at=future)

    service = make_service(store, cache_client, registry, geolocator, enforce_expiry=True)
    assert await service.redirect(code, None, None) == "https://example.com/new"

@pytest.mark.asyncio
async def test_store_error_while_recording_propagates(store, cache_client, registry, geolocator):
    code = await registry.create_short_url("https://example.com/fail")
    store.fail_commits = True
    service = make_service(store, cache_client, registry, geolocator)

    with pytest.raises(StoreError):
        await service.redirect(code, "8.8.8.8", None)
    assert store.rows[code].click_count == 0
