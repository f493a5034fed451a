import uuid
from typing import AsyncGenerator, Optional

import httpx
import pytest
import redis.asyncio as redis
from httpx import AsyncClient, ASGITransport
from sqlalchemy.exc import IntegrityError, OperationalError

from shortener import crud
from shortener.dependencies import get_cache_client, get_classifier, get_recorder, get_registry
from shortener.main import app
from shortener.redis import RedisClient
from shortener.services.classifier import ClickClassifier, GeoLocator
from shortener.services.recorder import ClickRecorder
from shortener.services.registry import URLRegistry

class FakeRedisBackend:
    """Stands in for redis.asyncio.Redis underneath RedisClient."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, Optional[int]] = {}
        self.down = False

    def _check(self):
        if self.down:
            raise redis.ConnectionError("Connection refused")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        pass

class FakeTransaction:
    def __init__(self, session: "FakeSession"):
        self.session = session

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None and self.session.store.fail_commits:
            self.session.pending.clear()
            raise OperationalError("COMMIT", {}, Exception("connection reset"))
        if exc_type is None:
            self.session.store.apply(self.session.pending)
        self.session.pending.clear()
        return False

class FakeSession:
    def __init__(self, store: "InMemoryStore"):
        self.store = store
        self.pending: list = []
        self.rollbacks = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def begin(self):
        return FakeTransaction(self)

    async def rollback(self):
        self.rollbacks += 1
        self.pending.clear()

class InMemoryStore:
    """The crud layer backed by dicts, enforcing the same unique constraints as the schema."""

    def __init__(self):
        self.rows: dict[str, object] = {}
        self.clicks: list = []
        self.reads = 0
        self.fail_commits = False

    # crud replacements
    async def create_short_url(self, db, short_url):
        if short_url.short_code in self.rows:
            raise IntegrityError("INSERT INTO short_urls", {}, Exception("duplicate key short_code"))
        if short_url.enabled and await self.get_enabled_short_url_by_long_url(db, short_url.long_url):
            raise IntegrityError("INSERT INTO short_urls", {}, Exception("duplicate key long_url"))
        if short_url.id is None:
            short_url.id = uuid.uuid4()
        self.rows[short_url.short_code] = short_url
        return short_url

    async def get_short_url_by_code(self, db, short_code):
        self.reads += 1
        return self.rows.get(short_code)

    async def get_enabled_short_url_by_long_url(self, db, long_url):
        for row in self.rows.values():
            if row.long_url == long_url and row.enabled:
                return row
        return None

    async def increment_click_count(self, db, short_url_id):
        if self.by_id(short_url_id) is None:
            return 0
        db.pending.append(("increment", short_url_id))
        return 1

    def add_click_event(self, db, click):
        db.pending.append(("click", click))
        return click

    # helpers
    def by_id(self, short_url_id):
        for row in self.rows.values():
            if row.id == short_url_id:
                return row
        return None

    def apply(self, operations):
        for kind, value in operations:
            if kind == "increment":
                self.by_id(value).click_count += 1
            else:
                self.clicks.append(value)

    def session(self) -> FakeSession:
        return FakeSession(self)

@pytest.fixture
def store(monkeypatch) -> InMemoryStore:
    store = InMemoryStore()
    for name in (
        "create_short_url",
        "get_short_url_by_code",
        "get_enabled_short_url_by_long_url",
        "increment_click_count",
        "add_click_event",
    ):
        monkeypatch.setattr(crud, name, getattr(store, name))
    return store

@pytest.fixture
def redis_backend() -> FakeRedisBackend:
    return FakeRedisBackend()

@pytest.fixture
def cache_client(redis_backend) -> RedisClient:
    client = RedisClient("localhost", 6379)
    client.client = redis_backend
    return client

@pytest.fixture
def geo_requests() -> list:
    return []

@pytest.fixture
def geolocator(geo_requests) -> GeoLocator:
    def handler(request: httpx.Request) -> httpx.Response:
        geo_requests.append(request)
        return httpx.Response(200, json={"ip": "8.8.8.8", "country": "US", "city": "Mountain View"})

    return GeoLocator(httpx.AsyncClient(transport=httpx.MockTransport(handler)), "https://ipinfo.io")

@pytest.fixture
async def client(store, cache_client, geolocator) -> AsyncGenerator[AsyncClient, None]:
    # The lifespan does not run under ASGITransport; every app.state
    # dependency is overridden instead.
    app.dependency_overrides[get_registry] = lambda: URLRegistry(store.session())
    app.dependency_overrides[get_recorder] = lambda: ClickRecorder(store.session)
    app.dependency_overrides[get_cache_client] = lambda: cache_client
    app.dependency_overrides[get_classifier] = lambda: ClickClassifier(geolocator)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    await geolocator.client.aclose()
