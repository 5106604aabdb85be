"""
Pytest fixtures for linktrace tests.
Provides test database, mock Redis, stubbed geolocation and FastAPI test client.
"""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Settings are read at import time; keep the app off real infrastructure
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("BASE_URL", "https://lt.example")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fastapi.testclient import TestClient


class MockRedisService:
    """In-memory stand-in for the Redis link cache."""

    _cache = {}

    @classmethod
    def reset(cls):
        cls._cache = {}

    @staticmethod
    def cache_link(code: str, link_id: int, url: str) -> bool:
        MockRedisService._cache[code] = (link_id, url)
        return True

    @staticmethod
    def get_cached_link(code: str):
        return MockRedisService._cache.get(code)

    @staticmethod
    def delete_cached_link(code: str) -> bool:
        MockRedisService._cache.pop(code, None)
        return True

    @staticmethod
    def health_check() -> bool:
        return True


@pytest.fixture(autouse=True)
def mock_redis():
    """Automatically mock Redis for all tests."""
    MockRedisService.reset()
    with patch("linktrace.redis_client.RedisService", MockRedisService):
        with patch("linktrace.services.RedisService", MockRedisService):
            with patch("linktrace.main.RedisService", MockRedisService):
                yield MockRedisService


class GeoStub:
    """Records geolocation requests and answers them with a canned handler."""

    def __init__(self):
        self.requests = []
        self.handler = self.ok

    @staticmethod
    def ok(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "ip": request.url.path.split("/")[1],
            "city": "Amsterdam",
            "country": "NL",
            "loc": "52.3740,4.8897",
        })

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture(autouse=True)
def geo_stub(monkeypatch):
    """Route every geolocation lookup through an in-process transport."""
    stub = GeoStub()

    def build_client():
        return httpx.AsyncClient(transport=httpx.MockTransport(stub), timeout=1.0)

    monkeypatch.setattr("linktrace.geolocation._build_client", build_client)
    return stub


@pytest.fixture(scope="function")
def test_engine():
    """SQLite in-memory engine with the full schema."""
    from linktrace.database import Base, init_db

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    init_db(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def test_db(test_engine):
    """Session bound to the in-memory test database."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(test_db, mock_redis):
    """Create a FastAPI test client with mocked dependencies."""
    from linktrace.main import app
    from linktrace.database import get_db

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": "test-admin-token"}


@pytest.fixture
def sample_url():
    """Sample URL for testing."""
    return "https://example.com/some/long/path?query=value"


@pytest.fixture
def create_link(client):
    """Shorten a URL through the API and return the response body."""
    def _create(url="https://example.com/some/long/path?query=value"):
        response = client.post("/api/shorten", json={"url": url})
        assert response.status_code == 200, response.text
        return response.json()
    return _create
