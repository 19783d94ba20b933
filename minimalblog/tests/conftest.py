"""Shared fixtures for minimalblog tests."""

import copy
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from minimalblog.errors import BackendUnavailable, PersistenceFailure
from minimalblog.services.local_storage import LocalKeyValueStore
from minimalblog.services.repository import BlogRepository
from minimalblog.services.storage import BlogStorage, LocalStore
from minimalblog.services.workflow import AdminSessions

TEST_SECRET_CODE = "CODE"


class FakeSubscription:
    def __init__(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class FakeRemoteStore(BlogStorage):
    """In-memory stand-in for the realtime database collection."""

    name = "remote"
    supports_atomic_increment = True

    def __init__(self, records: dict[str, Any] | None = None) -> None:
        self.records: dict[str, Any] = copy.deepcopy(records or {})
        self.fail_reads = False
        self.fail_writes = False
        self.increments: list[tuple[str, str, int]] = []
        self.field_updates: list[tuple[str, str, Any]] = []
        self.on_change = None
        self.on_error = None
        self.subscription: FakeSubscription | None = None
        self.closed = False

    async def read_all(self) -> dict[str, Any]:
        if self.fail_reads:
            raise BackendUnavailable("remote unreachable")
        return copy.deepcopy(self.records)

    async def read_one(self, key: str) -> Any | None:
        if self.fail_reads:
            raise BackendUnavailable("remote unreachable")
        return copy.deepcopy(self.records.get(key))

    async def write_one(self, key: str, record: dict[str, Any]) -> None:
        if self.fail_writes:
            raise PersistenceFailure("remote write failed")
        self.records[key] = copy.deepcopy(record)

    async def update_field(self, key: str, field: str, value: Any) -> None:
        if self.fail_writes:
            raise PersistenceFailure("remote write failed")
        self.field_updates.append((key, field, value))
        self.records[key][field] = value

    async def increment_field(self, key: str, field: str, delta: int = 1) -> int:
        if self.fail_writes:
            raise PersistenceFailure("remote write failed")
        self.increments.append((key, field, delta))
        self.records[key][field] = self.records[key].get(field, 0) + delta
        return self.records[key][field]

    def subscribe(self, on_change, on_error) -> FakeSubscription:
        self.on_change = on_change
        self.on_error = on_error
        self.subscription = FakeSubscription()
        return self.subscription

    async def close(self) -> None:
        self.closed = True


def make_record(post_id: str, **overrides: Any) -> dict[str, Any]:
    """A stored record in the shape the site writes."""
    record = {
        "id": post_id,
        "title": f"Post {post_id}",
        "content": f"Content of {post_id}",
        "preview": f"Content of {post_id}",
        "author": {"name": "Jane Writer", "linkedin": None},
        "createdAt": "2026-02-20T10:00:00Z",
        "upvotes": 0,
        "status": "published",
        "source": "manual",
    }
    record.update(overrides)
    return record


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Reset module-level caches and app overrides between tests."""
    yield

    # 1. Settings LRU cache
    from minimalblog.config import get_settings

    get_settings.cache_clear()

    # 2. Dependency overrides on the shared app
    from minimalblog.main import app

    app.dependency_overrides.clear()


@pytest.fixture
def mock_settings(monkeypatch, tmp_path):
    """Provide a Settings object with safe test defaults."""
    from minimalblog.config import Settings, get_settings

    test_settings = Settings(
        firebase_api_key="test-api-key",
        firebase_database_url="https://test-default-rtdb.firebaseio.com",
        firebase_project_id="test-project",
        secret_code=TEST_SECRET_CODE,
        local_storage_path=str(tmp_path / "local-storage.json"),
    )

    get_settings.cache_clear()
    monkeypatch.setattr("minimalblog.config.get_settings", lambda: test_settings)

    # Patch get_settings in modules that import it directly
    for mod_path in [
        "minimalblog.routers.env",
    ]:
        monkeypatch.setattr(f"{mod_path}.get_settings", lambda: test_settings)

    return test_settings


@pytest.fixture
def kv(tmp_path) -> LocalKeyValueStore:
    return LocalKeyValueStore(tmp_path / "local-storage.json")


@pytest.fixture
def local_store(kv) -> LocalStore:
    return LocalStore(kv)


@pytest.fixture
def remote_store() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
async def local_repository(local_store) -> BlogRepository:
    """Repository bound to an empty local store (seeded on initialize)."""
    repository = BlogRepository(local_store)
    await repository.initialize()
    return repository


@pytest.fixture
async def client(local_repository):
    """HTTP client for the app with the repository and sessions injected."""
    from minimalblog.dependencies import get_admin_sessions, get_repository
    from minimalblog.main import app

    sessions = AdminSessions(TEST_SECRET_CODE)
    app.dependency_overrides[get_repository] = lambda: local_repository
    app.dependency_overrides[get_admin_sessions] = lambda: sessions

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as http_client:
        yield http_client
