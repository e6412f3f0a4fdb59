"""Pytest configuration and fixtures for API tests."""
import pytest
from httpx import ASGITransport, AsyncClient

from tests.fakes import TEST_BUCKET, FakeS3Client
from vault.models import create_engine, create_session_factory, init_db
from vault.objects import ObjectStore
from vault.users import UserStore
from web.api.main import create_app
from web.auth import SessionCodec

ADMIN_PASSWORD = "testpass123"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def users(engine):
    store = UserStore(create_session_factory(engine))
    await store.ensure_default_admin("admin", ADMIN_PASSWORD)
    return store


@pytest.fixture
def s3():
    return FakeS3Client()


@pytest.fixture
def objects(s3):
    return ObjectStore(s3, TEST_BUCKET)


@pytest.fixture
def sessions():
    return SessionCodec("test-secret")


@pytest.fixture
def app(users, objects, sessions):
    return create_app(users, objects, sessions)


@pytest.fixture
async def client(app):
    """Async HTTP client for testing the API. Keeps cookies between requests."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def logged_in(client):
    """Login as admin; the session cookie stays on the client."""
    r = await client.post(
        "/login",
        json={"username": "admin", "password": ADMIN_PASSWORD},
    )
    assert r.status_code == 200, f"Login failed: {r.text}"
    return client
