"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool, Pool

from emergency_backend.app.main import app
from emergency_backend.app.db.session import get_db, Base
from emergency_backend.app.core.redis_client import get_redis
from emergency_backend.app.realtime import server as realtime_server
import emergency_backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# In-memory stand-in for the revocation store
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def setex(self, key, ttl, value):
        return await self.set(key, value, ex=ttl)

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


class FakeTransport:
    """Stands in for the Socket.IO server; records every emit."""

    def __init__(self):
        self.emitted = []
        self.fail = False

    async def emit(self, event, data=None, to=None, **kwargs):
        if self.fail:
            raise ConnectionError("transport down")
        self.emitted.append((event, data, to))

    def events_for(self, sid, event=None):
        return [
            (name, data) for name, data, to in self.emitted
            if to == sid and (event is None or name == event)
        ]


@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    original_factory = realtime_server.gateway.session_factory
    realtime_server.gateway.session_factory = TestingSessionLocal

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client
    realtime_server.gateway.session_factory = original_factory


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def transport():
    """Bind the process-wide connection registry to a recording transport."""
    fake = FakeTransport()
    realtime_server.connection_registry.init(fake)
    yield fake
    realtime_server.connection_registry.teardown()


@pytest.fixture
def registry():
    return realtime_server.connection_registry


@pytest.fixture
def notifier():
    return realtime_server.notifier


@pytest.fixture
def gateway():
    return realtime_server.gateway


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


# --- Helpers ---

PICKUP = {"latitude": 12.9716, "longitude": 77.5946, "address": "MG Road, Bengaluru"}
DESTINATION = {"latitude": 12.9352, "longitude": 77.6245, "address": "City Hospital, Koramangala"}


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register_patient(client: AsyncClient, email: str = "patient@test.com") -> dict:
    response = await client.post("/v1/auth/register", json={
        "email": email,
        "full_name": "Pat Patient",
        "phone": "9000000001",
        "password": "secret123",
        "role": "PATIENT",
    })
    assert response.status_code == 201, response.text
    return response.json()


async def register_driver(
    client: AsyncClient,
    email: str = "driver@test.com",
    vehicle_type: str = "ICU",
    plate: str = "KA-01-0001",
    license_number: str = None,
) -> dict:
    response = await client.post("/v1/auth/register", json={
        "email": email,
        "full_name": f"Driver {plate}",
        "phone": "9000000002",
        "password": "secret123",
        "role": "DRIVER",
        "license_number": license_number or f"DL-{plate}",
        "ambulance": {
            "vehicle_type": vehicle_type,
            "vehicle_name": f"{vehicle_type} Unit",
            "plate_number": plate,
        },
    })
    assert response.status_code == 201, response.text
    return response.json()


async def create_request(client: AsyncClient, token: str, vehicle_type: str = "ICU", **overrides) -> dict:
    body = {
        "pickup_location": PICKUP,
        "destination": DESTINATION,
        "vehicle_type": vehicle_type,
        "emergency_type": "cardiac",
        "notes": "Chest pain, conscious",
    }
    body.update(overrides)
    response = await client.post("/v1/emergency/request", json=body, headers=auth_headers(token))
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def connect(gateway, sid: str, token: str, **join) -> None:
    """Authenticate a socket connection and join it, as a client would."""
    await gateway.on_connect(sid, {}, {"token": token})
    await gateway.on_join(sid, join)
