"""
Centralized Test Configuration.
"""

import pytest
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.redis_client import get_redis
from backend.app.api.v1.endpoints.delivery_fees import get_holiday_calendar
from backend.app.domain.pricing.holidays import FixedHolidayCalendar
from backend.app.models.pricing_config import PricingConfig
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

TEST_HOLIDAYS = FixedHolidayCalendar(["01-01", "07-01", "12-25", "12-26"])

# Default platform pricing used across tests
DEFAULT_PRICING = {
    "base_fee": Decimal("2.99"),
    "price_per_km": Decimal("0.50"),
    "free_delivery_threshold": Decimal("25.00"),
    "max_free_distance_km": Decimal("5"),
    "remote_zone_fee": Decimal("5.00"),
    "remote_zone_distance_km": Decimal("15"),
    "multi_stop_fee": Decimal("3.00"),
    "rush_hour_multiplier": Decimal("1.5"),
    "weekend_multiplier": Decimal("1.2"),
    "holiday_multiplier": Decimal("1.3"),
}


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


_mock_redis = MockRedis()


@pytest.fixture(scope="session")
def redis_client_session():
    return _mock_redis


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by the health check
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_holiday_calendar] = lambda: TEST_HOLIDAYS
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


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
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def session_factory():
    """Independent sessions, one per simulated caller."""
    return TestingSessionLocal


@pytest.fixture
def pricing_values():
    return dict(DEFAULT_PRICING)


@pytest.fixture
async def active_pricing(db_session):
    """Publish the default pricing configuration."""
    config = PricingConfig(name="default", is_active=True, **DEFAULT_PRICING)
    db_session.add(config)
    await db_session.commit()
    await db_session.refresh(config)
    return config
