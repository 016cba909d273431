"""
Pytest configuration and fixtures for testing
"""
import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from journal_billing.config import Settings, get_settings
from journal_billing.database import Base, get_db
from journal_billing.deps import get_stripe_service
from journal_billing.main import app
from tests.fakes import FakeStripeService

TEST_DATABASE_URL = "sqlite+aiosqlite://"

MONTHLY_PRICE = "price_monthly_test"
YEARLY_PRICE = "price_yearly_test"
REVENUECAT_SECRET = "rc_webhook_secret"
STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
APP_URL = "https://journal.test"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        stripe_secret_key="sk_test_123",
        stripe_price_id_monthly=MONTHLY_PRICE,
        stripe_price_id_yearly=YEARLY_PRICE,
        stripe_webhook_secret=STRIPE_WEBHOOK_SECRET,
        revenuecat_webhook_secret=REVENUECAT_SECRET,
        app_url=APP_URL,
    )


@pytest.fixture
async def session_maker():
    """
    Isolated in-memory SQLite database per test.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import journal_billing.models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def fake_stripe() -> FakeStripeService:
    return FakeStripeService()


@pytest.fixture
async def async_client(session_maker, settings, fake_stripe):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_stripe_service] = lambda: fake_stripe

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
