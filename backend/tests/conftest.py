"""Shared test configuration and fixtures.

Each test gets a fresh in-memory SQLite database (aiosqlite). The app's
``get_db`` dependency is overridden to hand out the test session, and Wave
settings are reset so no test talks to the real provider.
"""

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import exampremium.models  # noqa: F401
from exampremium.billing.plans import Plan
from exampremium.config import settings
from exampremium.database import Base, get_db, utcnow
from exampremium.main import app
from exampremium.models.subscription import PROVIDER_WAVE, Subscription, SubscriptionStatus
from exampremium.models.user import ROLE_ADMIN, ROLE_STUDENT, User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_WEBHOOK_SECRET = "whsec_test_secret"
TEST_WAVE_API_KEY = "wave_sn_prod_test_key"


def create_access_token(user_id: str, expires_delta: timedelta | None = None, **claims) -> str:
    """Sign a token the way the platform's auth service does."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))
    payload = {"sub": user_id, "exp": expire, "iat": now, "type": "access", **claims}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session.

    The override commits and rolls back exactly like ``get_db``, so a request
    that fails discards its uncommitted writes.
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def wave_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Unconfigured Wave and default plan table unless a test opts in."""
    monkeypatch.setattr(settings, "wave_api_key", "")
    monkeypatch.setattr(settings, "wave_webhook_secret", "")
    monkeypatch.setattr(settings, "wave_api_url", "https://api.wave.test/v1")
    monkeypatch.setattr(settings, "wave_currency", "XOF")
    monkeypatch.setattr(settings, "frontend_url", "https://exams.test")
    monkeypatch.setattr(settings, "premium_monthly_amount", "2500")
    monkeypatch.setattr(settings, "premium_monthly_days", 30)
    monkeypatch.setattr(settings, "premium_annual_amount", "20000")
    monkeypatch.setattr(settings, "premium_annual_days", 365)


@pytest.fixture
def webhook_secret(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setattr(settings, "wave_webhook_secret", TEST_WEBHOOK_SECRET)
    return TEST_WEBHOOK_SECRET


@pytest.fixture
def wave_api_key(monkeypatch: pytest.MonkeyPatch) -> str:
    monkeypatch.setattr(settings, "wave_api_key", TEST_WAVE_API_KEY)
    return TEST_WAVE_API_KEY


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    async def _make_user(
        role: str = ROLE_STUDENT,
        is_premium: bool = False,
        is_active: bool = True,
    ) -> User:
        unique = uuid.uuid4().hex[:8]
        user = User(
            email=f"student-{unique}@test.com",
            name="Test Student",
            role=role,
            is_active=is_active,
            is_premium=is_premium,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user


@pytest.fixture
def make_subscription(db_session: AsyncSession) -> Callable[..., Awaitable[Subscription]]:
    async def _make_subscription(
        user: User,
        tx_ref: str | None = None,
        status: SubscriptionStatus = SubscriptionStatus.PENDING,
        plan: Plan = Plan.MONTHLY,
        provider: str = PROVIDER_WAVE,
        start_at: datetime | None = None,
        end_at: datetime | None = None,
    ) -> Subscription:
        subscription = Subscription(
            user_id=user.id,
            tx_ref=tx_ref or f"cos-{uuid.uuid4().hex[:12]}",
            status=status,
            plan=plan.value,
            provider=provider,
            start_at=start_at or utcnow(),
            end_at=end_at,
        )
        db_session.add(subscription)
        await db_session.flush()
        return subscription

    return _make_subscription


@pytest.fixture
def make_token() -> Callable[..., str]:
    return create_access_token


@pytest_asyncio.fixture
async def test_user(make_user) -> User:
    return await make_user()


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    """Return Authorization headers for the test user."""
    return {"Authorization": f"Bearer {create_access_token(str(test_user.id))}"}


@pytest_asyncio.fixture
async def admin_user(make_user) -> User:
    return await make_user(role=ROLE_ADMIN)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(admin_user.id))}"}
