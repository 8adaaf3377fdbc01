"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-qa-analytics-tests")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DEBUG", "false")

from collections.abc import AsyncGenerator, Sequence  # noqa: E402

import fakeredis.aioredis  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from qa_analytics.core.database import Base, enable_sqlite_foreign_keys  # noqa: E402
from qa_analytics.core.settings import IngestConfig  # noqa: E402
from qa_analytics.models.auth_session import AuthSession  # noqa: E402, F401
from qa_analytics.models.generation_session import GenerationSession  # noqa: E402
from qa_analytics.models.qa_record import QARecord  # noqa: E402, F401
from qa_analytics.models.session_statistics import SessionStatistics  # noqa: E402, F401
from qa_analytics.models.user import User  # noqa: E402
from qa_analytics.services.ingest_service import QAIngestService  # noqa: E402
from qa_analytics.services.session_locks import SessionLocks  # noqa: E402
from qa_analytics.services.statistics_service import StatisticsService  # noqa: E402
from qa_analytics.services.token_service import TokenService  # noqa: E402

# --- Test DB (SQLite in-memory) ---

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool
)
enable_sqlite_foreign_keys(test_engine)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


@pytest.fixture(autouse=True)
async def setup_db() -> AsyncGenerator[None, None]:
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a test database session."""
    async with test_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def override_get_session_factory() -> async_sessionmaker[AsyncSession]:
    return test_session_factory


# --- Test Redis (fakeredis) ---


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Create a fresh fake Redis client."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture(autouse=True)
def patch_redis(
    fake_redis: fakeredis.aioredis.FakeRedis, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Patch the global redis_client read by the middleware and get_redis()."""
    monkeypatch.setattr("qa_analytics.core.redis.redis_client", fake_redis)


@pytest.fixture(autouse=True)
def reset_process_state() -> None:
    """Forget live runs and rate-limit counters between tests."""
    from qa_analytics.core.rate_limit import limiter
    from qa_analytics.dependencies import get_run_tracker, get_session_locks

    get_run_tracker.cache_clear()
    get_session_locks.cache_clear()
    limiter.reset()


# --- Token helpers ---


@pytest.fixture
def token_service(fake_redis: fakeredis.aioredis.FakeRedis) -> TokenService:
    """Create a TokenService backed by fake Redis."""
    return TokenService(fake_redis)


def make_auth_headers(
    fake_redis: fakeredis.aioredis.FakeRedis,
    user_id: str = "user-1",
    email: str = "test@test.com",
    roles: Sequence[str] = ("user",),
    session_id: str = "auth-session-1",
) -> dict[str, str]:
    """Generate Authorization headers with a valid access token."""
    ts = TokenService(fake_redis)
    token = ts.create_access_token(
        user_id=user_id, email=email, roles=list(roles), session_id=session_id
    )
    return {"Authorization": f"Bearer {token}"}


# --- DB helpers ---


async def create_user(
    session: AsyncSession,
    user_id: str = "user-1",
    email: str = "test@test.com",
    roles: Sequence[str] = ("user",),
    password: str | None = None,
) -> User:
    user = User(
        id=user_id,
        email=email,
        name=email.split("@")[0],
        display_name=email.split("@")[0],
        password=password,
        roles=list(roles),
        is_active=True,
    )
    session.add(user)
    await session.commit()
    return user


async def create_generation_session(
    session: AsyncSession,
    session_id: str = "session-1",
    user_id: str = "user-1",
    kind: str = "question",
    **fields: str,
) -> GenerationSession:
    values = {
        "name": "Sample session",
        "timestamp": "2026-10-01T09:00:00",
        "model": "gpt-4o-mini",
    }
    values.update(fields)
    generation_session = GenerationSession(
        id=session_id, user_id=user_id, type=kind, **values
    )
    session.add(generation_session)
    await session.commit()
    return generation_session


# --- Service fixtures ---


@pytest.fixture
def session_locks() -> SessionLocks:
    return SessionLocks()


@pytest.fixture
def ingest_config() -> IngestConfig:
    return IngestConfig(
        token_policy="strict",
        max_attempts=3,
        backoff_initial_seconds=0,
        backoff_max_seconds=0,
    )


@pytest.fixture
def ingest_service(
    ingest_config: IngestConfig, session_locks: SessionLocks
) -> QAIngestService:
    return QAIngestService(test_session_factory, ingest_config, session_locks)


@pytest.fixture
def statistics_service(session_locks: SessionLocks) -> StatisticsService:
    return StatisticsService(test_session_factory, session_locks)


# --- App override & client fixtures ---


def _get_app():  # type: ignore[no-untyped-def]
    """Import app lazily and apply overrides."""
    from qa_analytics.core.database import get_async_session, get_session_factory
    from qa_analytics.main import app

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_session_factory] = override_get_session_factory
    return app


@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client without credentials."""
    application = _get_app()
    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def authed_client(
    fake_redis: fakeredis.aioredis.FakeRedis,
    db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client authenticated as a stored regular user."""
    await create_user(db_session)
    application = _get_app()
    headers = make_auth_headers(fake_redis)
    transport = ASGITransport(app=application)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=headers
    ) as ac:
        yield ac


@pytest.fixture
async def admin_client(
    fake_redis: fakeredis.aioredis.FakeRedis,
    db_session: AsyncSession,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client authenticated as a stored admin."""
    await create_user(
        db_session, user_id="admin-1", email="admin@test.com", roles=("admin",)
    )
    application = _get_app()
    headers = make_auth_headers(
        fake_redis,
        user_id="admin-1",
        email="admin@test.com",
        roles=("admin",),
        session_id="auth-session-admin",
    )
    transport = ASGITransport(app=application)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers=headers
    ) as ac:
        yield ac


# --- DB session for tests ---


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a raw async session for repository tests."""
    async with test_session_factory() as session:
        yield session
