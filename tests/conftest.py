import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, time
from unittest.mock import MagicMock
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Load environment variables from .env file
load_dotenv()

# Settings are read at import time; tests never need a live Postgres or Redis
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("REDIS_PORT", "6379")
os.environ.setdefault("LOG_FORMAT", "console")

from app.core.redis_client import CacheManager  # noqa: E402
from app.database import get_db  # noqa: E402
from app.dependencies import get_cache_manager  # noqa: E402
from app.main import app  # noqa: E402
from app.models import appointments, medical_orders, metadata  # noqa: E402

# Test database URL - an isolated in-memory database unless overridden
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")

if TEST_DATABASE_URL.startswith("sqlite"):
    # One shared connection so every session sees the same in-memory database
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    from sqlalchemy.pool import NullPool

    test_engine = create_async_engine(
        TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://"),
        echo=False,
        poolclass=NullPool,
    )

# Create test session factory
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh schema."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    # Drop tables after test
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in that always misses."""
    redis_mock = MagicMock()
    redis_mock.get.return_value = None
    return redis_mock


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: CacheManager(redis_client=mock_redis)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def patient_id() -> UUID:
    return uuid4()


@pytest.fixture
def actor_headers() -> dict:
    """Headers identifying the acting staff member."""
    return {"X-Actor-Id": str(uuid4())}


@pytest.fixture
def make_order(db_session: AsyncSession) -> Callable[..., Awaitable[UUID]]:
    """Factory inserting a medical order and returning its id."""

    async def _make_order(
        patient_id: UUID,
        total_sessions: int = 3,
        order_date: date = date(2026, 1, 10),
        description: str = "Physiotherapy",
        sessions_used: int = 0,
        completed: bool = False,
    ) -> UUID:
        order_id = uuid4()
        await db_session.execute(
            insert(medical_orders).values(
                id=order_id,
                patient_id=patient_id,
                description=description,
                total_sessions=total_sessions,
                sessions_used=sessions_used,
                completed=completed,
                order_date=order_date,
            )
        )
        await db_session.commit()
        return order_id

    return _make_order


@pytest.fixture
def make_appointment(db_session: AsyncSession) -> Callable[..., Awaitable[UUID]]:
    """Factory inserting an appointment and returning its id."""

    async def _make_appointment(
        patient_id: UUID,
        status: str = "scheduled",
        appointment_date: date = date(2026, 3, 2),
        appointment_time: time = time(9, 0),
        doctor_id: UUID | None = None,
        duration_minutes: int = 30,
    ) -> UUID:
        appointment_id = uuid4()
        await db_session.execute(
            insert(appointments).values(
                id=appointment_id,
                patient_id=patient_id,
                doctor_id=doctor_id,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                duration_minutes=duration_minutes,
                status=status,
            )
        )
        await db_session.commit()
        return appointment_id

    return _make_appointment
