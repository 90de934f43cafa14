import os
import uuid
from datetime import timedelta
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock

# Must be set before stepper.config is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("RATE_LIMIT_CALLS", "100000")
os.environ.setdefault("AUTH_RATE_LIMIT_CALLS", "100000")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from stepper.api.auth.jwt_handler import JWTHandler
from stepper.api.main import create_app
from stepper.clients.supabase import SupabaseClient, get_supabase_client
from stepper.db import Database, get_database, get_db_session
from stepper.models import Base, StepEntry, User, UserPreferences
from stepper.api.steps.service import utc_today

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(name="session")
async def session_fixture(engine) -> AsyncGenerator[AsyncSession, None]:
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session


@pytest.fixture
def supabase() -> AsyncMock:
    return AsyncMock(spec=SupabaseClient)


@pytest.fixture
def app(engine, session: AsyncSession, supabase: AsyncMock):
    app = create_app()
    database = Database.from_engine(engine)

    async def get_session_override() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_db_session] = get_session_override
    app.dependency_overrides[get_supabase_client] = lambda: supabase
    app.dependency_overrides[get_database] = lambda: database
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(name="client")
async def client_fixture(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        yield client


def make_token(user_id: uuid.UUID, email: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
    payload = {"sub": str(user_id)}
    if email:
        payload["email"] = email
    return JWTHandler().create_access_token(payload, expires_delta)


def auth_headers(user_id: uuid.UUID, email: Optional[str] = None) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


@pytest.fixture
def create_user(session: AsyncSession):
    """Factory inserting a profile (and optionally preferences)."""

    async def _create(display_name: str = "Walker", **preferences) -> User:
        user = User(id=uuid.uuid4(), display_name=display_name)
        session.add(user)
        if preferences:
            session.add(UserPreferences(user_id=user.id, **preferences))
        await session.commit()
        return user

    return _create


@pytest.fixture
def add_steps(session: AsyncSession):
    """Factory inserting step entries `days_ago` days before today."""

    async def _add(user_id: uuid.UUID, step_count: int, days_ago: int = 0,
                   source: Optional[str] = None, distance_meters: Optional[float] = None) -> StepEntry:
        entry = StepEntry(
            user_id=user_id,
            step_count=step_count,
            distance_meters=distance_meters,
            date=utc_today() - timedelta(days=days_ago),
            source=source,
        )
        session.add(entry)
        await session.commit()
        return entry

    return _add
