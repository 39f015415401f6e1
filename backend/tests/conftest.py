import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Add the backend directory to the Python path
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.future import select
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from core.database import Base
from schemas.sync import HandlerAction, HandlerResult
from services.database import DatabaseService
from services.transform import TransformService

# Test database setup
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeClock:
    """Deterministic clock: each call returns a strictly later instant"""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        value = self.current
        self.current += self.step
        return value


@pytest_asyncio.fixture
async def async_engine():
    """In-memory SQLite engine with every synced table created"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


class EntityStore:
    """Read-side helper for asserting on what the gateway wrote"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def find_by_key(self, model, **key):
        async with self.session_factory() as session:
            result = await session.execute(select(model).filter_by(**key))
            return result.scalar_one_or_none()

    async def count(self, model, **filters):
        async with self.session_factory() as session:
            stmt = select(func.count(model.id)).where(
                *[getattr(model, field) == value for field, value in filters.items()]
            )
            result = await session.execute(stmt)
            return result.scalar_one()


@pytest.fixture
def store(session_factory):
    return EntityStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_service(session_factory, clock):
    return DatabaseService(session_factory, clock=clock)


@pytest.fixture
def transform_service():
    return TransformService()


@pytest.fixture
def event_router(db_service, transform_service):
    from main import build_router
    return build_router(db_service, transform_service)


@pytest.fixture
def mock_db_service():
    """Gateway double for tests that must prove storage is never touched"""
    return AsyncMock(spec=DatabaseService)


@pytest.fixture
def make_mock_handler():
    """Build a handler double whose named coroutine methods return a created result"""
    def _make(*methods, entity="entity"):
        handler = MagicMock()
        for method in methods:
            setattr(
                handler,
                method,
                AsyncMock(return_value=HandlerResult(entity=entity, action=HandlerAction.CREATED, affected=1)),
            )
        return handler
    return _make
