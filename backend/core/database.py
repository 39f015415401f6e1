import time
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import Column, DateTime, Uuid, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from core.exceptions import StorageError
from core.logging import get_structured_logger

structured_logger = get_structured_logger("database")

Base = declarative_base()
CHAR_LENGTH = 255


class BaseModel(Base):
    """Base model with surrogate UUID primary key and timestamps.

    Synced entities are addressed by their natural keys; ``updated_at`` is
    written explicitly by the persistence gateway on every upsert.
    """
    __abstract__ = True

    id = Column(Uuid(), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())


class DatabaseManager:
    """Owns the async engine and the session factory handed to the gateway"""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self.consecutive_failures = 0

    def initialize(self, database_uri: str, echo: bool = False, **engine_kwargs):
        if self.engine is not None:
            return

        if database_uri.startswith("postgresql"):
            engine_kwargs.setdefault("pool_size", 10)
            engine_kwargs.setdefault("max_overflow", 20)
            engine_kwargs.setdefault("pool_recycle", 3600)

        self.engine = create_async_engine(database_uri, echo=echo, pool_pre_ping=True, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        structured_logger.info("Database engine initialized", metadata={"dialect": self.engine.dialect.name})

    async def create_all(self):
        """Create any missing synced tables"""
        if self.engine is None:
            raise StorageError("Database engine not initialized")
        # Register every mapped class on Base.metadata
        import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        structured_logger.info("Database tables ensured", metadata={"tables": sorted(Base.metadata.tables)})

    async def dispose(self):
        if self.engine is not None:
            await self.engine.dispose()
        self.engine = None
        self.session_factory = None

    async def health_check(self) -> Dict[str, Any]:
        """Run ``SELECT 1``; never raises"""
        if self.session_factory is None:
            return {"status": "uninitialized", "message": "Database not initialized."}

        started = time.perf_counter()
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            self.consecutive_failures += 1
            structured_logger.error(
                "Database health check failed",
                metadata={"consecutive_failures": self.consecutive_failures},
                exception=e,
            )
            return {
                "status": "unhealthy",
                "error": str(e),
                "consecutive_failures": self.consecutive_failures,
            }

        self.consecutive_failures = 0
        return {
            "status": "healthy",
            "response_time_ms": round((time.perf_counter() - started) * 1000, 2),
        }


# Global database manager instance
db_manager = DatabaseManager()


def initialize_db(database_uri: str, echo: bool = False, **engine_kwargs):
    """Initializes the database manager with engine and session factory."""
    db_manager.initialize(database_uri, echo, **engine_kwargs)
