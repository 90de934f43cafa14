"""
Database engine, sessions and startup schema for the Stepper API.

One `Database` per process owns the async engine. Requests get a session
through `get_db_session`; `/health` reports on the same engine through
`get_database`.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import config
from .models.base import Base

logger = logging.getLogger(__name__)

SLOW_QUERY_SECONDS = 1.0


class Database:
    """Async engine and session factory shared by every request."""

    def __init__(self, database_url: str, echo: bool = False, pool_size: int = 10):
        self.database_url = database_url
        self.echo = echo
        self.pool_size = pool_size
        self.engine: Optional[AsyncEngine] = None
        self.async_session: Optional[async_sessionmaker] = None

    @classmethod
    def from_engine(cls, engine: AsyncEngine) -> "Database":
        """Wrap an engine created elsewhere, skipping connection setup."""
        database = cls(str(engine.url))
        database._bind(engine)
        return database

    def _engine_options(self) -> dict:
        if self.database_url.startswith("sqlite"):
            return {"echo": self.echo}
        return {
            "echo": self.echo,
            "pool_pre_ping": True,
            "pool_recycle": 3600,
            "pool_size": self.pool_size,
            "max_overflow": 20,
            "connect_args": {
                "command_timeout": 60,
                "server_settings": {"application_name": "stepper_api"},
            },
        }

    def _bind(self, engine: AsyncEngine):
        self.engine = engine
        self.async_session = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=True,
        )

    async def initialize(self, max_retries: int = 3, retry_delay: float = 2.0):
        """
        Create the engine and check it can reach the database.

        Args:
            max_retries: Connection attempts before giving up
            retry_delay: Seconds before the second attempt, doubled after each failure
        """
        for attempt in range(1, max_retries + 1):
            logger.info(f"Connecting to database (attempt {attempt}/{max_retries})")
            self._bind(create_async_engine(self.database_url, **self._engine_options()))
            try:
                await self.ping()
            except Exception as e:
                logger.error(f"Database connection attempt {attempt} failed: {e}")
                await self.engine.dispose()
                if attempt == max_retries:
                    raise
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
                continue

            self._log_slow_queries()
            logger.info("Database connection ready")
            return

    async def ping(self) -> float:
        """Run `SELECT 1` and return the round trip in milliseconds."""
        started = time.perf_counter()
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return round((time.perf_counter() - started) * 1000, 2)

    def _log_slow_queries(self):
        @event.listens_for(self.engine.sync_engine, "before_cursor_execute")
        def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            context._query_start_time = time.perf_counter()

        @event.listens_for(self.engine.sync_engine, "after_cursor_execute")
        def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            elapsed = time.perf_counter() - context._query_start_time
            if elapsed > SLOW_QUERY_SECONDS:
                logger.warning(f"Slow query ({elapsed:.2f}s): {statement[:100]}...")

    async def create_tables(self):
        """Create any missing tables from the model metadata."""
        if not self.engine:
            await self.initialize()

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits when the block succeeds and rolls back otherwise."""
        if not self.async_session:
            await self.initialize()

        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error(f"Database session error: {e}")
                raise

    async def close(self):
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")

    async def health_check(self) -> Dict:
        """Connectivity report used by `/health`."""
        report = {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
        try:
            report["response_time_ms"] = await self.ping()
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            report.update(status="unhealthy", error=str(e))
        return report


# Global database instance
db: Optional[Database] = None


async def get_database() -> Database:
    """Process-wide database, created and connected on first use."""
    global db
    if db is None:
        database = Database(config.get_database_url(), echo=config.db_echo, pool_size=config.db_pool_size)
        await database.initialize()
        db = database
    return db


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    database = await get_database()
    async with database.get_session() as session:
        yield session


async def init_database():
    database = await get_database()
    await database.create_tables()


async def close_database():
    global db
    if db is not None:
        await db.close()
        db = None
