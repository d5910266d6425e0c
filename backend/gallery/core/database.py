"""
Database access for the gallery.

``DatabaseManager`` owns the async engine and hands out two kinds of
sessions: ``session()`` for reads and ``transaction()`` for writes. A
transaction commits when its ``async with`` block exits, so cache
invalidation placed after the block only ever sees committed rows.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from prometheus_client import Counter, Histogram
from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, StaticPool
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import Settings, get_settings

logger = structlog.get_logger()

DB_SESSION_DURATION = Histogram(
    "gallery_db_session_duration_seconds",
    "Time spent inside a database session",
    ["kind"],
)
DB_ROLLBACKS = Counter(
    "gallery_db_rollbacks_total",
    "Write transactions rolled back because the block raised",
)


def _log_retry(retry_state) -> None:
    logger.warning(
        "Database not reachable yet, retrying",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep,
    )


class DatabaseManager:
    """Engine, session factory and health probe for one database URL."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    @property
    def is_sqlite(self) -> bool:
        return self.settings.database_url.startswith("sqlite")

    def _engine_options(self) -> Dict[str, Any]:
        url = self.settings.database_url
        if self.is_sqlite:
            options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
            # In-memory databases live and die with their single connection
            if ":memory:" in url or url.rstrip("/").endswith("aiosqlite:"):
                options["poolclass"] = StaticPool
            return options

        return {
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": self.settings.DATABASE_POOL_SIZE,
            "max_overflow": self.settings.DATABASE_MAX_OVERFLOW,
            "pool_timeout": self.settings.DATABASE_POOL_TIMEOUT,
            "pool_recycle": self.settings.DATABASE_POOL_RECYCLE,
            "pool_pre_ping": True,
            "connect_args": {
                "server_settings": {"application_name": self.settings.SERVICE_NAME}
            },
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((OperationalError, InterfaceError, OSError)),
        before_sleep=_log_retry,
        reraise=True,
    )
    async def _ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def initialize(self) -> None:
        """Create the engine and check that the database answers."""
        if self.engine is not None:
            return

        started = time.perf_counter()
        self.engine = create_async_engine(
            self.settings.database_url,
            echo=self.settings.debug,
            **self._engine_options(),
        )
        self.session_factory = async_sessionmaker(
            bind=self.engine, expire_on_commit=False, autoflush=False
        )

        try:
            await self._ping()
        except Exception as e:
            logger.error("Database initialization failed", error=str(e))
            await self.close()
            raise

        logger.info(
            "Database initialized",
            dialect=self.engine.dialect.name,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )

    async def create_all(self) -> None:
        """Create the schema from the ORM metadata (sqlite and tests only)."""
        from ..models import Base

        if self.engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    def _factory(self) -> async_sessionmaker:
        if self.session_factory is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self.session_factory

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session for reads; nothing is committed."""
        started = time.perf_counter()
        try:
            async with self._factory()() as session:
                yield session
        finally:
            DB_SESSION_DURATION.labels(kind="read").observe(time.perf_counter() - started)

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in one transaction.

        Commits when the block exits normally; on any exception rolls back
        and re-raises it unchanged.
        """
        started = time.perf_counter()
        try:
            async with self._factory()() as session:
                try:
                    yield session
                    await session.commit()
                except Exception as e:
                    await session.rollback()
                    DB_ROLLBACKS.inc()
                    logger.warning(
                        "Transaction rolled back",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise
        finally:
            DB_SESSION_DURATION.labels(kind="write").observe(time.perf_counter() - started)

    def pool_status(self) -> Dict[str, Any]:
        if self.engine is None:
            return {"initialized": False}
        pool = self.engine.pool
        status: Dict[str, Any] = {"initialized": True, "pool_class": type(pool).__name__}
        if isinstance(pool, AsyncAdaptedQueuePool):
            status.update(
                size=pool.size(),
                checked_out=pool.checkedout(),
                overflow=pool.overflow(),
            )
        return status

    async def health_check(self) -> Dict[str, Any]:
        """``SELECT 1`` round trip; never raises."""
        started = time.perf_counter()
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                "error": str(e),
            }
        return {
            "status": "healthy",
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "pool": self.pool_status(),
        }

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self.session_factory = None
