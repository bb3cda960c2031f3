"""
Async PostgreSQL access for one sync invocation.

The engine is created per invocation and verified with a round trip before
any work starts, so an unreachable store surfaces as a setup failure rather
than as a string of per-tournament errors.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

APPLICATION_NAME = "live-score-sync"


class DatabaseManager:
    """Owns the engine and session factory for the sync tables."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._engine: Optional[AsyncEngine] = None
        self._sessions: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def connected(self) -> bool:
        return self._sessions is not None

    async def connect(self) -> None:
        """
        Create the engine and check the store answers.

        Raises:
            RuntimeError: No database URL configured.
            Exception: Whatever the driver raises when the store is unreachable;
                the engine is disposed before it propagates.
        """
        s = self._settings
        if not s.database_url:
            raise RuntimeError("DatabaseManager requires a database_url.")

        # Short-lived invocations: a small pool, no recycling.
        engine = create_async_engine(
            s.database_url,
            pool_size=s.db_pool_min,
            max_overflow=max(0, s.db_pool_max - s.db_pool_min),
            echo=s.debug,
            connect_args={
                "timeout": s.db_command_timeout,
                "command_timeout": s.db_command_timeout,
                "server_settings": {"application_name": APPLICATION_NAME},
            },
        )
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as exc:
            logger.error("database_unreachable", url=s.database_url_safe_log, error=str(exc))
            await engine.dispose()
            raise

        self._engine = engine
        self._sessions = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
        logger.info("database_connected", url=s.database_url_safe_log)

    async def disconnect(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.debug("database_disconnected")
        self._engine = None
        self._sessions = None

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._sessions is None:
            raise RuntimeError("DatabaseManager not connected.")
        return self._sessions

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        async with self._factory()() as session:
            yield session

    @asynccontextmanager
    async def write_session(self) -> AsyncIterator[AsyncSession]:
        """Session committed on success and rolled back on error."""
        async with self._factory()() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
