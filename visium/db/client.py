"""
Async Database Handle

Uses SQLAlchemy 2.0 async engines (asyncpg in production, aiosqlite in tests).
The handle is constructed and opened once at process start, passed to the
services that need it, and closed at shutdown.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from visium.config import Settings, get_settings
from visium.db.models import Base

logger = structlog.get_logger()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _redact_url(url: str) -> str:
    return url.split("@", 1)[1] if "@" in url else url[:50]


class Database:
    """Owns the async engine, its connection pool and the session factory."""

    def __init__(self, url: str, *, echo: bool = False, engine_kwargs: dict[str, Any] | None = None):
        self.url = url
        self._echo = echo
        self._engine_kwargs = dict(engine_kwargs or {})
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Database":
        settings = settings or get_settings()
        url = str(settings.database_url)

        engine_kwargs: dict[str, Any] = {}
        if settings.db_pool_mode == "null":
            engine_kwargs["poolclass"] = NullPool
        else:
            engine_kwargs["pool_size"] = max(1, int(settings.db_pool_size))
            engine_kwargs["max_overflow"] = max(0, int(settings.db_pool_max_overflow))
            engine_kwargs["pool_timeout"] = max(1, int(settings.db_pool_timeout_seconds))
            engine_kwargs["pool_recycle"] = max(60, int(settings.db_pool_recycle_seconds))
            engine_kwargs["pool_pre_ping"] = True

        if url.startswith("postgresql+asyncpg://") and settings.db_statement_timeout_seconds > 0:
            timeout_ms = int(settings.db_statement_timeout_seconds) * 1000
            engine_kwargs["connect_args"] = {
                "server_settings": {"statement_timeout": str(timeout_ms)},
            }

        return cls(url, echo=settings.log_level == "DEBUG", engine_kwargs=engine_kwargs)

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not opened. Call open() first.")
        return self._engine

    async def open(self) -> None:
        """Create the engine and session factory."""
        if self._engine is not None:
            return

        self._engine = create_async_engine(self.url, echo=self._echo, **self._engine_kwargs)
        if self.is_sqlite:
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        logger.info(
            "Database connection pool initialized",
            url=_redact_url(self.url),
            pool_mode="null" if self._engine_kwargs.get("poolclass") is NullPool else "pooled",
        )

    async def close(self) -> None:
        """Dispose of the engine and its pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Database connection pool closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Open a session that is one unit of work.

        Commits when the block exits cleanly; any exception rolls back every
        write made through the session and is re-raised.

        Usage:
            async with db.session() as session:
                result = await session.execute(...)
        """
        if self._session_factory is None:
            raise RuntimeError("Database not opened. Call open() first.")

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def ping(self) -> bool:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def create_schema(self) -> None:
        """Create tables from model metadata (tests and local development; production uses Alembic)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
