"""Async database engine and session factory for the SQL-backed stores."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from verdict.config import Settings
from verdict.logging_config import get_logger

logger = get_logger(__name__)


def normalize_database_url(url: str) -> str:
    """Force the asyncpg driver onto plain postgres URLs."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://") and "+asyncpg" not in url:
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


class Database:
    """Owns one async engine and the session factory bound to it."""

    def __init__(self, settings: Settings) -> None:
        self.url = normalize_database_url(settings.database_url)
        self.engine: AsyncEngine = create_async_engine(
            self.url,
            echo=settings.database_echo,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info(
            "database_engine_created",
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )

    async def verify(self) -> None:
        """Run a trivial query so startup fails fast on a bad URL."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("database_connection_verified")
        except Exception as e:
            logger.error("database_connection_failed", error=str(e))
            raise

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("database_connections_closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session scope that rolls back on any error."""
        session = self.session_factory()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
