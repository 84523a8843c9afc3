"""
Database Connection Module

Provides the async SQLAlchemy engine and session factory used by the
directory and access log stores. The default URL targets SQLite through
aiosqlite; any async SQLAlchemy URL can be configured instead.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from config import DATABASE_ECHO, DATABASE_URL

logger = logging.getLogger(__name__)


class Database:
    """
    Owns one async engine and its session factory.

    Created once at application startup and handed to the stores, so no
    module-level engine exists.
    """

    def __init__(self, url: Optional[str] = None, echo: Optional[bool] = None):
        self.url = DATABASE_URL if url is None else url
        self._echo = DATABASE_ECHO if echo is None else echo
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> AsyncEngine:
        """
        Get or create the async engine.

        Returns:
            AsyncEngine: SQLAlchemy async engine
        """
        if self._engine is None:
            kwargs = {"echo": self._echo}
            if not self.url.startswith("sqlite"):
                kwargs.update(
                    pool_size=5,
                    max_overflow=10,
                    pool_timeout=30,
                    pool_recycle=1800,  # Recycle connections after 30 minutes
                )
            self._engine = create_async_engine(self.url, **kwargs)
            logger.info(f"🔌 Database engine created: {self._engine.url.render_as_string(hide_password=True)}")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            self._session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return self._session_factory

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session that commits on success and rolls back on error.

        Usage:
            async with database.session() as session:
                ...
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def test_connection(self) -> bool:
        """
        Test database connection.

        Returns:
            bool: True if connection successful
        """
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                row = result.fetchone()
                if row and row[0] == 1:
                    return True
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"❌ Database connection failed: {e}")
            return False
        return False

    async def init_models(self):
        """
        Create tables if they do not exist.

        Should be called on application startup.
        """
        from .models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables initialized")

    async def close(self):
        """
        Dispose the engine.

        Should be called on application shutdown.
        """
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("🔌 Database connection closed")
