"""
Database Configuration and Connection Management
===============================================

This module handles the relational store connection using SQLAlchemy's
async engine. It provides the declarative base, an explicitly constructed
``Database`` handle (engine + session factory) and the request-scoped
session dependency.

Key Features:
- SQLAlchemy async engine with a bounded connection pool
- One Database instance per process, created at startup and stored on
  ``app.state.db``; nothing is created at import time
- Database session dependency injection
- Table creation for first-run setups
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from fastapi import Request
from sqlalchemy import MetaData, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import Settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    This class provides the foundation for all database models
    and includes common metadata configuration.
    """
    metadata = MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s"
        }
    )


class Database:
    """
    Owner of the engine and session factory.

    Construct one at startup, hand it to whatever needs sessions and call
    ``dispose()`` on shutdown.

    Args:
        url: Async SQLAlchemy URL (``postgresql+asyncpg://`` or ``sqlite+aiosqlite://``)
        pool_size: Maximum number of pooled connections
        pool_timeout: Seconds to wait for a free connection (also used as
            the driver connect timeout)
        pool_recycle: Seconds after which an idle connection is replaced
        echo: Log SQL statements
    """

    def __init__(
        self,
        url: str,
        pool_size: int = 20,
        pool_timeout: int = 2,
        pool_recycle: int = 30,
        echo: bool = False,
    ):
        self.url = url
        engine_kwargs: Dict[str, Any] = {"echo": echo}

        if not url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=0,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                pool_pre_ping=True,
                connect_args={"timeout": pool_timeout},
            )

        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,  # Keep objects accessible after commit
            autoflush=True,
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "Database":
        return cls(
            config.database_url,
            pool_size=config.DB_POOL_SIZE,
            pool_timeout=config.DB_CONNECT_TIMEOUT,
            pool_recycle=config.DB_POOL_IDLE_TIMEOUT,
            echo=config.DEBUG and config.LOG_LEVEL == "DEBUG",
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session and always close it.

        Nothing is committed implicitly: callers (the services) decide when
        a unit of work is complete.
        """
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def init(self) -> None:
        """
        Verify connectivity and create missing tables.

        Raises:
            Exception: If the database cannot be reached
        """
        try:
            logger.info("Initializing database connection...")

            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                logger.info("Database connection test successful")

            # Import models so they are registered on the metadata
            from app.models import user  # noqa: F401

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                logger.info("Database tables created/verified")

        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    async def health_check(self) -> bool:
        """
        Check database health by executing a simple query.

        Returns:
            bool: True if database is healthy, False otherwise
        """
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        logger.info("Closing database connections...")
        await self.engine.dispose()
        logger.info("Database pool closed")


def get_database(request: Request) -> Database:
    """Return the Database handle attached to the running application."""
    return request.app.state.db


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function to get database session.

    This function provides a database session for FastAPI route handlers.
    The session is closed when the request finishes; uncommitted work is
    rolled back.

    Yields:
        AsyncSession: Database session for the request

    Example:
        @router.get("/profile")
        async def profile(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with get_database(request).session() as session:
        yield session
