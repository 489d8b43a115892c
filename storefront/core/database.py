"""
Database configuration and session management
Uses SQLAlchemy with async support
"""

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine, async_sessionmaker
from sqlalchemy.pool import NullPool
from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging

from .config import settings
from storefront.models.base import Base
from .exceptions import ConcurrentModificationException

logger = logging.getLogger(__name__)

# Determine if we're using SQLite
is_sqlite = settings.database_url_async.startswith("sqlite")

def enable_sqlite_savepoints(async_engine: AsyncEngine) -> None:
    """
    Let SQLAlchemy own transaction boundaries on SQLite.
    pysqlite/aiosqlite otherwise defer BEGIN and break SAVEPOINT handling,
    which the revenue ledger relies on.
    """
    @event.listens_for(async_engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(async_engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

# Create async engine with conditional parameters
if is_sqlite:
    # SQLite doesn't support connection pooling parameters
    engine = create_async_engine(
        settings.database_url_async,
        echo=settings.DATABASE_ECHO,
        poolclass=NullPool,
    )
    enable_sqlite_savepoints(engine)
else:
    engine = create_async_engine(
        settings.database_url_async,
        echo=settings.DATABASE_ECHO,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_timeout=settings.DATABASE_POOL_TIMEOUT,
        pool_pre_ping=True,  # Verify connections before use
    )

# Create session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Database dependency
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Create and yield database session
    Commits the whole request (cart, order and ledger writes) or nothing
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database sessions
    Useful for scripts and background tasks
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

async def init_db() -> None:
    """Initialize database tables"""
    import storefront.models  # noqa: F401  register mappers

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")

async def close_db() -> None:
    """Close database connections"""
    await engine.dispose()
    logger.info("Database connections closed")

async def flush_or_conflict(session: AsyncSession) -> None:
    """
    Flush pending changes, reporting lost races as 409 Conflict.
    A unique index violation (second pending order, duplicate cart line) or a
    stale order version means another request changed the same rows first.
    """
    try:
        await session.flush()
    except (IntegrityError, StaleDataError) as e:
        logger.warning(f"Concurrent modification detected: {e.__class__.__name__}: {e}")
        raise ConcurrentModificationException()
