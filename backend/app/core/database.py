"""
Database engine and sessions.

SQLite is the default store. Its connections run in WAL mode with a busy
timeout, so a session that needs the write lock (number reservation,
generation log updates) waits for the current writer instead of failing
with "database is locked". PostgreSQL gets a bounded pool outside
development.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from app.core.config import settings

Base = declarative_base()

# Created on first use so settings can be overridden before import-time engines exist
_engine: Optional[AsyncEngine] = None
_async_session_local: Optional[async_sessionmaker[AsyncSession]] = None


def get_database_url() -> str:
    """DATABASE_URL with the async driver filled in for plain postgresql:// URLs"""
    db_url = settings.DATABASE_URL
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return db_url


def is_sqlite(db_url: str) -> bool:
    return make_url(db_url).get_backend_name() == "sqlite"


def _enable_sqlite_wal(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def set_journal_mode(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def create_engine_for(db_url: str) -> AsyncEngine:
    """
    Engine for a database URL.

    - SQLite: busy timeout from SQLITE_BUSY_TIMEOUT, WAL for file databases
    - PostgreSQL in development: NullPool
    - PostgreSQL otherwise: AsyncAdaptedQueuePool sized by the DB_POOL_* settings
    """
    if is_sqlite(db_url):
        engine = create_async_engine(
            db_url,
            echo=settings.DB_ECHO,
            connect_args={"check_same_thread": False, "timeout": settings.SQLITE_BUSY_TIMEOUT},
        )
        if make_url(db_url).database not in (None, "", ":memory:"):
            _enable_sqlite_wal(engine)
        return engine

    if settings.DEBUG or settings.ENVIRONMENT == "development":
        return create_async_engine(db_url, echo=settings.DB_ECHO, poolclass=NullPool)

    return create_async_engine(
        db_url,
        echo=settings.DB_ECHO,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_engine_for(get_database_url())
    return _engine


def get_session_local() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the application engine"""
    global _async_session_local
    if _async_session_local is None:
        _async_session_local = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _async_session_local


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; commits only if the request left pending changes"""
    async with get_session_local()() as session:
        try:
            yield session
            if session.new or session.dirty or session.deleted:
                await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session for work outside a request: startup sync, CLI commands, health checks"""
    async with get_session_local()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Create the letter tables"""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    global _engine, _async_session_local
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_local = None
