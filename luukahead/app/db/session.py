# luukahead/app/db/session.py
"""
Async database handle for SQLAlchemy.

The engine is owned by an explicit ``Database`` object instead of a
module-level global: the FastAPI lifespan opens one at startup and
disposes it at shutdown, and tests build their own against an in-memory
SQLite database. PostgreSQL runs on asyncpg with a small recycled pool;
SQLite runs on aiosqlite without pooling.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, StaticPool

from luukahead.app.core.config import normalize_database_url
from luukahead.app.db.base import Base

logger = logging.getLogger(__name__)


def _create_async_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Engine tuned for the backend named in ``url``.

    SQLite file database:
    - NullPool, a new connection per checkout

    SQLite in-memory database (tests):
    - StaticPool so every checkout sees the same database

    PostgreSQL:
    - AsyncAdaptedQueuePool, pool_size=5, max_overflow=10
    - pool_pre_ping=True, pool_recycle=300
    """
    if url.startswith("sqlite"):
        in_memory = ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:")
        engine = create_async_engine(
            url,
            echo=echo,
            poolclass=StaticPool if in_memory else NullPool,
            connect_args={"check_same_thread": False},
        )

        # SQLite only honours ON DELETE CASCADE with foreign keys switched on
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_async_engine(
        url,
        echo=echo,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=300,
    )


class Database:
    """
    Owns the async engine and session factory for one database.

    expire_on_commit=False: model attributes stay readable after commit
    autoflush=False: explicit flush control, no surprise queries
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = normalize_database_url(url)
        self.engine: AsyncEngine = _create_async_engine(self.url, echo=echo)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def create_all(self) -> None:
        """Create any missing tables for the registered models."""
        # Registers the tables on Base.metadata
        from luukahead.app import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created/verified")

    async def drop_all(self) -> None:
        from luukahead.app import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session for one unit of work.

        Does NOT auto-commit; callers commit explicitly. Anything left
        uncommitted is rolled back when the block exits.
        """
        async with self.session_factory() as db:
            yield db

    async def dispose(self) -> None:
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    database: Optional[Database] = getattr(request.app.state, "database", None)
    if database is None:
        raise RuntimeError("Database handle is not initialised; is the app lifespan running?")
    return database


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """One AsyncSession per request, from the app's ``Database`` handle."""
    async with get_database(request).session() as db:
        yield db
