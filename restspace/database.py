"""
Database Connection and Session Management

This module sets up SQLAlchemy's async database engine and provides
a dependency injection function for FastAPI routes to access database sessions.

The backend is chosen once, when the engine is created:
- A Postgres connection string (see Settings.database_url) -> asyncpg
- Nothing configured -> a local SQLite file through aiosqlite

Nothing outside this module knows which one is in use. The one place where
the dialects differ for us, INSERT ... ON CONFLICT, is resolved by insert_for().
"""

import logging
import ssl
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from restspace.config import Settings
from restspace.exceptions import StorageFault
from restspace.models import Base


logger = logging.getLogger(__name__)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for the configured backend.

    Postgres:
    - small pool (3 connections), the app is tiny and often runs behind a pooler
    - statement_cache_size=0: prepared statements break under PgBouncer-style
      transaction pooling
    - optional TLS without certificate verification (PG_SSL_NO_VERIFY)

    SQLite:
    - WAL journal so readers don't block the single writer
    """
    url = settings.database_url

    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=False)

        @event.listens_for(engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        logger.info(f"Using local SQLite database ({settings.database_debug_info})")
        return engine

    connect_args = {"statement_cache_size": 0, "timeout": 10}
    if settings.PG_SSL_NO_VERIFY:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = context

    logger.info(f"Using Postgres database ({settings.database_debug_info})")
    return create_async_engine(
        url,
        echo=False,
        pool_size=3,
        max_overflow=0,
        pool_pre_ping=True,
        pool_recycle=300,
        connect_args=connect_args,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    # expire_on_commit=False: Prevents objects from becoming stale after commit
    # With async code we can't make blocking calls to refresh them
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: AsyncEngine):
    """Create all tables that don't exist yet."""
    async with engine.begin() as conn:
        # run_sync() executes synchronous SQLAlchemy code in async context
        await conn.run_sync(Base.metadata.create_all)


def insert_for(session: AsyncSession):
    """
    Return the dialect-specific insert() for the session's backend.

    Both the sqlite and postgresql variants expose the same
    on_conflict_do_update / on_conflict_do_nothing API, which is all the
    stores need.
    """
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


@contextmanager
def storage_errors(operation: str):
    """
    Translate driver and SQLAlchemy failures into StorageFault.

    The original exception is chained (raise ... from) so the server-side
    log keeps the full diagnostic context, while clients only ever see the
    opaque StorageFault message.
    """
    try:
        yield
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Storage failure during {operation}: {e.__class__.__name__}")
        raise StorageFault() from e


async def get_db(request: Request):
    """
    Database session dependency for FastAPI routes.

    This is a generator function that yields a database session
    and automatically handles cleanup when the request is complete.

    Usage in FastAPI routes:
        @router.get("/endpoint")
        async def route(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Thought))

    The async context manager ensures the session is properly closed
    even if an exception occurs during request handling.
    """
    async with request.app.state.session_factory() as session:
        yield session
