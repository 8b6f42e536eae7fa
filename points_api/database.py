"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - build_engine(): Creates an async engine for a URL and applies the
    SQLite transaction settings described below
  - engine / AsyncSessionLocal: The process-wide engine and session factory
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request

The engine is created once per process. Stores never reach for a global
connection: every repository receives the AsyncSession it must use, and the
transfer engine owns the commit/rollback boundaries on that session.

SQLite transactions:
  pysqlite defers BEGIN until the first write, which lets two sessions read
  the same balance before either of them writes. We take over transaction
  control and open every transaction with BEGIN IMMEDIATE, so the write lock
  is held from the first read of a transaction until commit. Concurrent
  transfers are therefore serialised by the database itself. The driver's
  busy timeout bounds how long a transaction waits for that lock.

  On PostgreSQL these hooks are not installed; the transfer engine locks the
  two account rows with SELECT ... FOR UPDATE instead.
"""

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from points_api.config import settings
from points_api.exceptions import PointsAPIError


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for `url`.

    For file-backed SQLite databases the parent directory is created, the
    busy timeout is set from DB_TIMEOUT_SECONDS and every transaction is
    opened with BEGIN IMMEDIATE (see module docstring).
    """
    sa_url = make_url(url)
    is_sqlite = sa_url.get_backend_name() == "sqlite"

    connect_args = {}
    if is_sqlite:
        connect_args["timeout"] = settings.DB_TIMEOUT_SECONDS
        if sa_url.database and sa_url.database != ":memory:":
            Path(sa_url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(url, echo=echo, connect_args=connect_args)

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            # Stop the driver from emitting its own (deferred) BEGIN
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# expire_on_commit=False keeps attributes readable after commit without a
# lazy reload, which would otherwise need a synchronous DB call.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    The session is committed on success and rolled back on any unexpected
    exception, then closed when the request completes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except PointsAPIError:
            # Business rule errors: commit so audit-trail records (like a
            # transfer marked failed at processing time) are persisted.
            await session.commit()
            raise
        except Exception:
            await session.rollback()
            raise
