"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.

PostgreSQL (asyncpg) is the production target. SQLite (aiosqlite) is
supported for local runs and tests; for it we take over transaction
control and open every transaction with BEGIN IMMEDIATE. That makes
concurrent writers queue on the database lock instead of failing when a
read lock is upgraded mid-transaction, which the token rotation claim
relies on.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tokenvault.config import settings


def _sqlite_connect(dbapi_conn, connection_record) -> None:
    # Stop the driver from emitting its own deferred BEGIN.
    dbapi_conn.isolation_level = None


def _sqlite_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, with SQLite transaction handling when needed."""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo)
        event.listen(engine.sync_engine, "connect", _sqlite_connect)
        event.listen(engine.sync_engine, "begin", _sqlite_begin)
        return engine

    # Connection pool: min 5, max 20 connections.
    return create_async_engine(
        url,
        echo=echo,
        pool_size=5,
        max_overflow=15,
    )


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory — each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
