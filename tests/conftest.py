"""Test fixtures — a throwaway SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI + aiosqlite:

1. The environment is set BEFORE tokenvault is imported, because
   tokenvault.config builds its Settings singleton at import time.
2. Each test gets its own database file under tmp_path, built with the
   app's own build_engine (so SQLite runs with BEGIN IMMEDIATE, exactly
   like a local deployment) and created from the ORM metadata.
3. The app's get_db is overridden to hand every request a fresh session
   from that engine. Separate sessions matter: the rotation race is
   between two sessions, never inside one.

Anything a test reads directly must go through its own short-lived
session (see the token_row fixture) so no write lock is held across requests.
"""

import os

os.environ.setdefault(
    "TOKENVAULT_JWT_SECRET", "test-signing-secret-0123456789abcdef0123456789"
)
os.environ.setdefault("TOKENVAULT_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TOKENVAULT_ENVIRONMENT", "test")

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from tokenvault.db.engine import build_engine, get_db  # noqa: E402
from tokenvault.db.models import Base, Token  # noqa: E402
from tokenvault.main import app  # noqa: E402


@pytest_asyncio.fixture()
async def engine(tmp_path):
    """Per-test database file with the full schema."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'tokenvault.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """One session for service-level tests. Closed (and rolled back) after."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(engine, session_factory, monkeypatch):
    """HTTP client against the real app, real auth, per-test database."""
    monkeypatch.setattr("tokenvault.db.engine.engine", engine)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def token_row(session_factory):
    """Read one token row in its own session, releasing the lock at once.

    Learn: with BEGIN IMMEDIATE even a read holds the write lock until
    the transaction ends, so a test must never keep a session open
    across HTTP calls.
    """

    async def _fetch(token: str):
        async with session_factory() as session:
            row = await session.get(Token, token)
            # expire_on_commit=False: the row stays readable after close
            await session.commit()
            return row

    return _fetch
