"""Alembic entry point for the users/tokens schema.

Learn: migrations run through the same async drivers the app uses
(asyncpg in production, aiosqlite locally), so there is one URL format
everywhere. The URL is resolved in this order:

1. sqlalchemy.url already set on the Alembic config (tests set it to a
   throwaway SQLite file before calling command.upgrade)
2. TOKENVAULT_DATABASE_URL via tokenvault.config.settings

Base.metadata from tokenvault.db.models is the autogenerate target, so
`alembic revision --autogenerate` diffs against User and Token.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from tokenvault.config import settings
from tokenvault.db.models import Base

config = context.config

if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", settings.database_url)

# alembic.ini carries the logging setup; programmatic configs have none
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout (`alembic upgrade head --sql`)."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        # SQLite cannot ALTER most constraints in place
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Connect with a throwaway async engine and apply pending revisions."""
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
