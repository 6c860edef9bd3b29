"""Alembic environment for the content store.

Online migrations reuse the application's engine factory, so the
provider-specific options (pool, timeouts, SQLite foreign keys) match what
the service runs with.
"""

import asyncio
from logging.config import fileConfig

from alembic import context

import portfolio_cms.models  # noqa: F401  (registers every table on Base.metadata)
from portfolio_cms.config import settings
from portfolio_cms.database import Base, build_engine

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Credentials live in Settings (.env / environment), not in alembic.ini.
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

target_metadata = Base.metadata


def _configure_options() -> dict:
    # SQLite cannot ALTER most constraints in place.
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": settings.STORE_PROVIDER.value == "sqlite",
    }


def run_migrations_offline() -> None:
    """Emit the migration SQL instead of running it."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, **_configure_options())
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    engine = build_engine(
        settings.DATABASE_URL,
        settings.STORE_PROVIDER,
        command_timeout=settings.DB_COMMAND_TIMEOUT,
    )
    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await engine.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
