from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from portfolio_cms.config import StoreProvider, settings


class Base(DeclarativeBase):
    pass


def engine_options(provider: StoreProvider, command_timeout: int) -> dict:
    """Return provider-specific ``create_async_engine`` keyword arguments."""
    if provider is StoreProvider.POSTGRESQL:
        return {
            "pool_pre_ping": True,
            "connect_args": {"command_timeout": command_timeout},
        }
    if provider is StoreProvider.MYSQL:
        return {
            "pool_pre_ping": True,
            # MySQL drops idle connections after wait_timeout.
            "pool_recycle": 3600,
            "connect_args": {"connect_timeout": command_timeout},
        }
    if provider is StoreProvider.SQLITE:
        return {"connect_args": {"check_same_thread": False, "timeout": command_timeout}}
    raise ValueError(f"Unsupported store provider: {provider!r}")


def install_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """
    Turn on ``PRAGMA foreign_keys`` for every new SQLite connection.

    SQLite ignores ON DELETE CASCADE / SET NULL unless the pragma is set
    per connection.  Must be called once per SQLite engine (production
    engine below, test engine in ``conftest.py``).
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(
    url: str,
    provider: StoreProvider,
    *,
    echo: bool = False,
    command_timeout: int = 30,
    **overrides,
) -> AsyncEngine:
    options = engine_options(provider, command_timeout)
    options.update(overrides)
    engine = create_async_engine(url, echo=echo, **options)
    if provider is StoreProvider.SQLITE:
        install_sqlite_foreign_keys(engine)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # autoflush is off: pending work lives in the unit of work's staged
    # change set until save_changes() writes it.
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Module-level engine variable allows tests to override with a test engine.
engine = build_engine(
    settings.DATABASE_URL,
    settings.STORE_PROVIDER,
    echo=settings.DB_ECHO,
    command_timeout=settings.DB_COMMAND_TIMEOUT,
)

async_session = build_session_factory(engine)
