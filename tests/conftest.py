"""
Test infrastructure for the content API.

Strategy
--------
- SQLite in-memory via aiosqlite, so no Postgres instance is needed.
- StaticPool makes every session share the one in-memory connection; a new
  connection would see an empty database.
- ``install_sqlite_foreign_keys`` turns on the pragma, otherwise SQLite
  ignores the ON DELETE rules the cascade tests rely on.
- ``get_uow`` is overridden so every request builds its unit of work on the
  test session factory.
- Tables are created before and dropped after each test.
- The shared cache is cleared around each test; tests that need a cache of
  their own build a ``CacheManager`` around a ``MemoryCacheBackend``.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from portfolio_cms.cache import cache
from portfolio_cms.database import Base, build_session_factory, install_sqlite_foreign_keys
from portfolio_cms.dependencies import get_storage, get_uow
from portfolio_cms.main import app
from portfolio_cms.models import User
from portfolio_cms.resilience import RetryPolicy
from portfolio_cms.unit_of_work import UnitOfWork

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
install_sqlite_foreign_keys(engine_test)

async_session_test = build_session_factory(engine_test)

# No back-off in tests.
TEST_RETRY_POLICY = RetryPolicy(max_attempts=3, base_delay=0, max_delay=0)


def make_uow() -> UnitOfWork:
    return UnitOfWork(async_session_test, retry_policy=TEST_RETRY_POLICY)


class InMemoryStorage:
    """MediaStorage double that keeps uploaded bytes in a dict."""

    def __init__(self):
        self.files: dict[str, bytes] = {}
        self.deleted: list[str] = []

    async def upload(self, name: str, content: bytes, content_type: str) -> str:
        url = f"/uploads/{name}"
        self.files[url] = content
        return url

    async def delete(self, url: str) -> None:
        self.deleted.append(url)
        self.files.pop(url, None)


# ---------------------------------------------------------------------------
# Dependency overrides
# ---------------------------------------------------------------------------

async def override_get_uow():
    async with make_uow() as uow:
        yield uow


app.dependency_overrides[get_uow] = override_get_uow


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await cache.clear()
    yield
    await cache.clear()
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def uow():
    """A unit of work bound to the test database, closed after the test."""
    async with make_uow() as unit:
        yield unit


@pytest.fixture
def uow_factory():
    """Builds further units of work, e.g. to play a second concurrent writer."""
    return make_uow


@pytest_asyncio.fixture
async def user() -> User:
    async with make_uow() as unit:
        author = await unit.repository(User).add(
            User(username="author", email="author@example.com", display_name="The Author")
        )
        await unit.save_changes()
    return author


@pytest.fixture
def storage() -> InMemoryStorage:
    memory = InMemoryStorage()
    app.dependency_overrides[get_storage] = lambda: memory
    yield memory
    app.dependency_overrides.pop(get_storage, None)


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
