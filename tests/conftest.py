"""
Test infrastructure for the blog application.

Strategy
--------
- SQLite in-memory via aiosqlite; StaticPool makes every session share the
  one connection, since an in-memory database is connection-scoped.
- The app's get_db dependency is overridden to run the same transaction
  boundary (commit, rollback, after-commit callbacks) on the test factory.
- Tables are created before and dropped after every test.
- Redis is disabled by setting cache._redis = None; the CacheManager treats
  that as a permanent miss, so category reads always hit the database.
- Users are seeded through their own short-lived session that is committed
  and closed before any request is made.
"""
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from blog.cache import cache
from blog.config import settings
from blog.database import Base, build_engine, build_session_factory, get_db, transaction
from blog.main import app
from blog.models import Category, Role, User
from blog.security import CallerIdentity, create_access_token

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = build_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

async_session_test = build_session_factory(engine_test)


async def override_get_db():
    async with transaction(async_session_test) as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


def auth_headers(user) -> dict[str, str]:
    """Bearer header carrying a token for *user*."""
    return {"Authorization": f"Bearer {create_access_token(user.username)}"}


def identity_for(user, *roles: str) -> CallerIdentity:
    return CallerIdentity(user_id=user.id, username=user.username, roles=frozenset(roles))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live session for tests that call the service layer directly."""
    async with async_session_test() as session:
        yield session


@pytest.fixture
def session_factory():
    """Factory for short-lived sessions used to inspect state between requests."""
    return async_session_test


@pytest_asyncio.fixture
async def users() -> SimpleNamespace:
    """
    Three committed users: ``author`` and ``other`` (plain users) and
    ``admin`` (member of the admin role).
    """
    async with async_session_test() as session:
        admin_role = Role(name=settings.ADMIN_ROLE)
        author = User(username="author", email="author@example.com", display_name="Author")
        other = User(username="other", email="other@example.com")
        admin = User(username="admin", email="admin@example.com")
        admin.roles.append(admin_role)
        session.add_all([admin_role, author, other, admin])
        await session.commit()
        return SimpleNamespace(author=author, other=other, admin=admin)


@pytest_asyncio.fixture
async def categories() -> list[Category]:
    """Committed categories, inserted out of name order on purpose."""
    async with async_session_test() as session:
        rows = [Category(name=name) for name in ("Zoology", "Algorithms", "Music")]
        session.add_all(rows)
        await session.commit()
        return rows


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx.AsyncClient wired to the app via ASGITransport (no redirects followed)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
