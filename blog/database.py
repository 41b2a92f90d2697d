"""
Engine, session factory and the per-request transaction boundary.

Services flush and never commit.  ``get_db`` commits once the endpoint
has returned, then runs whatever the request queued with
``run_after_commit``.  Side effects outside the database (cache
invalidation) are queued that way, so they only happen for writes that
other sessions can already see, and are dropped when the request rolls
back.
"""
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from blog.config import settings
from blog.middleware import install_query_counter

logger = logging.getLogger(__name__)

_AFTER_COMMIT = "blog.after_commit"


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine with the per-request statement counter attached."""
    engine = create_async_engine(url, **kwargs)
    install_query_counter(engine)
    return engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Loaded articles are serialized after the commit, so they must not expire.
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=False, pool_pre_ping=True)
async_session = build_session_factory(engine)


class Base(DeclarativeBase):
    pass


def run_after_commit(session: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """Queue *callback* to be awaited once *session*'s transaction commits."""
    session.info.setdefault(_AFTER_COMMIT, []).append(callback)


@asynccontextmanager
async def transaction(
    factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    Open a session, commit it when the block exits cleanly and roll it
    back otherwise.  Queued after-commit callbacks run in order after a
    successful commit; a rollback discards them.
    """
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            dropped = session.info.pop(_AFTER_COMMIT, [])
            if dropped:
                logger.debug("Rolled back; dropped %d after-commit callback(s)", len(dropped))
            raise
        for callback in session.info.pop(_AFTER_COMMIT, []):
            await callback()


async def get_db() -> AsyncIterator[AsyncSession]:
    async with transaction(async_session) as session:
        yield session
