"""
Transaction boundary tests: commit on clean exit, rollback on error, and
after-commit callbacks that only fire for committed work.
"""
import pytest
from sqlalchemy import func, select

from blog.database import run_after_commit, transaction
from blog.models import Category

from conftest import async_session_test


async def _category_count() -> int:
    async with async_session_test() as session:
        return (await session.execute(select(func.count()).select_from(Category))).scalar_one()


@pytest.mark.asyncio
async def test_transaction_commits_and_runs_callbacks_in_order():
    calls: list[str] = []

    async def first():
        calls.append("first")

    async def second():
        calls.append("second")

    async with transaction(async_session_test) as session:
        session.add(Category(name="Committed"))
        run_after_commit(session, first)
        run_after_commit(session, second)
        assert calls == []

    assert calls == ["first", "second"]
    assert await _category_count() == 1


@pytest.mark.asyncio
async def test_transaction_rollback_discards_work_and_callbacks():
    calls: list[str] = []

    async def callback():
        calls.append("ran")

    with pytest.raises(RuntimeError):
        async with transaction(async_session_test) as session:
            session.add(Category(name="Discarded"))
            await session.flush()
            run_after_commit(session, callback)
            raise RuntimeError("boom")

    assert calls == []
    assert await _category_count() == 0
