"""
Direct service-layer tests — business rules exercised without HTTP.

Tag parsing and the authorization predicate are pure and need no
database; reconciliation and view counting run against the session.
"""
import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from blog.exceptions import EntityNotFoundError, InvalidFormError, PermissionDeniedError
from blog.models import Article, Tag, User
from blog.schemas import ArticleForm
from blog.security import CallerIdentity, is_authorized_to_edit
from blog.services import article_service, tag_service

from conftest import identity_for


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_user(db: AsyncSession, username: str = "svcuser") -> User:
    user = User(username=username, email=f"{username}@example.com")
    db.add(user)
    await db.flush()
    return user


async def _tag_names(db: AsyncSession) -> list[str]:
    return sorted((await db.execute(select(Tag.name))).scalars().all())


# ---------------------------------------------------------------------------
# tag_service.parse_tags / join_tags
# ---------------------------------------------------------------------------

def test_parse_tags_splits_folds_and_dedupes():
    assert tag_service.parse_tags("Go, rust rust") == {"go", "rust"}


def test_parse_tags_discards_empty_tokens():
    assert tag_service.parse_tags(" ,, python ,\tsql  ") == {"python", "sql"}


def test_parse_tags_empty_input():
    assert tag_service.parse_tags("") == set()
    assert tag_service.parse_tags(None) == set()
    assert tag_service.parse_tags(" , ") == set()


def test_join_tags_is_sorted_and_comma_separated():
    tags = [Tag(name="rust"), Tag(name="go"), Tag(name="c")]
    assert tag_service.join_tags(tags) == "c, go, rust"
    assert tag_service.join_tags([]) == ""


# ---------------------------------------------------------------------------
# tag_service.reconcile_tags
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_reconcile_is_idempotent(db_session: AsyncSession):
    user = await _create_user(db_session)
    article = Article(title="T", content="C", author_id=user.id, view_count=0)
    db_session.add(article)

    await tag_service.reconcile_tags(db_session, article, "Go, rust rust")
    await db_session.flush()
    first = {t.name for t in article.tags}

    await tag_service.reconcile_tags(db_session, article, "Go, rust rust")
    await db_session.flush()

    assert {t.name for t in article.tags} == first == {"go", "rust"}
    assert await _tag_names(db_session) == ["go", "rust"]


@pytest.mark.asyncio
async def test_reconcile_reuses_tags_across_articles(db_session: AsyncSession):
    user = await _create_user(db_session)
    first = Article(title="A", content="C", author_id=user.id, view_count=0)
    second = Article(title="B", content="C", author_id=user.id, view_count=0)
    db_session.add_all([first, second])

    await tag_service.reconcile_tags(db_session, first, "python")
    await tag_service.reconcile_tags(db_session, second, "PYTHON, sql")
    await db_session.flush()

    assert await _tag_names(db_session) == ["python", "sql"]
    shared = next(t for t in second.tags if t.name == "python")
    assert shared is first.tags[0]


@pytest.mark.asyncio
async def test_reconcile_replaces_associations_but_keeps_tag_rows(db_session: AsyncSession):
    user = await _create_user(db_session)
    article = Article(title="T", content="C", author_id=user.id, view_count=0)
    db_session.add(article)

    await tag_service.reconcile_tags(db_session, article, "go rust")
    await tag_service.reconcile_tags(db_session, article, "python go")
    await db_session.flush()

    assert {t.name for t in article.tags} == {"go", "python"}
    # "rust" is no longer referenced but is never deleted.
    assert await _tag_names(db_session) == ["go", "python", "rust"]


@pytest.mark.asyncio
async def test_reconcile_with_empty_input_clears_tags(db_session: AsyncSession):
    user = await _create_user(db_session)
    article = Article(title="T", content="C", author_id=user.id, view_count=0)
    db_session.add(article)

    await tag_service.reconcile_tags(db_session, article, "one two")
    await tag_service.reconcile_tags(db_session, article, "")
    await db_session.flush()

    assert article.tags == []
    assert await _tag_names(db_session) == ["one", "two"]


# ---------------------------------------------------------------------------
# is_authorized_to_edit
# ---------------------------------------------------------------------------

def _article_by(username: str) -> Article:
    return Article(title="T", content="C", author=User(username=username, email=f"{username}@x"))


def test_author_is_authorized():
    identity = CallerIdentity(user_id=1, username="u")
    assert is_authorized_to_edit(identity, _article_by("u")) is True


def test_admin_is_authorized_for_any_article():
    identity = CallerIdentity(user_id=2, username="boss", roles=frozenset({"Admin"}))
    assert is_authorized_to_edit(identity, _article_by("u")) is True


def test_other_user_is_not_authorized():
    identity = CallerIdentity(user_id=3, username="someone", roles=frozenset({"Editor"}))
    assert is_authorized_to_edit(identity, _article_by("u")) is False


def test_anonymous_is_not_authorized():
    assert is_authorized_to_edit(None, _article_by("u")) is False


# ---------------------------------------------------------------------------
# article_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_articles_empty(db_session: AsyncSession):
    assert await article_service.list_articles(db_session) == []


@pytest.mark.asyncio
async def test_create_article_via_service(db_session: AsyncSession):
    user = await _create_user(db_session)
    form = ArticleForm(title="Service article", content="Body", tags="a, b")

    article = await article_service.create_article(db_session, identity_for(user), form)

    assert article.id is not None
    assert article.author_id == user.id
    assert article.view_count == 0
    assert {t.name for t in article.tags} == {"a", "b"}


@pytest.mark.asyncio
async def test_create_article_rejects_unknown_category(db_session: AsyncSession):
    user = await _create_user(db_session)
    form = ArticleForm(title="T", content="C", category_id=777)

    with pytest.raises(InvalidFormError) as exc:
        await article_service.create_article(db_session, identity_for(user), form)
    assert exc.value.field == "category_id"


@pytest.mark.asyncio
async def test_details_increments_views_n_times(db_session: AsyncSession):
    user = await _create_user(db_session)
    created = await article_service.create_article(
        db_session, identity_for(user), ArticleForm(title="Counted", content="C")
    )

    for _ in range(5):
        await article_service.get_article_details(db_session, created.id)

    views = (
        await db_session.execute(select(Article.view_count).where(Article.id == created.id))
    ).scalar_one()
    assert views == 5


@pytest.mark.asyncio
async def test_details_not_found(db_session: AsyncSession):
    with pytest.raises(EntityNotFoundError):
        await article_service.get_article_details(db_session, 424242)


@pytest.mark.asyncio
async def test_delete_nonexistent_does_not_mutate(db_session: AsyncSession):
    user = await _create_user(db_session)
    await article_service.create_article(
        db_session, identity_for(user), ArticleForm(title="Stays", content="C")
    )

    with pytest.raises(EntityNotFoundError):
        await article_service.delete_article(db_session, identity_for(user), 999)

    count = (await db_session.execute(select(func.count()).select_from(Article))).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_update_by_non_owner_is_denied(db_session: AsyncSession):
    owner = await _create_user(db_session, "owner")
    intruder = await _create_user(db_session, "intruder")
    created = await article_service.create_article(
        db_session, identity_for(owner), ArticleForm(title="Original", content="C")
    )

    with pytest.raises(PermissionDeniedError):
        await article_service.update_article(
            db_session,
            identity_for(intruder),
            created.id,
            ArticleForm(title="Hijacked", content="C"),
        )

    title = (
        await db_session.execute(select(Article.title).where(Article.id == created.id))
    ).scalar_one()
    assert title == "Original"


@pytest.mark.asyncio
async def test_ensure_editable_checks_existence_then_ownership(db_session: AsyncSession):
    owner = await _create_user(db_session, "owner")
    intruder = await _create_user(db_session, "intruder")
    created = await article_service.create_article(
        db_session, identity_for(owner), ArticleForm(title="Mine", content="C")
    )

    await article_service.ensure_editable(db_session, identity_for(owner), created.id)
    await article_service.ensure_editable(db_session, identity_for(intruder, "Admin"), created.id)
    with pytest.raises(PermissionDeniedError):
        await article_service.ensure_editable(db_session, identity_for(intruder), created.id)
    with pytest.raises(EntityNotFoundError):
        await article_service.ensure_editable(db_session, None, 999)
