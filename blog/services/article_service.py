"""
Article service — lifecycle operations for the Article aggregate.

Design notes
------------
- The caller is passed in explicitly as a ``CallerIdentity`` (or None for
  anonymous requests); nothing here reads ambient request state.
- Every read path that leads to a mutation checks existence first (404)
  and authorization second (403).  Mutating paths re-check authorization
  themselves rather than trusting that the form was served to the same
  caller.
- Relationships are declared ``lazy="noload"`` on the models, so each
  query states the graph it needs: ``joinedload`` for many-to-one
  (author, category) and ``selectinload`` for the tag collection.
- Service functions flush but do not commit; the transaction boundary is
  owned by the ``get_db`` dependency.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blog.exceptions import EntityNotFoundError, InvalidFormError, PermissionDeniedError
from blog.models import Article
from blog.schemas import ArticleDeleteConfirmation, ArticleForm, ArticleViewModel
from blog.security import CallerIdentity, is_authorized_to_edit
from blog.services import category_service, tag_service

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _article_query(article_id: int):
    return (
        select(Article)
        .where(Article.id == article_id)
        .options(
            joinedload(Article.author),
            joinedload(Article.category),
            selectinload(Article.tags),
        )
    )


async def _load_article(db: AsyncSession, article_id: int) -> Article:
    """Return the article with author, category and tags, or raise EntityNotFoundError."""
    result = await db.execute(_article_query(article_id))
    article = result.unique().scalar_one_or_none()
    if article is None:
        raise EntityNotFoundError("Article", article_id)
    return article


async def _load_editable_article(
    db: AsyncSession, identity: CallerIdentity | None, article_id: int, action: str
) -> Article:
    """Load the article, then check that *identity* may *action* it."""
    article = await _load_article(db, article_id)
    if not is_authorized_to_edit(identity, article):
        logger.warning(
            "Refused %s of article %d for %s",
            action,
            article_id,
            identity.username if identity else "anonymous caller",
        )
        raise PermissionDeniedError(action, "Article", article_id)
    return article


async def ensure_editable(
    db: AsyncSession, identity: CallerIdentity | None, article_id: int
) -> None:
    """Raise unless the article exists (404) and *identity* may edit it (403)."""
    await _load_editable_article(db, identity, article_id, "edit")


async def _check_category(db: AsyncSession, category_id: int | None) -> None:
    if category_id is not None and not await category_service.category_exists(db, category_id):
        raise InvalidFormError("category_id", f"Category {category_id} does not exist")


# ---------------------------------------------------------------------------
# Listing & detail
# ---------------------------------------------------------------------------

async def list_articles(db: AsyncSession) -> list[Article]:
    """Return every article, newest first, with author, category and tags loaded."""
    q = (
        select(Article)
        .options(
            joinedload(Article.author),
            joinedload(Article.category),
            selectinload(Article.tags),
        )
        .order_by(Article.created_at.desc(), Article.id.desc())
    )
    result = await db.execute(q)
    return list(result.unique().scalars().all())


async def get_article_details(db: AsyncSession, article_id: int) -> Article:
    """
    Return one article and count the read.

    The view counter is incremented and flushed in the request
    transaction, so a failed increment fails the read.
    """
    article = await _load_article(db, article_id)
    article.view_count += 1
    await db.flush()
    return article


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

async def build_create_form(db: AsyncSession) -> ArticleViewModel:
    return ArticleViewModel(categories=await category_service.list_categories(db))


async def create_article(
    db: AsyncSession, identity: CallerIdentity, form: ArticleForm
) -> Article:
    """Create an article owned by *identity* and attach its tags."""
    await _check_category(db, form.category_id)

    article = Article(
        title=form.title,
        content=form.content,
        category_id=form.category_id,
        author_id=identity.user_id,
        view_count=0,
    )
    await tag_service.reconcile_tags(db, article, form.tags)

    db.add(article)
    await db.flush()
    logger.info("User %s created article %d", identity.username, article.id)
    return article


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------

async def get_edit_form(
    db: AsyncSession, identity: CallerIdentity | None, article_id: int
) -> ArticleViewModel:
    article = await _load_editable_article(db, identity, article_id, "edit")
    return ArticleViewModel(
        id=article.id,
        title=article.title,
        content=article.content,
        category_id=article.category_id,
        categories=await category_service.list_categories(db),
        tags=tag_service.join_tags(article.tags),
    )


async def update_article(
    db: AsyncSession, identity: CallerIdentity | None, article_id: int, form: ArticleForm
) -> Article:
    """
    Overwrite title, content, category and tags of an existing article.

    The author is never changed.
    """
    article = await _load_editable_article(db, identity, article_id, "edit")
    await _check_category(db, form.category_id)

    article.title = form.title
    article.content = form.content
    article.category_id = form.category_id
    await tag_service.reconcile_tags(db, article, form.tags)
    article.updated_at = datetime.now(timezone.utc)

    await db.flush()
    logger.info("User %s updated article %d", identity.username, article.id)
    return article


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

async def get_delete_confirmation(
    db: AsyncSession, identity: CallerIdentity | None, article_id: int
) -> ArticleDeleteConfirmation:
    article = await _load_editable_article(db, identity, article_id, "delete")
    confirmation = ArticleDeleteConfirmation.model_validate(article)
    confirmation.tag_string = tag_service.join_tags(article.tags)
    return confirmation


async def delete_article(
    db: AsyncSession, identity: CallerIdentity | None, article_id: int
) -> None:
    """
    Hard-delete the article.  Its tag associations go with it; the Tag
    rows themselves are kept.
    """
    article = await _load_editable_article(db, identity, article_id, "delete")
    await db.delete(article)
    await db.flush()
    logger.info("User %s deleted article %d", identity.username, article_id)
