"""
Category service: the ordered category list used by the article forms.

The list is read on every create/edit form and changes rarely, so it is
served cache-aside from Redis and invalidated after each committed
category write.
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog.cache import CATEGORY_LIST_KEY, cache
from blog.config import settings
from blog.database import run_after_commit
from blog.models import Category
from blog.schemas import CategoryCreate, CategoryResponse

logger = logging.getLogger(__name__)


async def list_categories(db: AsyncSession) -> list[CategoryResponse]:
    """Return every category ordered by name."""
    cached = await cache.get(CATEGORY_LIST_KEY)
    if cached is not None:
        return [CategoryResponse(**item) for item in cached]

    result = await db.execute(select(Category).order_by(Category.name))
    categories = [CategoryResponse.model_validate(c) for c in result.scalars().all()]

    await cache.set(
        CATEGORY_LIST_KEY,
        [c.model_dump() for c in categories],
        ttl=settings.CACHE_TTL_CATEGORIES,
    )
    return categories


async def category_exists(db: AsyncSession, category_id: int) -> bool:
    return await db.get(Category, category_id) is not None


async def create_category(db: AsyncSession, data: CategoryCreate) -> CategoryResponse:
    """
    Insert a category; the cached list is invalidated once the request
    transaction commits.

    Name uniqueness is enforced by the database; the router translates
    the resulting ``IntegrityError`` into a 409.
    """
    category = Category(name=data.name)
    db.add(category)
    await db.flush()
    run_after_commit(db, cache.invalidate_categories)
    logger.info("Created category %r (id=%d)", category.name, category.id)
    return CategoryResponse.model_validate(category)
