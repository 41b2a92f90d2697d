"""
Tag service: parsing free-text tag input and reconciling it onto an article.

Tags are global and identified by their lowercase name.  Reconciliation
computes an explicit diff against the article's current tags; Tag rows
are created on first use and never deleted, even once unreferenced.
"""
import logging
import re
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from blog.models import Article, Tag

logger = logging.getLogger(__name__)

_TAG_SEPARATOR_RE = re.compile(r"[,\s]+")


def parse_tags(text: str | None) -> set[str]:
    """
    Split *text* on commas and whitespace into a set of lowercase names.

    >>> sorted(parse_tags("Go, rust rust"))
    ['go', 'rust']
    """
    if not text:
        return set()
    return {token.lower() for token in _TAG_SEPARATOR_RE.split(text) if token}


def join_tags(tags: Iterable[Tag]) -> str:
    """Render tags as the comma-joined string shown in edit/delete views."""
    return ", ".join(sorted(tag.name for tag in tags))


async def get_or_create_tags(db: AsyncSession, names: set[str]) -> list[Tag]:
    """
    Return a Tag for every name in *names*, inserting the missing ones.

    Existing rows are fetched in a single query.  New rows are flushed in
    the caller's transaction; a concurrent insert of the same name
    surfaces as ``IntegrityError`` on that flush.
    """
    if not names:
        return []

    result = await db.execute(select(Tag).where(Tag.name.in_(sorted(names))))
    tags = list(result.scalars().all())

    missing = names - {tag.name for tag in tags}
    if missing:
        new_tags = [Tag(name=name) for name in sorted(missing)]
        db.add_all(new_tags)
        await db.flush()
        logger.info("Created %d new tag(s): %s", len(new_tags), ", ".join(sorted(missing)))
        tags.extend(new_tags)
    return tags


async def reconcile_tags(db: AsyncSession, article: Article, text: str | None) -> None:
    """
    Make *article*'s tags exactly the set parsed from *text*.

    ``article.tags`` must already be loaded (or the article be new).
    Running it twice with the same input leaves the tag set unchanged.
    """
    wanted = parse_tags(text)
    current = {tag.name: tag for tag in article.tags}

    for name in current.keys() - wanted:
        article.tags.remove(current[name])

    additions = wanted - current.keys()
    if additions:
        article.tags.extend(await get_or_create_tags(db, additions))
