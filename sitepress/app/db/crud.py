############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# crud.py: Database CRUD operations for posts
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Database CRUD operations for sitepress.

Every function works against the single posts table. Callers own the
transaction: functions flush but never commit.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.app.db.models import Locale, Post, PostStatus

# Columns callers may set through create_post/update_post
POST_FIELDS = frozenset({
    "slug",
    "locale",
    "title",
    "excerpt",
    "content_html",
    "cover_image_url",
    "status",
    "published_at",
})


def _as_locale(locale: Union[str, Locale]) -> Locale:
    return locale if isinstance(locale, Locale) else Locale(locale)


def _as_status(status: Union[str, PostStatus]) -> PostStatus:
    return status if isinstance(status, PostStatus) else PostStatus(status)


def _clean_fields(fields: dict) -> dict:
    unknown = set(fields) - POST_FIELDS
    if unknown:
        raise ValueError(f"Unknown post fields: {', '.join(sorted(unknown))}")
    cleaned = dict(fields)
    if "locale" in cleaned:
        cleaned["locale"] = _as_locale(cleaned["locale"])
    if "status" in cleaned:
        cleaned["status"] = _as_status(cleaned["status"])
    return cleaned


# Post lookups
async def get_post_by_id(db: AsyncSession, post_id: str) -> Optional[Post]:
    """Get post by ID."""
    result = await db.execute(select(Post).where(Post.id == post_id))
    return result.scalar_one_or_none()


async def get_post_by_slug_and_locale(
    db: AsyncSession,
    slug: str,
    locale: Union[str, Locale],
) -> Optional[Post]:
    """Get the variant of a post for one locale."""
    result = await db.execute(
        select(Post).where(Post.slug == slug, Post.locale == _as_locale(locale))
    )
    return result.scalar_one_or_none()


async def get_posts_by_slug(db: AsyncSession, slug: str) -> List[Post]:
    """Get every locale variant sharing a slug."""
    result = await db.execute(
        select(Post).where(Post.slug == slug).order_by(Post.locale)
    )
    return list(result.scalars().all())


async def get_published_posts(
    db: AsyncSession,
    locale: Union[str, Locale],
    limit: int = 12,
    offset: int = 0,
) -> List[Post]:
    """Get published posts for a locale, newest first."""
    query = (
        select(Post)
        .where(
            Post.locale == _as_locale(locale),
            Post.status == PostStatus.PUBLISHED,
        )
        .order_by(Post.published_at.desc(), Post.id)
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_all_posts_for_admin(
    db: AsyncSession,
    locale: Optional[Union[str, Locale]] = None,
) -> List[Post]:
    """Get all posts (drafts included) for the admin listing."""
    query = select(Post)
    if locale:
        query = query.where(Post.locale == _as_locale(locale))
    query = query.order_by(
        Post.published_at.desc().nulls_last(),
        Post.updated_at.desc(),
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_published_post(
    db: AsyncSession,
    slug: str,
    locale: Union[str, Locale],
) -> Optional[Post]:
    """Get a post variant only if it is published."""
    post = await get_post_by_slug_and_locale(db, slug, locale)
    if post is None or post.status != PostStatus.PUBLISHED:
        return None
    return post


# Post writes
async def create_post(db: AsyncSession, **fields) -> Post:
    """Insert a new post row."""
    post = Post(**_clean_fields(fields))
    db.add(post)
    await db.flush()
    return post


async def update_post(db: AsyncSession, post_id: str, **fields) -> Optional[Post]:
    """
    Update a post in place.

    updated_at is always stamped, even when the caller did not ask for it.

    Returns:
        The updated post, or None if no row has that ID
    """
    post = await get_post_by_id(db, post_id)
    if post is None:
        return None

    for key, value in _clean_fields(fields).items():
        setattr(post, key, value)
    post.updated_at = datetime.now(timezone.utc)

    await db.flush()
    return post


async def repoint_cover_image(db: AsyncSession, old_value: str, new_value: str) -> int:
    """
    Point every post whose cover_image_url equals old_value at new_value.

    Returns:
        Number of rows updated
    """
    result = await db.execute(
        update(Post)
        .where(Post.cover_image_url == old_value)
        .values(cover_image_url=new_value, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def count_cover_references(
    db: AsyncSession,
    values: Iterable[str],
    exclude_id: Optional[str] = None,
) -> int:
    """
    Count posts whose cover_image_url is any of values.

    Derived locale rows copy the source cover, so one blob can back several
    posts. values should hold every stored form of the same blob.
    """
    values = [v for v in set(values) if v]
    if not values:
        return 0
    query = select(func.count()).select_from(Post).where(Post.cover_image_url.in_(values))
    if exclude_id is not None:
        query = query.where(Post.id != exclude_id)
    result = await db.execute(query)
    return result.scalar_one()
