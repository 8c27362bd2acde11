############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# public.py: Public localized home, blog listing and post pages
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Public read endpoints.

Blog listing and detail responses are served from the PageCache until a post
mutation revalidates their path. The home page always reads the database.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.app.api.dependencies import (
    get_app_settings,
    get_blob_store,
    get_db,
    get_page_cache,
    require_supported_locale,
)
from sitepress.app.core.page_cache import PageCache
from sitepress.app.core.post_schemas import post_detail, post_summary
from sitepress.app.core.publishing import blog_detail_path, blog_listing_path
from sitepress.app.db import crud
from sitepress.app.settings import Settings
from sitepress.app.storage.blob_store import BlobStore

router = APIRouter(tags=["public"])


@router.get("/{locale}")
async def home(
    locale: str = Depends(require_supported_locale),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
) -> Dict[str, Any]:
    """Home page: the latest published posts."""
    posts = await crud.get_published_posts(db, locale, limit=settings.home_posts_limit)
    return {
        "locale": locale,
        "latest_posts": [
            post_summary(p, store.resolve_public_url(p.cover_image_url)).model_dump(mode="json")
            for p in posts
        ],
    }


@router.get("/{locale}/blog")
async def blog_listing(
    locale: str = Depends(require_supported_locale),
    offset: int = Query(0, ge=0),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    cache: PageCache = Depends(get_page_cache),
) -> Dict[str, Any]:
    """Published posts for a locale, one page at a time."""
    path = blog_listing_path(locale)
    # Every page of a listing lives under the listing path so one
    # revalidation drops all of them
    pages = cache.get(path) or {}
    if offset in pages:
        return pages[offset]

    page_size = settings.blog_page_size
    posts = await crud.get_published_posts(db, locale, limit=page_size, offset=offset)
    page = {
        "locale": locale,
        "offset": offset,
        "limit": page_size,
        "posts": [
            post_summary(p, store.resolve_public_url(p.cover_image_url)).model_dump(mode="json")
            for p in posts
        ],
    }
    # Only real page boundaries are cached, so entries stay bounded by the
    # number of published pages whatever offsets clients send
    if posts and offset % page_size == 0:
        cache.set(path, {**pages, offset: page})
    return page


@router.get("/{locale}/blog/{slug}")
async def blog_post(
    slug: str,
    locale: str = Depends(require_supported_locale),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    cache: PageCache = Depends(get_page_cache),
) -> Dict[str, Any]:
    """A published post; drafts and unknown slugs are 404."""
    path = blog_detail_path(locale, slug)
    cached = cache.get(path)
    if cached is not None:
        return cached

    post = await crud.get_published_post(db, slug, locale)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")

    page = post_detail(post, store.resolve_public_url(post.cover_image_url)).model_dump(mode="json")
    cache.set(path, page)
    return page
