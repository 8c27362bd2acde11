############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# admin_posts.py: Admin post create/edit form handlers and listings
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Admin post endpoints.

The create/edit forms post multipart data here. Success redirects back to the
admin index; a validation, upload or persistence failure returns 400 with the
message to show next to the form.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.app.api.dependencies import (
    get_app_settings,
    get_blob_store,
    get_db,
    get_post_service,
)
from sitepress.app.core.exceptions import (
    PersistenceError,
    SitepressError,
    UploadError,
    ValidationError,
)
from sitepress.app.core.post_schemas import post_detail, post_summary
from sitepress.app.db import crud
from sitepress.app.logging_config import get_logger
from sitepress.app.services.post_service import CoverUpload, PostForm, PostService
from sitepress.app.settings import Settings
from sitepress.app.storage.blob_store import BlobStore

logger = get_logger(__name__)

router = APIRouter()

ADMIN_INDEX = "/admin"

_TRUTHY = {"on", "true", "1", "yes"}


def _form_error(error: SitepressError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": error.message, "code": error.code},
    )


async def _read_cover(cover_image: Optional[UploadFile], settings: Settings) -> Optional[CoverUpload]:
    """Read the submitted file; an empty file input means no cover."""
    if cover_image is None or not cover_image.filename:
        return None

    data = await cover_image.read()
    if not data:
        return None
    if len(data) > settings.upload_max_size_bytes:
        raise ValidationError(
            f"Cover image exceeds {settings.upload_max_size_mb} MB",
            code="cover_too_large",
        )
    return CoverUpload(
        data=data,
        filename=cover_image.filename,
        content_type=cover_image.content_type,
    )


@router.post("/posts")
async def create_post(
    title: Optional[str] = Form(None),
    slug: Optional[str] = Form(None),
    excerpt: Optional[str] = Form(None),
    content_html: Optional[str] = Form(None),
    intent: Optional[str] = Form(None),
    cover_image: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_app_settings),
    service: PostService = Depends(get_post_service),
):
    """Create a source-locale post from the admin form."""
    form = PostForm(
        title=title,
        slug=slug,
        excerpt=excerpt,
        content_html=content_html,
        intent=intent,
    )
    try:
        cover = await _read_cover(cover_image, settings)
        await service.create_post(form, cover)
    except (ValidationError, UploadError, PersistenceError) as e:
        logger.warning("admin_create_rejected", code=e.code, message=e.message)
        return _form_error(e)

    return RedirectResponse(url=ADMIN_INDEX, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/posts/{post_id}")
async def update_post(
    post_id: str,
    title: Optional[str] = Form(None),
    slug: Optional[str] = Form(None),
    excerpt: Optional[str] = Form(None),
    content_html: Optional[str] = Form(None),
    intent: Optional[str] = Form(None),
    original_slug: Optional[str] = Form(None),
    current_status: Optional[str] = Form(None),
    current_published_at: Optional[str] = Form(None),
    current_cover_image_url: Optional[str] = Form(None),
    remove_cover_image: Optional[str] = Form(None),
    locale: Optional[str] = Form(None),
    cover_image: Optional[UploadFile] = File(None),
    settings: Settings = Depends(get_app_settings),
    service: PostService = Depends(get_post_service),
):
    """Update a post from the admin edit form."""
    form = PostForm(
        title=title,
        slug=slug,
        excerpt=excerpt,
        content_html=content_html,
        intent=intent,
        original_slug=original_slug,
        current_status=current_status,
        current_published_at=current_published_at,
        current_cover_image_url=current_cover_image_url,
        remove_cover_image=(remove_cover_image or "").strip().lower() in _TRUTHY,
        locale=locale,
    )
    try:
        cover = await _read_cover(cover_image, settings)
        await service.update_post(post_id, form, cover)
    except (ValidationError, UploadError, PersistenceError) as e:
        logger.warning("admin_update_rejected", post_id=post_id, code=e.code, message=e.message)
        return _form_error(e)

    return RedirectResponse(url=ADMIN_INDEX, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/posts")
async def list_posts(
    locale: Optional[str] = Query(None),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
) -> Dict[str, Any]:
    """All posts, drafts included, newest first."""
    if locale and not settings.is_supported_locale(locale):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported locale '{locale}'",
        )

    posts = await crud.get_all_posts_for_admin(db, locale=locale or None)
    return {
        "posts": [
            post_summary(p, store.resolve_public_url(p.cover_image_url)).model_dump(mode="json")
            for p in posts
        ],
        "total": len(posts),
    }


@router.get("/posts/by-slug/{slug}")
async def get_post_variants(
    slug: str,
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
) -> Dict[str, Any]:
    """Every locale variant of a post, for the edit form."""
    posts = await crud.get_posts_by_slug(db, slug)
    if not posts:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Post not found",
        )

    return {
        "slug": slug,
        "variants": [
            post_detail(p, store.resolve_public_url(p.cover_image_url)).model_dump(mode="json")
            for p in posts
        ],
    }
