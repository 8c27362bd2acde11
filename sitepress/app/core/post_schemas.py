############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# post_schemas.py: Post payload and response schemas
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Post payload and response schemas.

PostRecord is the snapshot handed to the translation pipeline after a write;
it travels through the dispatch queue and the internal translate endpoint.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from sitepress.app.core.publishing import parse_timestamp
from sitepress.app.db.models import Post, PostStatus


class PostRecord(BaseModel):
    """Committed post fields used to derive translated rows."""

    model_config = ConfigDict(extra="ignore")

    slug: str
    locale: str
    title: str
    excerpt: Optional[str] = None
    content_html: str = ""
    status: PostStatus = PostStatus.DRAFT
    published_at: Optional[datetime] = None
    cover_image_url: Optional[str] = None

    @field_validator("published_at", mode="before")
    @classmethod
    def parse_published_at(cls, v):
        """Accept ISO strings (with 'Z') and make naive values UTC."""
        if v is None or isinstance(v, (str, datetime)):
            return parse_timestamp(v)
        return v

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v):
        """Unknown or empty status means draft."""
        if isinstance(v, PostStatus):
            return v
        if isinstance(v, str) and v.strip().lower() == PostStatus.PUBLISHED.value:
            return PostStatus.PUBLISHED
        return PostStatus.DRAFT

    @classmethod
    def from_post(cls, post: Post) -> "PostRecord":
        """Snapshot an ORM row."""
        return cls(
            slug=post.slug,
            locale=getattr(post.locale, "value", post.locale),
            title=post.title,
            excerpt=post.excerpt,
            content_html=post.content_html,
            status=post.status,
            published_at=post.published_at,
            cover_image_url=post.cover_image_url,
        )


class TranslatePostPayload(BaseModel):
    """Body of POST /internal/translate-post."""

    record: Optional[Dict[str, Any]] = None


class StorageObject(BaseModel):
    """Storage event object descriptor."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    bucket_id: Optional[str] = None


class StorageEventRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    object: Optional[StorageObject] = None


class OptimizeImagePayload(BaseModel):
    """Body of POST /internal/optimize-image (storage webhook)."""

    record: Optional[StorageEventRecord] = None


class PostSummary(BaseModel):
    """Post as shown in listings."""

    id: str
    slug: str
    locale: str
    title: str
    excerpt: Optional[str] = None
    cover_image_url: Optional[str] = None
    status: PostStatus
    published_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PostDetail(PostSummary):
    """Post with its body, for detail pages and the edit form."""

    content_html: str


def post_summary(post: Post, cover_url: Optional[str]) -> PostSummary:
    """Build a listing item; cover_url is the resolved public URL."""
    return PostSummary(
        id=post.id,
        slug=post.slug,
        locale=getattr(post.locale, "value", post.locale),
        title=post.title,
        excerpt=post.excerpt,
        cover_image_url=cover_url,
        status=post.status,
        published_at=post.published_at,
        updated_at=post.updated_at,
    )


def post_detail(post: Post, cover_url: Optional[str]) -> PostDetail:
    """Build a detail payload; cover_url is the resolved public URL."""
    return PostDetail(
        **post_summary(post, cover_url).model_dump(),
        content_html=post.content_html,
    )
