############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# models.py: SQLAlchemy ORM models for all database entities
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""SQLAlchemy database models for sitepress."""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional
import uuid

from sqlalchemy import (
    Enum,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from sitepress.app.db.base import Base, TimestampMixin, UTCDateTime

# Use enum values (lowercase) for database storage, not enum names (uppercase)
_enum_values = lambda obj: [e.value for e in obj]


# Enums
class PostStatus(str, PyEnum):
    """Post publication status."""
    DRAFT = "draft"
    PUBLISHED = "published"


class Locale(str, PyEnum):
    """Content locales. PT is the canonical source locale."""
    PT = "pt"
    EN = "en"
    ES = "es"


def _new_post_id() -> str:
    return str(uuid.uuid4())


# Post Model
class Post(Base, TimestampMixin):
    """A single locale variant of a blog post.

    The same article exists as up to one row per locale, linked only by a
    matching slug.
    """

    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_post_id)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    locale: Mapped[Locale] = mapped_column(
        Enum(Locale, values_callable=_enum_values, name="post_locale"),
        nullable=False,
        default=Locale.PT,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    excerpt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content_html: Mapped[str] = mapped_column(Text, nullable=False, default="")
    cover_image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    status: Mapped[PostStatus] = mapped_column(
        Enum(PostStatus, values_callable=_enum_values, name="post_status"),
        nullable=False,
        default=PostStatus.DRAFT,
    )
    published_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )

    __table_args__ = (
        UniqueConstraint("slug", "locale", name="uq_posts_slug_locale"),
        Index("ix_posts_locale_status_published", "locale", "status", "published_at"),
        Index("ix_posts_cover_image_url", "cover_image_url"),
    )

    @property
    def is_published(self) -> bool:
        return self.status == PostStatus.PUBLISHED

    def __repr__(self) -> str:
        locale = getattr(self.locale, 'value', self.locale)
        return f"<Post id={self.id} slug={self.slug!r} locale={locale}>"
