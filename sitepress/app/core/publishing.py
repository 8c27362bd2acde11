############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# publishing.py: Post publish state machine and page revalidation paths
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Publish state machine.

Decides the next (status, published_at) pair for a post from the admin's
intent and the state the edit form was rendered with:

    intent   | next status | next published_at
    ---------+-------------+-------------------------------
    publish  | published   | previous value if set, else now  (cover required)
    draft    | draft       | None
    update   | published   | previous value if set, else now

Saving as draft always clears the timestamp, so a later publish stamps a
fresh one.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from sitepress.app.core.exceptions import ValidationError
from sitepress.app.db.models import PostStatus


class PostIntent(str, Enum):
    """What the admin asked for when submitting the post form."""
    PUBLISH = "publish"
    DRAFT = "draft"
    UPDATE = "update"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PostIntent":
        """Coerce a raw form value; anything unrecognized is an update."""
        if value == cls.PUBLISH.value:
            return cls.PUBLISH
        if value == cls.DRAFT.value:
            return cls.DRAFT
        return cls.UPDATE


@dataclass(frozen=True)
class Transition:
    """Result of a state machine decision."""

    status: PostStatus
    published_at: Optional[datetime]

    @property
    def is_published(self) -> bool:
        return self.status == PostStatus.PUBLISHED


def parse_status(value: Union[str, PostStatus, None]) -> PostStatus:
    """Coerce a stored or submitted status; blank means draft."""
    if isinstance(value, PostStatus):
        return value
    if value and value.strip().lower() == PostStatus.PUBLISHED.value:
        return PostStatus.PUBLISHED
    return PostStatus.DRAFT


def parse_timestamp(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from a hidden form field.

    Naive values are taken as UTC. Blank or unparseable input yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def decide_transition(
    intent: PostIntent,
    previous_status: Union[str, PostStatus, None],
    previous_published_at: Optional[datetime],
    has_cover: bool,
    now: Optional[datetime] = None,
) -> Transition:
    """
    Compute the next status and publish timestamp.

    Args:
        intent: Admin intent from the form
        previous_status: Status the form was rendered with
        previous_published_at: published_at the form was rendered with
        has_cover: Whether a cover image remains after this request
            (existing and not removed, or newly uploaded)
        now: Clock override for tests

    Returns:
        Transition with the next status and published_at

    Raises:
        ValidationError: publishing without a cover image
    """
    now = now or datetime.now(timezone.utc)

    if intent == PostIntent.DRAFT:
        return Transition(status=PostStatus.DRAFT, published_at=None)

    # publish and update both end up published, and a published post needs a cover
    if not has_cover:
        raise ValidationError("cover image required", code="cover_required")

    published_at = previous_published_at or now
    if published_at > now:
        published_at = now
    return Transition(status=PostStatus.PUBLISHED, published_at=published_at)


def blog_listing_path(locale: str) -> str:
    """Public listing path for a locale."""
    return f"/{locale}/blog"


def blog_detail_path(locale: str, slug: str) -> str:
    """Public detail path for a post variant."""
    return f"/{locale}/blog/{slug}"


def revalidation_paths(
    locale: str,
    slug: str,
    previous_status: Union[str, PostStatus, None],
    next_status: Union[str, PostStatus, None],
    original_slug: Optional[str] = None,
) -> List[str]:
    """
    Pages to invalidate after a post mutation.

    The admin listing always changes. Public pages only change when the post
    was or becomes published; a slug change under the same condition also
    invalidates the old detail page.
    """
    paths = ["/admin"]
    touches_public = (
        parse_status(previous_status) == PostStatus.PUBLISHED
        or parse_status(next_status) == PostStatus.PUBLISHED
    )
    if not touches_public:
        return paths

    paths.append(blog_listing_path(locale))
    paths.append(blog_detail_path(locale, slug))
    if original_slug and original_slug != slug:
        paths.append(blog_detail_path(locale, original_slug))
    return paths
