############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# post_service.py: Admin create/update actions for posts
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Admin post actions.

Each action runs the same steps in a fixed order:

    1. validate input and decide the publish transition
    2. upload the new cover (if any)            undo: delete the new blob
    3. write the row and commit                 undo: none (last step that can fail the action)
    4. delete the previously owned cover blob   best effort, skipped while
                                                another locale variant uses it
    5. revalidate public pages
    6. enqueue translation                      out-of-band

A crash between 2 and 3 can orphan a blob but never leaves a row pointing at
a missing one.
"""

from dataclasses import dataclass
from typing import List, NoReturn, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.app.core.exceptions import PersistenceError, ValidationError
from sitepress.app.core.metrics import POST_ACTIONS
from sitepress.app.core.page_cache import PageCache
from sitepress.app.core.post_schemas import PostRecord
from sitepress.app.core.publishing import (
    PostIntent,
    decide_transition,
    parse_status,
    parse_timestamp,
    revalidation_paths,
)
from sitepress.app.core.slugify import slugify
from sitepress.app.db import crud
from sitepress.app.db.models import Locale, Post, PostStatus
from sitepress.app.logging_config import get_logger
from sitepress.app.services.dispatch_queue import DispatchQueue
from sitepress.app.storage.blob_store import BlobStore, UploadedObject

logger = get_logger(__name__)


@dataclass
class CoverUpload:
    """A cover image file submitted with the form."""

    data: bytes
    filename: str
    content_type: Optional[str] = None


@dataclass
class PostForm:
    """Fields of the admin create/edit form.

    The current_* fields and original_slug are hidden inputs carrying the
    state the form was rendered with.
    """

    title: Optional[str] = None
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    content_html: Optional[str] = None
    intent: Optional[str] = None
    original_slug: Optional[str] = None
    current_status: Optional[str] = None
    current_published_at: Optional[str] = None
    current_cover_image_url: Optional[str] = None
    remove_cover_image: bool = False
    locale: Optional[str] = None

    def resolved_slug(self) -> str:
        """Slug from the slug field, falling back to the title."""
        return slugify(self.slug or self.title or "")


class PostService:
    """Admin post create/update actions."""

    def __init__(
        self,
        db: AsyncSession,
        store: BlobStore,
        cache: Optional[PageCache] = None,
        dispatch_queue: Optional[DispatchQueue] = None,
    ):
        self.db = db
        self.store = store
        self.cache = cache
        self.dispatch_queue = dispatch_queue

    async def create_post(self, form: PostForm, cover: Optional[CoverUpload] = None) -> Post:
        """
        Create a source-locale post.

        Raises:
            ValidationError: missing fields, or publish without a cover
            UploadError: cover upload rejected (nothing written)
            PersistenceError: insert failed (new cover deleted)
        """
        try:
            slug = self._validate(form)
            transition = decide_transition(
                PostIntent.parse(form.intent),
                previous_status=PostStatus.DRAFT,
                previous_published_at=None,
                has_cover=cover is not None,
            )
        except ValidationError:
            POST_ACTIONS.labels(action="create", outcome="validation").inc()
            raise

        uploaded = await self._upload(cover, action="create")

        try:
            post = await crud.create_post(
                self.db,
                slug=slug,
                locale=Locale.PT,
                title=form.title,
                excerpt=form.excerpt or None,
                content_html=form.content_html,
                cover_image_url=uploaded.public_url if uploaded else None,
                status=transition.status,
                published_at=transition.published_at,
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._abort_write(e, uploaded, action="create", slug=slug)

        POST_ACTIONS.labels(action="create", outcome="ok").inc()
        logger.info(
            "post_created",
            post_id=post.id,
            slug=post.slug,
            status=post.status.value,
            cover_key=uploaded.storage_key if uploaded else None,
        )

        self._revalidate(
            revalidation_paths(Locale.PT.value, slug, PostStatus.DRAFT, transition.status)
        )
        self._enqueue_translation(post)
        return post

    async def update_post(
        self,
        post_id: str,
        form: PostForm,
        cover: Optional[CoverUpload] = None,
    ) -> Post:
        """
        Update a post from the edit form.

        Raises:
            ValidationError: missing fields, or publish without a cover
            UploadError: cover upload rejected (nothing written)
            PersistenceError: unknown post or update failed (new cover deleted)
        """
        remove_cover = bool(form.remove_cover_image) and cover is None
        current_cover = form.current_cover_image_url or None
        has_existing_cover = bool(current_cover) and not form.remove_cover_image
        previous_status = parse_status(form.current_status)

        try:
            slug = self._validate(form)
            transition = decide_transition(
                PostIntent.parse(form.intent),
                previous_status=previous_status,
                previous_published_at=parse_timestamp(form.current_published_at),
                has_cover=cover is not None or has_existing_cover,
            )
        except ValidationError:
            POST_ACTIONS.labels(action="update", outcome="validation").inc()
            raise

        previous_key = self.store.extract_storage_key(current_cover)
        uploaded = await self._upload(cover, action="update")

        updates = {
            "title": form.title,
            "slug": slug,
            "excerpt": form.excerpt or None,
            "content_html": form.content_html,
            "status": transition.status,
            "published_at": transition.published_at,
        }
        if uploaded:
            updates["cover_image_url"] = uploaded.public_url
        elif remove_cover:
            updates["cover_image_url"] = None

        try:
            post = await crud.update_post(self.db, post_id, **updates)
            if post is None:
                await self.db.rollback()
                if uploaded:
                    await self.store.remove(uploaded.storage_key)
                POST_ACTIONS.labels(action="update", outcome="persistence").inc()
                raise PersistenceError("Post not found", code="post_not_found")
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._abort_write(e, uploaded, action="update", slug=slug)

        POST_ACTIONS.labels(action="update", outcome="ok").inc()
        logger.info(
            "post_updated",
            post_id=post.id,
            slug=post.slug,
            status=post.status.value,
            previous_status=previous_status.value,
            cover_replaced=bool(uploaded),
            cover_removed=remove_cover,
        )

        # The row no longer references the old blob; delete it unless another
        # locale variant still does
        if (uploaded or remove_cover) and previous_key:
            if not uploaded or previous_key != uploaded.storage_key:
                await self._release_cover(post.id, current_cover, previous_key)

        locale = getattr(post.locale, "value", post.locale)
        self._revalidate(
            revalidation_paths(
                locale,
                slug,
                previous_status,
                transition.status,
                original_slug=form.original_slug or None,
            )
        )
        self._enqueue_translation(post)
        return post

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(form: PostForm) -> str:
        slug = form.resolved_slug()
        if not form.title or not form.title.strip() or form.content_html is None or not slug:
            raise ValidationError(
                "Title, slug and content are required",
                code="missing_fields",
            )
        return slug

    async def _upload(self, cover: Optional[CoverUpload], action: str) -> Optional[UploadedObject]:
        if cover is None:
            return None
        try:
            return await self.store.upload(cover.data, cover.filename, cover.content_type)
        except Exception:
            POST_ACTIONS.labels(action=action, outcome="upload").inc()
            raise

    async def _abort_write(
        self,
        error: SQLAlchemyError,
        uploaded: Optional[UploadedObject],
        action: str,
        slug: str,
    ) -> NoReturn:
        """Roll back, delete the blob uploaded in this request, raise PersistenceError."""
        await self.db.rollback()
        if uploaded:
            await self.store.remove(uploaded.storage_key)
        POST_ACTIONS.labels(action=action, outcome="persistence").inc()
        logger.error(f"post_{action}_failed", slug=slug, error=str(error))

        if isinstance(error, IntegrityError):
            raise PersistenceError(
                f"A post with slug '{slug}' already exists in this locale",
                code="duplicate_slug",
            ) from error
        raise PersistenceError(f"Failed to save post: {error}", code="write_failed") from error

    async def _release_cover(self, post_id: str, stored_value: str, key: str) -> None:
        """Delete a cover blob once no post references it."""
        forms = [
            stored_value,
            key,
            f"{self.store.public_bucket}/{key}",
            self.store.public_url(key),
        ]
        try:
            references = await crud.count_cover_references(self.db, forms, exclude_id=post_id)
        except SQLAlchemyError as e:
            logger.warning("cover_reference_check_failed", key=key, error=str(e))
            return
        if references:
            logger.info("cover_kept", key=key, references=references)
            return
        await self.store.remove(key)

    def _revalidate(self, paths: List[str]) -> None:
        if self.cache is not None:
            self.cache.invalidate(paths)

    def _enqueue_translation(self, post: Post) -> None:
        if self.dispatch_queue is None:
            logger.debug("translation_not_queued", slug=post.slug, reason="no_queue")
            return
        self.dispatch_queue.enqueue(PostRecord.from_post(post))
