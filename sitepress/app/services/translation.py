############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# translation.py: Translation API client and derived-locale dispatcher
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Translation of source-locale posts into derived locale rows.

Runs out-of-band after a post write. Nothing here may fail the admin action
that triggered it: every error is logged and reported, never raised to the
caller of dispatch().
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.app.core.exceptions import DispatchError
from sitepress.app.core.metrics import TRANSLATIONS
from sitepress.app.core.page_cache import PageCache
from sitepress.app.core.post_schemas import PostRecord
from sitepress.app.core.publishing import revalidation_paths
from sitepress.app.db import crud
from sitepress.app.db.models import PostStatus
from sitepress.app.logging_config import get_logger
from sitepress.app.settings import Settings

logger = get_logger(__name__)


class TranslationClient:
    """
    HTTP client for the text translation API.

    Speaks the Google Cloud Translation v2 REST shape:
    request {q, source, target, format}, response
    {"data": {"translations": [{"translatedText": ...}]}}.
    """

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "TranslationClient":
        return cls(
            api_url=settings.translation_api_url,
            api_key=settings.translation_api_key,
            timeout=settings.translation_timeout,
            transport=transport,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def translate(self, text: Optional[str], target: str, source: str = "pt") -> str:
        """
        Translate one piece of text.

        Empty text is returned as "" without calling the API.

        Raises:
            DispatchError: API key missing, HTTP failure, or malformed response
        """
        if not text:
            return ""
        if not self.api_key:
            raise DispatchError("Translation API key is not set", code="translation_unconfigured")

        try:
            client = await self._get_client()
            response = await client.post(
                self.api_url,
                params={"key": self.api_key},
                json={"q": text, "source": source, "target": target, "format": "html"},
            )
        except httpx.HTTPError as e:
            raise DispatchError(f"Translation request failed: {e}", code="translation_transport") from e

        if response.status_code != 200:
            raise DispatchError(
                f"Failed to translate text: {response.status_code} - {response.text}",
                code="translation_rejected",
            )

        try:
            return response.json()["data"]["translations"][0]["translatedText"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise DispatchError("Malformed translation response", code="translation_malformed") from e


@dataclass
class DispatchReport:
    """Outcome of one dispatch, per target locale."""

    source_slug: str
    skipped: bool = False
    created: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> List[str]:
        return self.created + self.updated

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "source_slug": self.source_slug,
            "skipped": self.skipped,
            "created": self.created,
            "updated": self.updated,
            "failed": self.failed,
        }


class TranslationDispatcher:
    """
    Fans a source-locale post out into one derived row per target locale.

    Target locales are processed sequentially with a fixed pause before each
    one to stay under the translation API's rate limits. A failure in one
    locale is rolled back and recorded; the remaining locales still run.
    """

    def __init__(
        self,
        client: TranslationClient,
        target_locales: Sequence[str] = ("en", "es"),
        source_locale: str = "pt",
        delay_seconds: float = 0.2,
        cache: Optional[PageCache] = None,
    ):
        self.client = client
        self.target_locales = list(target_locales)
        self.source_locale = source_locale
        self.delay_seconds = delay_seconds
        self.cache = cache

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: TranslationClient,
        cache: Optional[PageCache] = None,
    ) -> "TranslationDispatcher":
        return cls(
            client=client,
            target_locales=settings.translation_target_locales,
            source_locale=settings.source_locale,
            delay_seconds=settings.translation_delay_seconds,
            cache=cache,
        )

    async def dispatch(self, db: AsyncSession, record: PostRecord) -> DispatchReport:
        """
        Translate record into every target locale and upsert derived rows.

        Args:
            db: Session used for the derived-row writes (committed per locale)
            record: Committed source post

        Returns:
            DispatchReport; skipped=True when record is not in the source locale
        """
        report = DispatchReport(source_slug=record.slug)

        if record.locale != self.source_locale:
            report.skipped = True
            logger.info(
                "translation_skipped",
                slug=record.slug,
                locale=record.locale,
                reason="not_source_locale",
            )
            return report

        for target in self.target_locales:
            if target == self.source_locale:
                continue
            if self.delay_seconds > 0:
                await asyncio.sleep(self.delay_seconds)
            try:
                created, previous_status, next_status = await self._translate_into(db, record, target)
                await db.commit()
            except Exception as e:
                await db.rollback()
                report.failed[target] = str(e)
                TRANSLATIONS.labels(locale=target, outcome="failed").inc()
                logger.error(
                    "translation_locale_failed",
                    slug=record.slug,
                    locale=target,
                    error=str(e),
                )
                continue

            self._revalidate(target, record.slug, previous_status, next_status)
            if created:
                report.created.append(target)
            else:
                report.updated.append(target)
            TRANSLATIONS.labels(locale=target, outcome="created" if created else "updated").inc()

        logger.info("translation_dispatched", **report.to_dict())
        return report

    async def _translate_into(
        self, db: AsyncSession, record: PostRecord, target: str
    ) -> Tuple[bool, PostStatus, PostStatus]:
        """Translate and upsert one derived row.

        Returns:
            (inserted, previous status, next status)
        """
        title, excerpt, content_html = await asyncio.gather(
            self.client.translate(record.title, target, source=self.source_locale),
            self.client.translate(record.excerpt, target, source=self.source_locale),
            self.client.translate(record.content_html, target, source=self.source_locale),
        )

        if record.status == PostStatus.PUBLISHED:
            status = PostStatus.PUBLISHED
            published_at = record.published_at or datetime.now(timezone.utc)
        else:
            status = PostStatus.DRAFT
            published_at = None

        fields = {
            "title": title or record.title,
            "excerpt": excerpt or None,
            "content_html": content_html,
            "cover_image_url": record.cover_image_url,
            "status": status,
            "published_at": published_at,
        }

        existing = await crud.get_post_by_slug_and_locale(db, record.slug, target)
        if existing is not None:
            previous_status = existing.status
            await crud.update_post(db, existing.id, **fields)
            logger.info("translation_row_updated", slug=record.slug, locale=target, post_id=existing.id)
            return False, previous_status, status

        post = await crud.create_post(db, slug=record.slug, locale=target, **fields)
        logger.info("translation_row_created", slug=record.slug, locale=target, post_id=post.id)
        return True, PostStatus.DRAFT, status

    def _revalidate(self, locale: str, slug: str, previous_status, next_status) -> None:
        if self.cache is None:
            return
        self.cache.invalidate(revalidation_paths(locale, slug, previous_status, next_status))
