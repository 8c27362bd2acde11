############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# blob_store.py: Object storage client for post cover images
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Object storage client for cover images.

Talks to the Supabase Storage REST API. Two buckets matter:

    <raw_bucket>     raw uploads, watched by the image optimizer
    <public_bucket>  public, served at
                     {base}/storage/v1/object/public/{bucket}/{key}

Post rows store either an absolute public URL or a bucket-relative key.
"""

import re
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote, urlparse

import httpx

from sitepress.app.core.exceptions import StorageError, UploadError
from sitepress.app.core.slugify import clean_filename_base, file_extension
from sitepress.app.logging_config import get_logger
from sitepress.app.settings import Settings

logger = get_logger(__name__)

STORAGE_OBJECT_PATH = "/storage/v1/object"
STORAGE_PUBLIC_PATH = "/storage/v1/object/public"

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


def is_absolute_url(value: str) -> bool:
    """True for http(s) URLs."""
    return bool(_ABSOLUTE_URL.match(value))


@dataclass(frozen=True)
class UploadedObject:
    """A blob written to the public bucket."""

    public_url: str
    storage_key: str


class BlobStore:
    """
    HTTP client for the object storage service.

    Constructed explicitly (one per process, owned by the app lifespan) with
    its configuration passed in; nothing is read from ambient state.
    """

    def __init__(
        self,
        base_url: Optional[str],
        service_key: Optional[str] = None,
        public_bucket: str = "public-post-images",
        raw_bucket: str = "post-images-raw",
        timeout: float = 30.0,
        cache_control: str = "3600",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.service_key = service_key
        self.public_bucket = public_bucket
        self.raw_bucket = raw_bucket
        self.timeout = timeout
        self.cache_control = cache_control
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "BlobStore":
        """Build a store from application settings."""
        return cls(
            base_url=settings.storage_url,
            service_key=settings.storage_service_key,
            public_bucket=settings.public_bucket,
            raw_bucket=settings.raw_bucket,
            timeout=settings.storage_timeout,
            cache_control=settings.cover_cache_control,
            transport=transport,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if not self.base_url:
            raise StorageError("Object storage is not configured", code="storage_unconfigured")
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.service_key:
                headers["Authorization"] = f"Bearer {self.service_key}"
                headers["apikey"] = self.service_key
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Key and URL helpers
    # ------------------------------------------------------------------

    @staticmethod
    def build_unique_key(filename: str, now: Optional[float] = None) -> str:
        """
        Build a collision-resistant storage key for an upload.

        "Minha Foto.JPG" -> "minha-foto-1760880000000.jpg"
        """
        millis = int((now if now is not None else time.time()) * 1000)
        return f"{clean_filename_base(filename)}-{millis}{file_extension(filename)}"

    @staticmethod
    def _object_path(bucket: str, key: str) -> str:
        return f"{STORAGE_OBJECT_PATH}/{bucket}/{quote(key, safe='/')}"

    def public_url(self, key: str, bucket: Optional[str] = None) -> str:
        """Public URL for a key in the public bucket (or the given bucket)."""
        bucket = bucket or self.public_bucket
        return f"{self.base_url or ''}{STORAGE_PUBLIC_PATH}/{bucket}/{quote(key, safe='/')}"

    def resolve_public_url(self, stored_value: Optional[str]) -> Optional[str]:
        """
        Resolve a stored cover reference to a URL.

        Absolute URLs are returned unchanged. A bare key is placed in the
        public bucket; a value containing '/' is taken as bucket/key.

        Returns:
            URL, or None when the value is empty or no base URL is configured
        """
        if not stored_value:
            return None
        if is_absolute_url(stored_value):
            return stored_value
        if not self.base_url:
            return None

        normalized = stored_value.lstrip("/")
        if not normalized:
            return None
        final_path = normalized if "/" in normalized else f"{self.public_bucket}/{normalized}"
        return f"{self.base_url}{STORAGE_PUBLIC_PATH}/{final_path}"

    def extract_storage_key(self, url: Optional[str]) -> Optional[str]:
        """
        Inverse of public_url and resolve_public_url: recover the
        public-bucket key from a stored cover reference.

        Storage-relative values follow resolve_public_url: a bare key lives
        in the public bucket, and 'public-post-images/key' names it
        explicitly.

        Returns:
            Decoded key, or None for empty input, malformed URLs and images
            hosted outside the public bucket
        """
        if not url:
            return None
        if not is_absolute_url(url) and "://" not in url:
            relative = url.lstrip("/")
            if "/" not in relative:
                return relative or None
            prefix = f"{self.public_bucket}/"
            if relative.startswith(prefix):
                return relative[len(prefix):] or None
            return None
        try:
            path = urlparse(url).path
        except ValueError:
            return None

        marker = f"/{self.public_bucket}/"
        index = path.find(marker)
        if index == -1:
            return None
        key = unquote(path[index + len(marker):])
        return key or None

    # ------------------------------------------------------------------
    # Object operations
    # ------------------------------------------------------------------

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        upsert: bool = False,
    ) -> None:
        """
        Write an object.

        Raises:
            UploadError: transport failure or the service rejected the write
        """
        try:
            client = await self._get_client()
            response = await client.post(
                self._object_path(bucket, key),
                content=data,
                headers={
                    "Content-Type": content_type,
                    "cache-control": f"max-age={self.cache_control}",
                    "x-upsert": "true" if upsert else "false",
                },
            )
        except StorageError as e:
            raise UploadError(e.message, code=e.code) from e
        except httpx.HTTPError as e:
            logger.warning("blob_upload_transport_error", bucket=bucket, key=key, error=str(e))
            raise UploadError(f"Failed to upload image: {e}", code="upload_transport") from e

        if response.status_code >= 400:
            detail = _error_message(response)
            logger.warning(
                "blob_upload_rejected",
                bucket=bucket,
                key=key,
                status=response.status_code,
                error=detail,
            )
            raise UploadError(f"Failed to upload image: {detail}", code="upload_rejected")

        logger.info("blob_uploaded", bucket=bucket, key=key, size=len(data))

    async def upload(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
    ) -> UploadedObject:
        """
        Upload a cover image to the public bucket under a fresh unique key.

        Raises:
            UploadError: the blob was not stored; callers must not write a
                row that references it
        """
        key = self.build_unique_key(filename)
        await self.put_object(
            self.public_bucket,
            key,
            data,
            content_type=content_type or "application/octet-stream",
            upsert=False,
        )
        return UploadedObject(public_url=self.public_url(key), storage_key=key)

    async def download(self, bucket: str, key: str) -> bytes:
        """
        Read an object.

        Raises:
            StorageError: transport failure or object missing
        """
        try:
            client = await self._get_client()
            response = await client.get(self._object_path(bucket, key))
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to download {bucket}/{key}: {e}", code="download_transport") from e

        if response.status_code >= 400:
            raise StorageError(
                f"Failed to download {bucket}/{key}: {_error_message(response)}",
                code="download_failed",
            )
        return response.content

    async def remove(self, key: Optional[str], bucket: Optional[str] = None) -> bool:
        """
        Best-effort delete.

        Never raises: the post mutation that made the blob obsolete is
        already committed.

        Returns:
            True if the service acknowledged the delete
        """
        if not key:
            return False
        bucket = bucket or self.public_bucket
        try:
            client = await self._get_client()
            response = await client.request(
                "DELETE",
                f"{STORAGE_OBJECT_PATH}/{bucket}",
                json={"prefixes": [key]},
            )
        except (httpx.HTTPError, StorageError) as e:
            logger.warning("blob_remove_failed", bucket=bucket, key=key, error=str(e))
            return False

        if response.status_code >= 400:
            logger.warning(
                "blob_remove_failed",
                bucket=bucket,
                key=key,
                status=response.status_code,
                error=_error_message(response),
            )
            return False

        logger.info("blob_removed", bucket=bucket, key=key)
        return True


def _error_message(response: httpx.Response) -> str:
    """Pull a readable message out of a storage error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
