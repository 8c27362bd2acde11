############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# image_optimizer.py: Raw cover upload resize and WebP re-encode
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Image optimization pipeline.

Triggered by the storage webhook when an object lands in the raw bucket:
download, downscale, re-encode as WebP, upload to the public bucket under
"<name before first dot>.webp", and repoint posts that referenced the raw
name. Rerunning with the same input yields the same derived object (upsert).
"""

import asyncio
import io
from dataclasses import dataclass
from typing import Tuple

from PIL import Image, UnidentifiedImageError
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.app.core.exceptions import DispatchError, ValidationError
from sitepress.app.core.metrics import IMAGE_OPTIMIZATIONS
from sitepress.app.db import crud
from sitepress.app.logging_config import get_logger
from sitepress.app.settings import Settings
from sitepress.app.storage.blob_store import BlobStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class OptimizeResult:
    """Outcome of one optimization run."""

    source: str
    derived_name: str
    width: int
    height: int
    size_bytes: int
    updated_posts: int

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "derived_name": self.derived_name,
            "width": self.width,
            "height": self.height,
            "size_bytes": self.size_bytes,
            "updated_posts": self.updated_posts,
        }


def derived_filename(name: str) -> str:
    """Public-bucket name for an optimized raw upload: everything before the first dot, plus .webp."""
    return f"{name.split('.')[0]}.webp"


def resize_to_webp(data: bytes, max_dimension: int = 800, quality: int = 80) -> Tuple[bytes, int, int]:
    """
    Downscale so the longest side is at most max_dimension and encode as WebP.

    Never upscales. Returns (webp_bytes, width, height).

    Raises:
        DispatchError: data is not a decodable image
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise DispatchError(f"Could not decode image: {e}", code="image_decode") from e

    if img.mode == "P":
        img = img.convert("RGBA")
    elif img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGB")

    w, h = img.size
    if max(w, h) > max_dimension:
        if w >= h:
            new_w = max_dimension
            new_h = int(h * max_dimension / w)
        else:
            new_h = max_dimension
            new_w = int(w * max_dimension / h)
        img = img.resize((max(new_w, 1), max(new_h, 1)), Image.LANCZOS)

    buf = io.BytesIO()
    img.save(buf, format="WEBP", quality=quality)
    return buf.getvalue(), img.size[0], img.size[1]


class ImageOptimizer:
    """Runs the raw-upload optimization pipeline against a BlobStore."""

    def __init__(self, store: BlobStore, max_dimension: int = 800, quality: int = 80):
        self.store = store
        self.max_dimension = max_dimension
        self.quality = quality

    @classmethod
    def from_settings(cls, settings: Settings, store: BlobStore) -> "ImageOptimizer":
        return cls(
            store=store,
            max_dimension=settings.image_max_dimension,
            quality=settings.image_webp_quality,
        )

    async def optimize(self, db: AsyncSession, bucket_id: str, name: str) -> OptimizeResult:
        """
        Optimize one raw upload and repoint posts at the result.

        Raises:
            ValidationError: missing name or an object outside the raw bucket
            StorageError, UploadError, DispatchError: a pipeline step failed
        """
        if not name or not bucket_id:
            raise ValidationError("Missing object information", code="missing_object")
        if bucket_id != self.store.raw_bucket:
            raise ValidationError("Wrong bucket", code="wrong_bucket")

        try:
            raw = await self.store.download(self.store.raw_bucket, name)
            webp, width, height = await asyncio.to_thread(
                resize_to_webp, raw, self.max_dimension, self.quality
            )

            new_name = derived_filename(name)
            await self.store.put_object(
                self.store.public_bucket,
                new_name,
                webp,
                content_type="image/webp",
                upsert=True,
            )

            updated = await crud.repoint_cover_image(db, name, new_name)
            await db.commit()
        except Exception:
            IMAGE_OPTIMIZATIONS.labels(outcome="failed").inc()
            raise

        IMAGE_OPTIMIZATIONS.labels(outcome="ok").inc()
        logger.info(
            "image_optimized",
            source=name,
            derived=new_name,
            width=width,
            height=height,
            raw_size=len(raw),
            size=len(webp),
            updated_posts=updated,
        )
        return OptimizeResult(
            source=name,
            derived_name=new_name,
            width=width,
            height=height,
            size_bytes=len(webp),
            updated_posts=updated,
        )
