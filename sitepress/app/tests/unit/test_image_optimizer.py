############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# test_image_optimizer.py: Unit tests for the image optimization pipeline
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for resize_to_webp and ImageOptimizer."""

import io

import pytest
from PIL import Image

from sitepress.app.core.exceptions import DispatchError, StorageError, ValidationError
from sitepress.app.db import crud
from sitepress.app.db.models import PostStatus
from sitepress.app.services.image_optimizer import (
    ImageOptimizer,
    derived_filename,
    resize_to_webp,
)

RAW = "post-images-raw"
PUBLIC = "public-post-images"


def _open(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


@pytest.fixture
def optimizer(blob_store):
    return ImageOptimizer(blob_store, max_dimension=800, quality=80)


class TestDerivedFilename:
    """Tests for derived_filename()."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("capa.png", "capa.webp"),
            ("capa-1760880000000.jpeg", "capa-1760880000000.webp"),
            ("capa.final.png", "capa.webp"),
            ("semextensao", "semextensao.webp"),
        ],
    )
    def test_names(self, name, expected):
        assert derived_filename(name) == expected


class TestResizeToWebp:
    """Tests for resize_to_webp()."""

    def test_landscape_downscaled(self, image_factory):
        data, width, height = resize_to_webp(image_factory(size=(1600, 1200)))
        assert (width, height) == (800, 600)
        img = _open(data)
        assert img.format == "WEBP"
        assert img.size == (800, 600)

    def test_portrait_downscaled(self, image_factory):
        _, width, height = resize_to_webp(image_factory(size=(1000, 2000)))
        assert (width, height) == (400, 800)

    def test_small_image_not_upscaled(self, image_factory):
        data, width, height = resize_to_webp(image_factory(size=(320, 200)))
        assert (width, height) == (320, 200)
        assert _open(data).format == "WEBP"

    def test_custom_dimension(self, image_factory):
        _, width, height = resize_to_webp(image_factory(size=(1000, 500)), max_dimension=100)
        assert (width, height) == (100, 50)

    @pytest.mark.parametrize(
        "mode,color",
        [("RGBA", (10, 20, 30, 128)), ("L", 128), ("P", 3), ("CMYK", (0, 0, 0, 0))],
    )
    def test_color_modes(self, image_factory, mode, color):
        fmt = "JPEG" if mode == "CMYK" else "PNG"
        data, _, _ = resize_to_webp(image_factory(size=(900, 900), mode=mode, fmt=fmt, color=color))
        assert _open(data).format == "WEBP"

    def test_jpeg_input(self, image_factory):
        _, width, _ = resize_to_webp(image_factory(size=(1200, 800), fmt="JPEG"))
        assert width == 800

    def test_garbage_rejected(self):
        with pytest.raises(DispatchError) as exc_info:
            resize_to_webp(b"definitely not an image")
        assert exc_info.value.code == "image_decode"


class TestImageOptimizer:
    """Tests for ImageOptimizer.optimize()."""

    @pytest.mark.asyncio
    async def test_optimize_uploads_webp_and_repoints(self, optimizer, db, storage_backend, image_factory):
        storage_backend.put(RAW, "capa.png", image_factory(size=(1600, 1200)))
        for locale in ("pt", "en"):
            await crud.create_post(
                db,
                slug="fe",
                locale=locale,
                title="Fé",
                content_html="<p/>",
                cover_image_url="capa.png",
                status=PostStatus.DRAFT,
            )
        await db.commit()

        result = await optimizer.optimize(db, RAW, "capa.png")

        assert result.derived_name == "capa.webp"
        assert (result.width, result.height) == (800, 600)
        assert result.updated_posts == 2
        assert _open(storage_backend.objects[(PUBLIC, "capa.webp")]).size == (800, 600)

        upload = [r for r in storage_backend.requests if r.method == "POST"][-1]
        assert upload.headers["x-upsert"] == "true"
        assert upload.headers["content-type"] == "image/webp"

        db.expire_all()
        variants = await crud.get_posts_by_slug(db, "fe")
        assert {v.cover_image_url for v in variants} == {"capa.webp"}

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, optimizer, db, storage_backend, image_factory):
        storage_backend.put(RAW, "capa.png", image_factory())

        first = await optimizer.optimize(db, RAW, "capa.png")
        second = await optimizer.optimize(db, RAW, "capa.png")

        assert first.derived_name == second.derived_name
        assert storage_backend.keys(PUBLIC) == {"capa.webp"}

    @pytest.mark.asyncio
    async def test_unreferenced_upload_still_optimized(self, optimizer, db, storage_backend, image_factory):
        storage_backend.put(RAW, "solta.jpg", image_factory(fmt="JPEG"))
        result = await optimizer.optimize(db, RAW, "solta.jpg")
        assert result.updated_posts == 0
        assert "solta.webp" in storage_backend.keys(PUBLIC)

    @pytest.mark.asyncio
    async def test_wrong_bucket_rejected(self, optimizer, db, storage_backend):
        with pytest.raises(ValidationError) as exc_info:
            await optimizer.optimize(db, PUBLIC, "capa.png")
        assert exc_info.value.message == "Wrong bucket"
        assert storage_backend.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bucket,name", [(RAW, ""), ("", "capa.png"), (None, None)])
    async def test_missing_info_rejected(self, optimizer, db, bucket, name):
        with pytest.raises(ValidationError) as exc_info:
            await optimizer.optimize(db, bucket, name)
        assert exc_info.value.message == "Missing object information"

    @pytest.mark.asyncio
    async def test_missing_raw_object(self, optimizer, db, storage_backend):
        with pytest.raises(StorageError):
            await optimizer.optimize(db, RAW, "sumiu.png")
        assert storage_backend.keys(PUBLIC) == set()

    @pytest.mark.asyncio
    async def test_undecodable_raw_object(self, optimizer, db, storage_backend):
        storage_backend.put(RAW, "quebrada.png", b"not an image")
        with pytest.raises(DispatchError):
            await optimizer.optimize(db, RAW, "quebrada.png")
        assert storage_backend.keys(PUBLIC) == set()

    def test_from_settings(self, settings, blob_store):
        optimizer = ImageOptimizer.from_settings(settings, blob_store)
        assert optimizer.max_dimension == 800
        assert optimizer.quality == 80
