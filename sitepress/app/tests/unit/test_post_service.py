############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# test_post_service.py: Unit tests for admin create/update actions
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for PostService.

Covers the upload -> write -> cleanup ordering: a failed write deletes the
blob uploaded in the same request, a replaced or removed cover is deleted
only after the row stops referencing it.
"""

import pytest
import pytest_asyncio

from sitepress.app.core.exceptions import PersistenceError, UploadError, ValidationError
from sitepress.app.db import crud
from sitepress.app.db.models import Locale, PostStatus
from sitepress.app.services.post_service import CoverUpload, PostForm, PostService

PUBLIC = "public-post-images"


class RecordingQueue:
    """Dispatch queue stand-in that keeps what was enqueued."""

    def __init__(self):
        self.records = []

    def enqueue(self, record):
        self.records.append(record)
        return True


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def service(db, blob_store, page_cache, queue):
    return PostService(db, blob_store, cache=page_cache, dispatch_queue=queue)


def _form(**overrides):
    fields = {
        "title": "Fé e Recomeço",
        "slug": "",
        "excerpt": "Um novo começo",
        "content_html": "<p>Texto</p>",
        "intent": "publish",
    }
    fields.update(overrides)
    return PostForm(**fields)


def _edit_form(post, **overrides):
    fields = {
        "title": post.title,
        "slug": post.slug,
        "excerpt": post.excerpt,
        "content_html": post.content_html,
        "intent": "update",
        "original_slug": post.slug,
        "current_status": post.status.value,
        "current_published_at": post.published_at.isoformat() if post.published_at else "",
        "current_cover_image_url": post.cover_image_url or "",
        "locale": post.locale.value,
    }
    fields.update(overrides)
    return PostForm(**fields)


class TestCreatePost:
    """Tests for PostService.create_post()."""

    @pytest.mark.asyncio
    async def test_publish_with_cover(self, service, storage_backend, page_cache, queue, png_bytes):
        post = await service.create_post(_form(), CoverUpload(png_bytes, "Capa.png", "image/png"))

        assert post.slug == "fe-e-recomeco"
        assert post.locale == Locale.PT
        assert post.status == PostStatus.PUBLISHED
        assert post.published_at is not None

        key = next(iter(storage_backend.keys(PUBLIC)))
        assert key.startswith("capa-") and key.endswith(".png")
        assert post.cover_image_url.endswith(f"/{PUBLIC}/{key}")

        assert page_cache.revalidated_paths == ["/admin", "/pt/blog", "/pt/blog/fe-e-recomeco"]
        assert [r.slug for r in queue.records] == ["fe-e-recomeco"]
        assert queue.records[0].status == PostStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_draft_without_cover(self, service, db, storage_backend, page_cache, queue):
        post = await service.create_post(_form(intent="draft", slug="Rascunho Um"))

        assert post.slug == "rascunho-um"
        assert post.status == PostStatus.DRAFT
        assert post.published_at is None
        assert post.cover_image_url is None
        assert storage_backend.requests == []
        assert page_cache.revalidated_paths == ["/admin"]
        assert len(queue.records) == 1

    @pytest.mark.asyncio
    async def test_publish_without_cover_rejected(self, service, db, storage_backend, queue):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_post(_form())

        assert exc_info.value.code == "cover_required"
        assert await crud.get_all_posts_for_admin(db) == []
        assert storage_backend.requests == []
        assert queue.records == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"title": ""},
            {"title": "   "},
            {"content_html": None},
            {"title": "!!!", "slug": ""},
        ],
    )
    async def test_missing_fields_rejected(self, service, db, overrides, png_bytes):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_post(_form(**overrides), CoverUpload(png_bytes, "capa.png"))
        assert exc_info.value.code == "missing_fields"
        assert await crud.get_all_posts_for_admin(db) == []

    @pytest.mark.asyncio
    async def test_upload_failure_writes_nothing(self, service, db, storage_backend, queue, png_bytes):
        storage_backend.fail_uploads = True

        with pytest.raises(UploadError):
            await service.create_post(_form(), CoverUpload(png_bytes, "capa.png"))

        assert await crud.get_all_posts_for_admin(db) == []
        assert queue.records == []

    @pytest.mark.asyncio
    async def test_duplicate_slug_deletes_new_cover(self, service, db, storage_backend, png_bytes):
        first = await service.create_post(_form(), CoverUpload(png_bytes, "primeira.png"))
        first_key = service.store.extract_storage_key(first.cover_image_url)

        with pytest.raises(PersistenceError) as exc_info:
            await service.create_post(_form(), CoverUpload(png_bytes, "segunda.png"))

        assert exc_info.value.code == "duplicate_slug"
        assert storage_backend.keys(PUBLIC) == {first_key}
        assert len(await crud.get_all_posts_for_admin(db)) == 1

    @pytest.mark.asyncio
    async def test_without_queue_still_succeeds(self, db, blob_store):
        service = PostService(db, blob_store)
        post = await service.create_post(_form(intent="draft"))
        assert post.id


class TestUpdatePost:
    """Tests for PostService.update_post()."""

    @pytest_asyncio.fixture
    async def published(self, service, png_bytes):
        return await service.create_post(_form(), CoverUpload(png_bytes, "original.png", "image/png"))

    @pytest.mark.asyncio
    async def test_replace_cover_deletes_old_blob(self, service, published, storage_backend, png_bytes):
        old_key = service.store.extract_storage_key(published.cover_image_url)

        post = await service.update_post(
            published.id,
            _edit_form(published),
            CoverUpload(png_bytes, "nova.png", "image/png"),
        )

        new_key = service.store.extract_storage_key(post.cover_image_url)
        assert new_key.startswith("nova-")
        assert storage_backend.keys(PUBLIC) == {new_key}
        assert old_key not in storage_backend.keys(PUBLIC)

    @pytest.mark.asyncio
    async def test_keep_cover_deletes_nothing(self, service, published, storage_backend):
        before = len(storage_backend.requests)

        post = await service.update_post(published.id, _edit_form(published, title="Título novo"))

        assert post.title == "Título novo"
        assert post.cover_image_url == published.cover_image_url
        assert len(storage_backend.requests) == before

    @pytest.mark.asyncio
    async def test_update_keeps_published_at(self, service, published):
        original = published.published_at
        post = await service.update_post(published.id, _edit_form(published))
        assert post.status == PostStatus.PUBLISHED
        assert post.published_at == original

    @pytest.mark.asyncio
    async def test_unpublish_and_remove_cover(self, service, published, storage_backend, page_cache):
        post = await service.update_post(
            published.id,
            _edit_form(published, intent="draft", remove_cover_image=True),
        )

        assert post.status == PostStatus.DRAFT
        assert post.published_at is None
        assert post.cover_image_url is None
        assert storage_backend.keys(PUBLIC) == set()
        assert "/pt/blog/fe-e-recomeco" in page_cache.revalidated_paths

    @pytest.mark.asyncio
    async def test_remove_cover_while_published_rejected(self, service, published, storage_backend, db):
        with pytest.raises(ValidationError) as exc_info:
            await service.update_post(
                published.id,
                _edit_form(published, intent="publish", remove_cover_image=True),
            )

        assert exc_info.value.code == "cover_required"
        assert len(storage_backend.keys(PUBLIC)) == 1
        db.expire_all()
        reloaded = await crud.get_post_by_id(db, published.id)
        assert reloaded.cover_image_url == published.cover_image_url

    @pytest.mark.asyncio
    async def test_remove_flag_ignored_when_new_cover_sent(self, service, published, storage_backend, png_bytes):
        post = await service.update_post(
            published.id,
            _edit_form(published, remove_cover_image=True),
            CoverUpload(png_bytes, "troca.png"),
        )
        assert post.cover_image_url is not None
        assert service.store.extract_storage_key(post.cover_image_url).startswith("troca-")
        assert len(storage_backend.keys(PUBLIC)) == 1

    @pytest.mark.asyncio
    async def test_slug_change_revalidates_old_path(self, service, published, page_cache):
        await service.update_post(published.id, _edit_form(published, slug="Novo Começo"))

        assert page_cache.revalidated_paths[-4:] == [
            "/admin",
            "/pt/blog",
            "/pt/blog/novo-comeco",
            "/pt/blog/fe-e-recomeco",
        ]

    @pytest.mark.asyncio
    async def test_missing_post_deletes_new_cover(self, service, storage_backend, png_bytes):
        form = _form(
            intent="publish",
            original_slug="fantasma",
            current_status="published",
        )
        with pytest.raises(PersistenceError) as exc_info:
            await service.update_post("no-such-id", form, CoverUpload(png_bytes, "fantasma.png"))

        assert exc_info.value.code == "post_not_found"
        assert storage_backend.keys(PUBLIC) == set()

    @pytest.mark.asyncio
    async def test_external_cover_never_deleted(self, service, db, storage_backend, png_bytes):
        external = "https://cdn.example.com/capa.png"
        post = await crud.create_post(
            db,
            slug="externa",
            locale="pt",
            title="Externa",
            content_html="<p/>",
            cover_image_url=external,
            status=PostStatus.PUBLISHED,
            published_at=None,
        )
        await db.commit()

        updated = await service.update_post(
            post.id,
            _edit_form(post),
            CoverUpload(png_bytes, "substituta.png"),
        )

        assert updated.cover_image_url != external
        assert not any(r.method == "DELETE" for r in storage_backend.requests)

    @pytest.mark.asyncio
    async def test_update_enqueues_translation(self, service, published, queue):
        await service.update_post(published.id, _edit_form(published, title="Outro título"))
        assert [r.title for r in queue.records] == ["Fé e Recomeço", "Outro título"]

    @pytest.mark.asyncio
    async def test_variant_cover_change_keeps_shared_blob(
        self, service, db, published, storage_backend, png_bytes
    ):
        shared_key = service.store.extract_storage_key(published.cover_image_url)
        variant = await crud.create_post(
            db,
            slug=published.slug,
            locale="en",
            title="Faith and Renewal",
            content_html="<p>Text</p>",
            cover_image_url=published.cover_image_url,
            status=PostStatus.PUBLISHED,
            published_at=published.published_at,
        )
        await db.commit()

        updated = await service.update_post(
            variant.id,
            _edit_form(variant),
            CoverUpload(png_bytes, "english.png", "image/png"),
        )

        assert service.store.extract_storage_key(updated.cover_image_url).startswith("english-")
        assert shared_key in storage_backend.keys(PUBLIC)
        db.expire_all()
        source = await crud.get_post_by_id(db, published.id)
        assert service.store.extract_storage_key(source.cover_image_url) == shared_key

    @pytest.mark.asyncio
    async def test_shared_blob_kept_when_variant_stores_bare_key(
        self, service, db, published, storage_backend
    ):
        shared_key = service.store.extract_storage_key(published.cover_image_url)
        await crud.create_post(
            db,
            slug=published.slug,
            locale="es",
            title="Fe y Renovación",
            content_html="<p>Texto</p>",
            cover_image_url=shared_key,
            status=PostStatus.PUBLISHED,
            published_at=published.published_at,
        )
        await db.commit()

        await service.update_post(
            published.id,
            _edit_form(published, intent="draft", remove_cover_image=True),
        )

        assert shared_key in storage_backend.keys(PUBLIC)
        assert not any(r.method == "DELETE" for r in storage_backend.requests)

    @pytest.mark.asyncio
    async def test_remove_optimized_cover_deletes_blob(self, service, db, storage_backend):
        storage_backend.put(PUBLIC, "foto.webp", b"webp-bytes")
        post = await crud.create_post(
            db,
            slug="otimizada",
            locale="pt",
            title="Otimizada",
            content_html="<p/>",
            cover_image_url="foto.webp",
            status=PostStatus.DRAFT,
            published_at=None,
        )
        await db.commit()

        updated = await service.update_post(
            post.id,
            _edit_form(post, intent="draft", remove_cover_image=True),
        )

        assert updated.cover_image_url is None
        assert "foto.webp" not in storage_backend.keys(PUBLIC)
