############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# conftest.py: Pytest configuration and shared test fixtures
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Pytest configuration and shared fixtures for sitepress tests."""

import io
import json
import os
from typing import Dict, Set, Tuple
from urllib.parse import unquote

# The module-level engine in db.session is built from these at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx
import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from sitepress.app.core.page_cache import PageCache
from sitepress.app.db.base import Base
from sitepress.app.db.session import create_session_factory
from sitepress.app.services.translation import TranslationClient
from sitepress.app.settings import Settings
from sitepress.app.storage.blob_store import BlobStore

STORAGE_URL = "https://storage.test"
TRANSLATE_URL = "https://translate.test/language/translate/v2"


class FakeStorageBackend:
    """In-memory stand-in for the storage REST API, served through httpx.MockTransport."""

    def __init__(self):
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.requests = []
        self.fail_uploads = False
        self.fail_deletes = False

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def put(self, bucket: str, key: str, data: bytes) -> None:
        self.objects[(bucket, key)] = data

    def keys(self, bucket: str) -> Set[str]:
        return {k for (b, k) in self.objects if b == bucket}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        prefix = "/storage/v1/object/"
        path = unquote(request.url.path)
        if not path.startswith(prefix):
            return httpx.Response(404, json={"message": "Not found"})
        bucket, _, key = path[len(prefix):].partition("/")

        if request.method == "POST":
            if self.fail_uploads:
                return httpx.Response(500, json={"message": "storage unavailable"})
            exists = (bucket, key) in self.objects
            if exists and request.headers.get("x-upsert") != "true":
                return httpx.Response(409, json={"message": "The resource already exists"})
            self.objects[(bucket, key)] = request.content
            return httpx.Response(200, json={"Key": f"{bucket}/{key}"})

        if request.method == "GET":
            data = self.objects.get((bucket, key))
            if data is None:
                return httpx.Response(404, json={"message": "Object not found"})
            return httpx.Response(200, content=data)

        if request.method == "DELETE":
            if self.fail_deletes:
                return httpx.Response(500, json={"message": "delete failed"})
            prefixes = json.loads(request.content or b"{}").get("prefixes", [])
            removed = []
            for name in prefixes:
                if self.objects.pop((bucket, name), None) is not None:
                    removed.append({"name": name})
            return httpx.Response(200, json=removed)

        return httpx.Response(405)


class FakeTranslator:
    """Translation API stand-in: prefixes text with the target locale."""

    def __init__(self):
        self.calls = []
        self.fail_targets: Set[str] = set()

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append(body)
        if body["target"] in self.fail_targets:
            return httpx.Response(403, json={"error": {"message": "quota exceeded"}})
        return httpx.Response(
            200,
            json={"data": {"translations": [{"translatedText": f"[{body['target']}] {body['q']}"}]}},
        )


def make_image(size=(1600, 1200), mode="RGB", fmt="PNG", color=(200, 30, 30)) -> bytes:
    """Encode a solid-color test image."""
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def settings() -> Settings:
    """Settings for tests; no network, no rate-limit pauses."""
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        storage_url=STORAGE_URL,
        storage_service_key="service-key",
        translation_api_url=TRANSLATE_URL,
        translation_api_key="test-key",
        translation_delay_seconds=0,
        dispatch_drain_timeout=2.0,
        internal_api_token=None,
        cors_origins=["http://localhost:3000"],
    )


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage_backend() -> FakeStorageBackend:
    return FakeStorageBackend()


@pytest_asyncio.fixture
async def blob_store(settings, storage_backend):
    store = BlobStore.from_settings(settings, transport=storage_backend.transport)
    yield store
    await store.close()


@pytest.fixture
def translator() -> FakeTranslator:
    return FakeTranslator()


@pytest_asyncio.fixture
async def translation_client(settings, translator):
    client = TranslationClient.from_settings(settings, transport=translator.transport)
    yield client
    await client.close()


@pytest.fixture
def page_cache() -> PageCache:
    return PageCache(ttl_seconds=3600)


@pytest.fixture
def png_bytes() -> bytes:
    return make_image()


@pytest.fixture
def image_factory():
    """Build encoded test images: image_factory(size=..., mode=..., fmt=...)."""
    return make_image


@pytest.fixture
def public_url():
    """Public URL for a key in the test public bucket."""

    def _public_url(key: str, bucket: str = "public-post-images") -> str:
        return f"{STORAGE_URL}/storage/v1/object/public/{bucket}/{key}"

    return _public_url


@pytest.fixture
def app(settings, session_factory, blob_store, translation_client):
    from sitepress.app.main import create_app

    return create_app(
        settings=settings,
        session_factory=session_factory,
        blob_store=blob_store,
        translation_client=translation_client,
    )


@pytest_asyncio.fixture
async def client(app):
    """HTTP client bound to the app.

    The dispatch worker is not started; tests that exercise translation start
    it and join the queue before their next request.
    """
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as c:
        yield c
    await app.state.dispatch_queue.stop()
