############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# main.py: FastAPI application entry point and configuration
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""FastAPI application entry point."""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitepress.app.api import api_router
from sitepress.app.core.page_cache import PageCache
from sitepress.app.db.session import AsyncSessionLocal
from sitepress.app.logging_config import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from sitepress.app.services.dispatch_queue import DispatchQueue
from sitepress.app.services.image_optimizer import ImageOptimizer
from sitepress.app.services.translation import TranslationClient, TranslationDispatcher
from sitepress.app.settings import Settings, get_settings
from sitepress.app.storage.blob_store import BlobStore

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager."""
    logger.info("Starting sitepress...")

    await app.state.dispatch_queue.start()

    logger.info("sitepress started successfully")

    yield

    # Shutdown
    logger.info("Shutting down sitepress...")
    await app.state.dispatch_queue.stop()
    await app.state.translation_client.close()
    await app.state.blob_store.close()
    logger.info("sitepress shutdown complete")


class RequestIDMiddleware:
    """Raw ASGI middleware for request ID injection.

    Unlike @app.middleware("http") which wraps in BaseHTTPMiddleware,
    this does NOT run the handler in a separate task, so client disconnects
    won't cancel in-flight DB operations and leak connections.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = (
            headers.get(b"x-request-id", b"").decode()
            or str(uuid.uuid4())
        )

        bind_request_context(request_id=request_id, path=scope.get("path"))

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                response_headers = list(message.get("headers", []))
                response_headers.append(
                    (b"x-request-id", request_id.encode())
                )
                message = {**message, "headers": response_headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            clear_request_context()


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    blob_store: Optional[BlobStore] = None,
    translation_client: Optional[TranslationClient] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Services are built once here and hung off app.state; request handlers
    reach them through api.dependencies. The dispatch worker is started and
    the HTTP clients closed by the lifespan.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Multilingual site and blog backend with translation and image pipelines",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    store = blob_store or BlobStore.from_settings(settings)
    cache = PageCache(ttl_seconds=settings.page_cache_ttl_seconds)
    client = translation_client or TranslationClient.from_settings(settings)
    dispatcher = TranslationDispatcher.from_settings(settings, client, cache=cache)
    factory = session_factory or AsyncSessionLocal

    app.state.settings = settings
    app.state.session_factory = factory
    app.state.blob_store = store
    app.state.page_cache = cache
    app.state.translation_client = client
    app.state.translation_dispatcher = dispatcher
    app.state.dispatch_queue = DispatchQueue(
        dispatcher,
        session_factory=factory,
        maxsize=settings.dispatch_queue_size,
        drain_timeout=settings.dispatch_drain_timeout,
    )
    app.state.image_optimizer = ImageOptimizer.from_settings(settings, store)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID middleware: raw ASGI to avoid BaseHTTPMiddleware's task
    # cancellation behavior which corrupts DB sessions on client disconnect.
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.exception("unhandled_exception", error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"error": {"message": "Internal server error", "type": "server_error"}},
        )

    app.include_router(api_router)

    return app


# Create application instance
app = create_app()


def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "sitepress.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
