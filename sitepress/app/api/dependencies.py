############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# dependencies.py: Shared FastAPI dependencies
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""FastAPI dependencies resolving the services built by the app lifespan."""

from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.app.core.page_cache import PageCache
from sitepress.app.services.dispatch_queue import DispatchQueue
from sitepress.app.services.image_optimizer import ImageOptimizer
from sitepress.app.services.post_service import PostService
from sitepress.app.services.translation import TranslationDispatcher
from sitepress.app.settings import Settings
from sitepress.app.storage.blob_store import BlobStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session from the app's session factory; rolls back on error."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_page_cache(request: Request) -> PageCache:
    return request.app.state.page_cache


def get_dispatch_queue(request: Request) -> DispatchQueue:
    return request.app.state.dispatch_queue


def get_translation_dispatcher(request: Request) -> TranslationDispatcher:
    return request.app.state.translation_dispatcher


def get_image_optimizer(request: Request) -> ImageOptimizer:
    return request.app.state.image_optimizer


def get_post_service(
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
    cache: PageCache = Depends(get_page_cache),
    dispatch_queue: DispatchQueue = Depends(get_dispatch_queue),
) -> PostService:
    return PostService(db, store, cache=cache, dispatch_queue=dispatch_queue)


async def require_internal_token(
    settings: Settings = Depends(get_app_settings),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """
    Guard for the internal webhook endpoints.

    Open when no internal_api_token is configured.
    """
    if not settings.internal_api_token:
        return
    if credentials is None or credentials.credentials != settings.internal_api_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing internal token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_supported_locale(locale: str, settings: Settings = Depends(get_app_settings)) -> str:
    """Path-parameter guard: unsupported locales are 404."""
    if not settings.is_supported_locale(locale):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return locale
