############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# internal.py: Internal webhook endpoints (translation, image optimization)
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Internal endpoints called by database and storage webhooks."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from sitepress.app.api.dependencies import (
    get_db,
    get_image_optimizer,
    get_translation_dispatcher,
    require_internal_token,
)
from sitepress.app.core.exceptions import ValidationError
from sitepress.app.core.post_schemas import (
    OptimizeImagePayload,
    PostRecord,
    TranslatePostPayload,
)
from sitepress.app.logging_config import get_logger
from sitepress.app.services.image_optimizer import ImageOptimizer
from sitepress.app.services.translation import TranslationDispatcher

logger = get_logger(__name__)

router = APIRouter(dependencies=[Depends(require_internal_token)])

REQUIRED_RECORD_FIELDS = ("slug", "title", "locale")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/translate-post")
async def translate_post(
    payload: TranslatePostPayload,
    db: AsyncSession = Depends(get_db),
    dispatcher: TranslationDispatcher = Depends(get_translation_dispatcher),
):
    """Derive translated rows for a committed source-locale post."""
    record = payload.record
    if not record:
        return _error(status.HTTP_400_BAD_REQUEST, "Missing record")

    missing = [f for f in REQUIRED_RECORD_FIELDS if not record.get(f)]
    if missing:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            f"Missing required fields: {', '.join(missing)}",
        )

    try:
        post = PostRecord.model_validate(record)
    except PydanticValidationError as e:
        return _error(status.HTTP_400_BAD_REQUEST, f"Invalid record: {e.error_count()} errors")

    if post.locale != dispatcher.source_locale:
        return {"message": f"Skipped: only '{dispatcher.source_locale}' posts are translated"}

    try:
        report = await dispatcher.dispatch(db, post)
    except Exception as e:
        logger.exception("translate_post_failed", slug=post.slug, error=str(e))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    if report.ok:
        message = "Translation completed"
    else:
        message = f"Translation completed with failures: {', '.join(sorted(report.failed))}"
    return {"message": message, "report": report.to_dict()}


@router.post("/optimize-image")
async def optimize_image(
    payload: OptimizeImagePayload,
    db: AsyncSession = Depends(get_db),
    optimizer: ImageOptimizer = Depends(get_image_optimizer),
):
    """Resize a raw cover upload and repoint posts at the WebP result."""
    obj = payload.record.object if payload.record else None
    name = obj.name if obj else None
    bucket_id = obj.bucket_id if obj else None

    try:
        result = await optimizer.optimize(db, bucket_id, name)
    except ValidationError as e:
        return _error(status.HTTP_400_BAD_REQUEST, e.message)
    except Exception as e:
        logger.exception("optimize_image_failed", name=name, bucket=bucket_id, error=str(e))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    return {"message": "Image optimized", "result": result.to_dict()}
