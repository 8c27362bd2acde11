############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# health.py: Health check and Prometheus metrics endpoints
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Health check and metrics endpoints."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text

from sitepress.app.core.metrics import DISPATCH_QUEUE_DEPTH

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def liveness_probe() -> Dict[str, str]:
    """
    Liveness probe - checks if the application is running.

    Returns 200 if the application is alive.
    """
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/readyz")
async def readiness_probe(request: Request) -> Dict[str, Any]:
    """
    Readiness probe - checks if the application is ready to serve traffic.

    Checks:
    - Database connectivity
    - Translation dispatch worker running
    """
    checks = {
        "database": False,
        "dispatch_queue": False,
    }

    try:
        async with request.app.state.session_factory() as db:
            await db.execute(text("SELECT 1"))
            checks["database"] = True
    except Exception:
        pass

    dispatch_queue = getattr(request.app.state, "dispatch_queue", None)
    checks["dispatch_queue"] = bool(dispatch_queue and dispatch_queue.running)

    all_ready = all(checks.values())

    return {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/metrics")
async def prometheus_metrics(request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    dispatch_queue = getattr(request.app.state, "dispatch_queue", None)
    if dispatch_queue is not None:
        DISPATCH_QUEUE_DEPTH.set(dispatch_queue.pending)

    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
