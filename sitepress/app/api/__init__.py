############################################################
#
# sitepress - Multilingual Site and Blog Backend
#
# __init__.py: API router aggregation
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""API endpoints for sitepress."""

from fastapi import APIRouter

from sitepress.app.api.admin_posts import router as admin_router
from sitepress.app.api.health import router as health_router
from sitepress.app.api.internal import router as internal_router
from sitepress.app.api.public import router as public_router

# Create main API router
api_router = APIRouter()

# Public routes match /{locale}, so they go last
api_router.include_router(health_router)
api_router.include_router(internal_router, prefix="/internal", tags=["internal"])
api_router.include_router(admin_router, prefix="/admin", tags=["admin"])
api_router.include_router(public_router)

__all__ = ["api_router"]
