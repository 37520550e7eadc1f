"""
API v1 router — aggregates all sub-routers.
"""

from fastapi import APIRouter

from app.api.v1.auth import router as auth_router
from app.api.v1.items import router as items_router
from app.api.v1.scan import router as scan_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(items_router, prefix="/items", tags=["items"])
router.include_router(scan_router, prefix="/scan", tags=["scan"])
