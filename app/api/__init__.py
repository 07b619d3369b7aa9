"""Application API routers."""

from fastapi import APIRouter
from .routes.costing import router as costing_router
from .routes.jobs import router as jobs_router

router = APIRouter()
router.include_router(jobs_router)
router.include_router(costing_router)

__all__ = ["router"]
