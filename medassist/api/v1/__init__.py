"""API v1 module.

Contains all v1 API routes.
"""

from fastapi import APIRouter

from medassist.api.v1.guidance import router as guidance_router
from medassist.api.v1.models import router as models_router

router = APIRouter(prefix="/api/v1")
router.include_router(guidance_router)
router.include_router(models_router)

__all__ = ["router"]
