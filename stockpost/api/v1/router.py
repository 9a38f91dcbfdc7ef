from fastapi import APIRouter

from stockpost.api.v1.endpoints.health import router as health_router
from stockpost.api.v1.endpoints.cycles import router as cycles_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(cycles_router, tags=["cycles"])
