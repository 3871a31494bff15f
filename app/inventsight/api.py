from fastapi import APIRouter

from app.inventsight.core.config import settings
from app.inventsight.routers.health import router as health_router
from app.inventsight.routers.metrics import router as metrics_router
from app.inventsight.routers.transfers import router as transfers_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(transfers_router, tags=["transfer-requests"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
