"""Top-level API router."""

from fastapi import APIRouter

from analytics_service.api.routes.analytics import router as analytics_router
from analytics_service.api.routes.health import router as health_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(analytics_router)
