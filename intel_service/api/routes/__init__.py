"""HTTP routes."""

from fastapi import APIRouter
from intel_service.api.routes import alerts, health, metrics, monitor

router = APIRouter()

router.include_router(health.router)
router.include_router(alerts.router)
router.include_router(monitor.router)
router.include_router(metrics.router)

__all__ = ["router"]
