"""Liveness endpoints."""

from fastapi import APIRouter, HTTPException
from intel_service.core import get_logger
from intel_service.jobs import get_cycle_runner, get_investigation_queue
from intel_service.models import utcnow
from db.connection import ping_db

logger = get_logger(__name__)
router = APIRouter()

SERVICE_NAME = "issue-intelligence-service"
VERSION = "1.0.0"


@router.get("/")
def root():
    """Service banner."""
    return {"service": SERVICE_NAME, "version": VERSION, "status": "running"}


@router.get("/health")
def health_check():
    """
    Health check with store status, queue counters and the cycle running flag.
    Returns 503 when the store is unreachable.
    """
    logger.debug("Health check requested")
    database_ok = ping_db()
    body = {
        "status": "healthy" if database_ok else "unhealthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": utcnow().isoformat(),
        "database": "connected" if database_ok else "disconnected",
        "queue": get_investigation_queue().get_counts(),
        "is_running": get_cycle_runner().is_running,
    }
    if not database_ok:
        logger.warning("Health check failed: database unreachable")
        raise HTTPException(status_code=503, detail=body)
    return body
