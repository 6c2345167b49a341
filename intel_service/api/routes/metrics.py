"""Prometheus exposition endpoint."""

from fastapi import APIRouter
from intel_service.core.metrics import get_metrics_response

router = APIRouter()


@router.get("/metrics")
def metrics():
    return get_metrics_response()
