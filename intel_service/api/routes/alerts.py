"""Alert webhook and alert history endpoints."""

from fastapi import APIRouter, HTTPException, Request
from intel_service.alert_parser import get_alert_parser
from intel_service.api.error_utils import format_user_friendly_error
from intel_service.core import AlertNotFoundError, DatabaseError, ValidationError, get_logger, sanitize_dict
from intel_service.core.metrics import alerts_received_total
from intel_service.jobs import get_investigation_queue
from intel_service.repositories.alert_event_repository import AlertEventRepository

logger = get_logger(__name__)
router = APIRouter()


@router.post("/alerts/{source}", status_code=202)
async def receive_alert(source: str, request: Request):
    """
    Accept a Grafana/Alertmanager webhook and queue it for investigation.

    Returns immediately; the investigation runs in the background.
    """
    parser = get_alert_parser(source)
    if parser is None:
        raise HTTPException(status_code=404, detail=f"Unknown alert source: {source}")

    payload = None
    try:
        payload = await request.json()
        alert = parser(payload)
    except (ValueError, ValidationError) as e:
        alerts_received_total.labels(source=source, status="rejected").inc()
        logger.warning(f"Rejected {source} webhook: {e}")
        if isinstance(payload, dict):
            logger.debug(f"Rejected {source} payload: {sanitize_dict(payload)}")
        raise HTTPException(status_code=400, detail=f"Invalid alert payload: {e}")

    job_id = get_investigation_queue().enqueue(alert, source)
    alerts_received_total.labels(source=source, status="queued").inc()
    logger.info(f"Received {source} alert: {alert.alert_name} (job={job_id})")
    return {"status": "queued", "alert_name": alert.alert_name, "job_id": job_id}


@router.get("/alerts/history")
def get_alert_history(limit: int = 20):
    """List recent alert events, newest first."""
    try:
        alerts = AlertEventRepository.list_recent(limit=limit)
        return {"alerts": alerts, "count": len(alerts)}
    except DatabaseError as e:
        logger.error(f"Database error listing alert history: {str(e)}")
        raise HTTPException(status_code=500, detail=format_user_friendly_error(e))


@router.get("/alerts/{event_id}")
def get_alert(event_id: int):
    """Get an alert event with its remediation attempts."""
    try:
        return AlertEventRepository.get_by_id(event_id)
    except AlertNotFoundError:
        raise HTTPException(status_code=404, detail=f"Alert event not found: {event_id}")
    except DatabaseError as e:
        logger.error(f"Database error getting alert event {event_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=format_user_friendly_error(e))
