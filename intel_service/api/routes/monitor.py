"""Log monitor endpoints: stats, status, manual trigger and issue flags."""

from fastapi import APIRouter, HTTPException
from intel_service.api.error_utils import format_user_friendly_error
from intel_service.core import DatabaseError, get_logger
from intel_service.jobs import get_cycle_runner
from intel_service.models import utcnow
from intel_service.repositories.alert_event_repository import AlertEventRepository
from intel_service.services.log_monitor_service import LogMonitorService

logger = get_logger(__name__)
router = APIRouter()


def get_monitor_service() -> LogMonitorService:
    return LogMonitorService()


@router.get("/stats")
def get_stats():
    """Issue totals (all, analyzed, unresolved, by service) and alert totals."""
    try:
        stats = get_monitor_service().get_stats()
        stats["alerts"] = AlertEventRepository.get_stats()
        return {"success": True, "data": stats, "timestamp": utcnow().isoformat()}
    except DatabaseError as e:
        logger.error(f"Failed to get stats: {str(e)}")
        raise HTTPException(status_code=500, detail=format_user_friendly_error(e))


@router.get("/status")
def get_status():
    """Cycle running flag, polling interval and unanalyzed issues."""
    runner = get_cycle_runner()
    try:
        status = get_monitor_service().get_status()
    except DatabaseError as e:
        logger.error(f"Failed to get status: {str(e)}")
        raise HTTPException(status_code=500, detail=format_user_friendly_error(e))
    return {
        "is_running": runner.is_running,
        "polling_interval_minutes": runner.interval_minutes,
        **status,
    }


@router.post("/trigger-check", status_code=202)
async def trigger_check():
    """Start a log monitor cycle in the background; 429 if one is running."""
    if not get_cycle_runner().try_start():
        raise HTTPException(status_code=429, detail="Check already in progress")
    logger.info("Manual log check triggered")
    return {"success": True, "message": "Log check triggered", "timestamp": utcnow().isoformat()}


def _set_issue_flag(issue_number: int, flag: str) -> dict:
    service = get_monitor_service()
    mark = service.mark_analyzed if flag == "analyzed" else service.mark_resolved
    try:
        updated = mark(issue_number)
    except DatabaseError as e:
        logger.error(f"Failed to mark issue #{issue_number} {flag}: {str(e)}")
        raise HTTPException(status_code=500, detail=format_user_friendly_error(e))
    if not updated:
        raise HTTPException(status_code=404, detail=f"Issue not found: #{issue_number}")
    logger.info(f"Issue #{issue_number} marked {flag}")
    return {"success": True, "issue_number": issue_number, flag: True}


@router.post("/issues/{issue_number}/analyzed")
def mark_issue_analyzed(issue_number: int):
    return _set_issue_flag(issue_number, "analyzed")


@router.post("/issues/{issue_number}/resolved")
def mark_issue_resolved(issue_number: int):
    return _set_issue_flag(issue_number, "resolved")
