"""Periodic polling of deployment logs for new errors."""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from intel_service.clients.railway_client import RailwayClient, get_railway_client
from intel_service.core import get_logger, get_monitoring_config
from intel_service.core.metrics import detected_errors_total, log_checks_total
from intel_service.error_detector import ErrorDetector
from intel_service.models import DetectedError, LogAnalysis, LogEntry, MonitorCycleResult, TicketRef, utcnow
from intel_service.repositories.checkpoint_repository import CheckpointRepository
from intel_service.repositories.issue_repository import IssueRepository
from intel_service.services.known_issue_service import KnownIssueService
from intel_service.services.ticketing_service import TicketingService
from intel_service.validation import is_known_false_positive

logger = get_logger(__name__)

DEFAULT_LOOKBACK_MINUTES = 15


class LogMonitorService:
    """One poll cycle: checkpoint, fetch, detect, deduplicate, ticket."""

    def __init__(
        self,
        settings: Optional[Dict] = None,
        railway_client: Optional[RailwayClient] = None,
        detector: Optional[ErrorDetector] = None,
        checkpoint_repository: Optional[CheckpointRepository] = None,
        issue_repository: Optional[IssueRepository] = None,
        known_issue_service: Optional[KnownIssueService] = None,
        ticketing_service: Optional[TicketingService] = None,
    ):
        self.settings = settings if settings is not None else get_monitoring_config()
        self.railway_client = railway_client or get_railway_client()
        self.detector = detector or ErrorDetector(
            group_gap_minutes=self.settings.get("group_gap_minutes", 5)
        )
        self.checkpoint_repository = checkpoint_repository or CheckpointRepository()
        self.issue_repository = issue_repository or IssueRepository()
        self.known_issue_service = known_issue_service or KnownIssueService()
        self.ticketing_service = ticketing_service or TicketingService(
            repository=self.issue_repository
        )
        self.lookback = timedelta(
            minutes=self.settings.get("checkpoint_default_lookback_minutes", DEFAULT_LOOKBACK_MINUTES)
        )

    @property
    def service_names(self) -> List[str]:
        return [service["name"] for service in self.settings.get("services", [])]

    def get_last_check_time(self, service_name: str, now: Optional[datetime] = None) -> datetime:
        """Stored checkpoint, or now minus the lookback when absent or unreadable."""
        fallback = (now or utcnow()) - self.lookback
        try:
            stored = self.checkpoint_repository.get(service_name)
        except Exception as e:
            logger.error(f"Failed to get last check time for {service_name}: {e}")
            return fallback
        return stored or fallback

    def update_last_check_time(self, service_name: str, check_time: datetime) -> None:
        try:
            self.checkpoint_repository.upsert(service_name, check_time)
        except Exception as e:
            logger.error(f"Failed to update last check time for {service_name}: {e}")

    def run(self, check_time: Optional[datetime] = None) -> MonitorCycleResult:
        """
        Check every configured service once.

        Logs of all services are fetched concurrently; detected errors are
        then ticketed service by service in configured order. A failure for
        one service is logged and does not stop the others.
        """
        check_time = check_time or utcnow()
        logger.info(f"Starting log monitoring check at {check_time.isoformat()}")
        result = MonitorCycleResult(check_time=check_time)
        service_names = self.service_names
        if not service_names:
            return result

        with ThreadPoolExecutor(max_workers=len(service_names)) as executor:
            fetches = {
                service_name: executor.submit(self.fetch_service_logs, service_name, check_time)
                for service_name in service_names
            }

        for service_name in service_names:
            try:
                entries = fetches[service_name].result()
                self.process_service_logs(service_name, entries, check_time, result)
                result.services_checked.append(service_name)
                log_checks_total.labels(service=service_name, status="success").inc()
            except Exception as e:
                logger.error(f"Failed to check logs for {service_name}: {e}", exc_info=True)
                result.services_failed.append(service_name)
                log_checks_total.labels(service=service_name, status="error").inc()

        logger.info(
            f"Log monitoring check completed: {len(result.services_checked)} checked, "
            f"{len(result.services_failed)} failed, {result.errors_detected} errors, "
            f"{len(result.tickets)} tickets"
        )
        return result

    def fetch_service_logs(self, service_name: str, check_time: datetime) -> List[LogEntry]:
        """
        Fetch the logs of one service since its checkpoint.

        Raises:
            ValueError: If the service has no Railway service ID
            LogSourceError: If the log source query fails
        """
        service_id = self.railway_client.service_ids.get(service_name)
        if not service_id:
            raise ValueError(f"No Railway service ID configured for {service_name}")

        since = self.get_last_check_time(service_name, now=check_time)
        logger.info(f"Checking {service_name} logs since {since.isoformat()}")

        return self.railway_client.fetch_logs_for_service(
            service_id,
            service_name,
            since,
            limit=self.settings.get("log_fetch_limit", 1000),
            log_filter=self.settings.get("log_filter", "@level:error OR @level:warn"),
        )

    def process_service_logs(
        self,
        service_name: str,
        entries: List[LogEntry],
        check_time: datetime,
        result: MonitorCycleResult,
    ) -> None:
        errors = self.detector.detect_errors(entries) if entries else []
        logger.info(f"Found {len(entries)} logs and {len(errors)} errors for {service_name}")

        for signature, occurrences in self.detector.group_errors_by_signature(errors).items():
            merged = self.detector.merge_error_occurrences(occurrences)
            result.errors_detected += 1
            detected_errors_total.labels(
                service=service_name, category=merged.category, severity=merged.severity.value
            ).inc()
            try:
                ticket = self.process_error(merged)
            except Exception as e:
                logger.error(f"Failed to process error {signature}: {e}", exc_info=True)
                continue
            if ticket is None:
                result.skipped_false_positives += 1
            else:
                result.tickets.append(ticket)

        self.update_last_check_time(service_name, check_time)

    def process_error(self, error: DetectedError) -> Optional[TicketRef]:
        """
        File or update the ticket of one merged error.

        Returns:
            The ticket, or None when the error is a documented false positive
        """
        if self.settings.get("skip_known_false_positives", True):
            known_issue = self.known_issue_service.match_known_issue(
                LogAnalysis.from_detected_error(error), record=False
            )
            if is_known_false_positive(known_issue):
                logger.info(f"Skipping known false positive '{known_issue.title}': {error.signature}")
                return None

        return self.ticketing_service.file_detected_error(error)

    def get_status(self) -> Dict:
        unanalyzed = self.issue_repository.list_unanalyzed()
        return {"unanalyzed_count": len(unanalyzed), "unanalyzed_issues": unanalyzed}

    def get_stats(self) -> Dict:
        return self.issue_repository.get_stats()

    def mark_analyzed(self, issue_number: int) -> bool:
        return self.issue_repository.mark_analyzed(issue_number)

    def mark_resolved(self, issue_number: int) -> bool:
        return self.issue_repository.mark_resolved(issue_number)
