"""End-to-end investigation of one inbound alert."""
from typing import Callable, Optional, TypeVar
from intel_service.core import get_logger
from intel_service.core.metrics import (
    MetricsTimer, investigation_duration_seconds, investigations_total,
)
from intel_service.categorization import CategorizationService
from intel_service.error_patterns import generate_error_signature
from intel_service.models import (
    AlertContext,
    HealthCheck,
    HistoricalContext,
    InvestigationOutcome,
    LogAnalysis,
    RemediationResult,
    TicketRef,
    utcnow,
)
from intel_service.repositories.alert_event_repository import AlertEventRepository
from intel_service.services.health_check_service import HealthCheckService
from intel_service.services.historical_service import HistoricalService
from intel_service.services.known_issue_service import KnownIssueService
from intel_service.services.log_analysis_service import LogAnalysisService
from intel_service.services.notification_service import NotificationService
from intel_service.services.remediation_service import RemediationService
from intel_service.services.ticketing_service import TicketingService
from intel_service.validation import ValidationService

logger = get_logger(__name__)

T = TypeVar("T")


def _degrade(step: str, operation: Callable[[], T], fallback: Callable[[], T]) -> T:
    """Run one pipeline step, returning the fallback value if it raises."""
    try:
        return operation()
    except Exception as e:
        logger.error(f"Investigation step '{step}' failed, using default: {e}", exc_info=True)
        return fallback()


class InvestigationService:
    """Run the investigation pipeline for an alert.

    Steps run strictly in order: analyze logs, health check, history, known
    issue, validate, categorize, persist, notify, remediate, ticket. A failing
    step degrades to a safe default and the pipeline continues.
    """

    def __init__(
        self,
        log_analysis_service: Optional[LogAnalysisService] = None,
        health_check_service: Optional[HealthCheckService] = None,
        historical_service: Optional[HistoricalService] = None,
        known_issue_service: Optional[KnownIssueService] = None,
        validation_service: Optional[ValidationService] = None,
        categorization_service: Optional[CategorizationService] = None,
        remediation_service: Optional[RemediationService] = None,
        notification_service: Optional[NotificationService] = None,
        ticketing_service: Optional[TicketingService] = None,
        alert_event_repository: Optional[AlertEventRepository] = None,
    ):
        self.log_analysis_service = log_analysis_service or LogAnalysisService()
        self.health_check_service = health_check_service or HealthCheckService()
        self.historical_service = historical_service or HistoricalService()
        self.known_issue_service = known_issue_service or KnownIssueService()
        self.validation_service = validation_service or ValidationService()
        self.categorization_service = categorization_service or CategorizationService()
        self.remediation_service = remediation_service or RemediationService(
            health_check_service=self.health_check_service
        )
        self.notification_service = notification_service or NotificationService()
        self.ticketing_service = ticketing_service or TicketingService()
        self.alert_event_repository = alert_event_repository or AlertEventRepository()

    def _update_event(self, event_id: Optional[int], **fields) -> None:
        if event_id is None:
            return
        _degrade(
            "update alert event",
            lambda: self.alert_event_repository.update(event_id, **fields),
            lambda: None,
        )

    def investigate(self, alert: AlertContext, source: Optional[str] = None) -> InvestigationOutcome:
        """
        Investigate one alert.

        Args:
            alert: Normalized alert
            source: Webhook source it arrived from

        Returns:
            InvestigationOutcome summarizing the decisions taken
        """
        logger.info(f"Processing alert investigation: {alert.alert_name}")
        with MetricsTimer(investigation_duration_seconds):
            outcome = self._run(alert, source)
        investigations_total.labels(outcome=outcome.outcome).inc()
        logger.info(
            f"Alert investigation complete: {alert.alert_name} -> {outcome.outcome} "
            f"(real={outcome.validation.is_real_issue}, confidence={outcome.validation.confidence})"
        )
        return outcome

    def _run(self, alert: AlertContext, source: Optional[str]) -> InvestigationOutcome:
        log_analysis = _degrade(
            "analyze logs",
            lambda: self.log_analysis_service.analyze_logs(alert),
            lambda: LogAnalysis.empty(alert.timestamp),
        )
        health_check = _degrade(
            "health check",
            lambda: self.health_check_service.perform_health_checks(alert.affected_service),
            HealthCheck.unresponsive,
        )
        historical = _degrade(
            "history",
            lambda: self.historical_service.check_historical_data(alert),
            HistoricalContext,
        )
        known_issue = _degrade(
            "known issue",
            lambda: self.known_issue_service.match_known_issue(log_analysis),
            lambda: None,
        )

        validation = self.validation_service.validate(
            alert, log_analysis, health_check, historical, known_issue
        )
        categorization = self.categorization_service.categorize(
            log_analysis, health_check, known_issue
        )
        signature = generate_error_signature(
            log_analysis.error_pattern or alert.alert_name, categorization.type.value
        )

        event_id = _degrade(
            "persist alert event",
            lambda: self.alert_event_repository.create(
                alert=alert.model_dump(mode="json"),
                source=source,
                severity=categorization.severity.value,
                error_signature=signature,
                validation=validation.model_dump(mode="json"),
                categorization=categorization.model_dump(mode="json"),
                log_analysis=log_analysis.model_dump(mode="json"),
                health_check=health_check.model_dump(mode="json"),
                historical_context=historical.model_dump(mode="json"),
            ),
            lambda: None,
        )

        slack = self.notification_service.send_alert(alert, validation, categorization)
        if slack:
            self._update_event(event_id, slack_message_id=slack.message_id, slack_channel=slack.channel)

        outcome = InvestigationOutcome(
            alert_name=alert.alert_name,
            outcome="dismissed",
            alert_event_id=event_id,
            validation=validation,
            categorization=categorization,
            slack=slack,
        )

        remediation: Optional[RemediationResult] = None
        if validation.should_attempt_remediation and known_issue and known_issue.auto_remediable:
            remediation = self.remediation_service.attempt_remediation(alert, known_issue, event_id)
            outcome.remediation = remediation
            self._update_event(
                event_id,
                remediation_attempted=remediation.attempted,
                remediation_success=remediation.success,
                remediation_strategy=remediation.action,
            )
            if slack:
                self.notification_service.update_thread(slack, remediation=remediation)

            if remediation.success:
                self.notification_service.send_resolution_notification(alert, remediation)
                logger.info(f"Alert auto-resolved via remediation: {alert.alert_name} ({remediation.action})")
                outcome.outcome = "remediated"
                return outcome

        if not (validation.is_real_issue and validation.should_create_issue):
            return outcome

        ticket: Optional[TicketRef] = _degrade(
            "ticket",
            lambda: self.ticketing_service.file_alert_ticket(
                alert,
                signature,
                validation,
                categorization,
                log_analysis,
                health_check,
                remediation,
            ),
            lambda: None,
        )
        if ticket is None:
            outcome.outcome = "ticket_failed"
            return outcome

        outcome.ticket = ticket
        outcome.outcome = "ticketed" if ticket.created else "updated"
        fields = {"github_issue_number": ticket.number, "github_issue_url": ticket.url or None}
        if ticket.created:
            fields["created_issue_at"] = utcnow()
        self._update_event(event_id, **fields)
        if slack:
            self.notification_service.update_thread(slack, ticket=ticket)
        return outcome
