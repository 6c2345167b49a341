"""GitHub ticket creation with signature-keyed deduplication."""
import os
from datetime import datetime
from typing import Callable, Dict, List, Optional
from intel_service.clients.github_client import GitHubClient, get_github_client
from intel_service.core import DatabaseError, get_logger, get_ticketing_config
from intel_service.core.metrics import tickets_total
from intel_service.models import (
    AlertContext,
    DetectedError,
    ErrorSeverity,
    HealthCheck,
    IssueCategorization,
    IssueType,
    KnownIssue,
    LogAnalysis,
    RemediationResult,
    TicketRef,
    ValidationResult,
    utcnow,
)
from intel_service.repositories.issue_repository import IssueRepository

logger = get_logger(__name__)

DEFAULT_GRAFANA_URL = "https://grafana.railway.app"

RECOMMENDATIONS = {
    IssueType.DATABASE: [
        "Check database connection pool settings",
        "Review recent database migrations",
        "Check for long-running queries",
    ],
    IssueType.PERFORMANCE: [
        "Review recent code changes that may impact performance",
        "Check for memory leaks",
        "Consider scaling resources if load has increased",
    ],
    IssueType.INFRASTRUCTURE: [
        "Check Railway service status",
        "Review recent deployments",
        "Verify environment variables are set correctly",
    ],
}

DEFAULT_RECOMMENDATIONS = [
    "Review logs for root cause",
    "Check recent deployments",
    "Verify external service dependencies",
]


def _check(ok: bool) -> str:
    return "✅" if ok else "❌"


def _code_block(text: str) -> str:
    return f"```\n{text}\n```\n\n"


def build_recommendations(
    categorization: IssueCategorization, known_issue: Optional[KnownIssue] = None
) -> str:
    if known_issue:
        return f"- {known_issue.solution}"
    items = RECOMMENDATIONS.get(categorization.type, DEFAULT_RECOMMENDATIONS)
    return "\n".join(f"- {item}" for item in items)


def build_alert_title(alert: AlertContext, categorization: IssueCategorization) -> str:
    prefix = "🚨" if categorization.severity == ErrorSeverity.CRITICAL else "⚠️"
    return f"{prefix} [{categorization.component.value}] {alert.alert_name}"


def build_alert_body(
    alert: AlertContext,
    validation: ValidationResult,
    categorization: IssueCategorization,
    log_analysis: LogAnalysis,
    health_check: HealthCheck,
    remediation: Optional[RemediationResult] = None,
    grafana_url: str = DEFAULT_GRAFANA_URL,
) -> str:
    """Markdown body of an alert ticket."""
    body = f"## 🚨 Automated Alert: {categorization.type.value} - {alert.alert_name}\n\n"
    body += f"**Severity**: {categorization.severity.value}\n"
    body += f"**Component**: {categorization.component.value}\n"
    body += f"**First Detected**: {alert.timestamp.isoformat()}\n"
    body += "**Status**: Investigating\n\n"
    body += "---\n\n"

    body += "### Problem Summary\n"
    body += f"{validation.reason}\n\n"

    body += "### Impact\n"
    body += f"- **Affected Service**: {alert.affected_service}\n"
    body += f"- **Error Rate**: {log_analysis.frequency} occurrences\n"
    body += f"- **Time Window**: {alert.metrics.time_window}\n"
    if log_analysis.affected_endpoints:
        body += f"- **Affected Endpoints**: {', '.join(log_analysis.affected_endpoints)}\n"
    body += "\n"

    body += "### Error Details\n"
    if log_analysis.error_messages:
        body += _code_block(log_analysis.error_messages[0])
    if log_analysis.stack_traces:
        body += "**Stack Trace**:\n"
        body += _code_block(log_analysis.stack_traces[0])

    body += "### Investigation Results\n"
    body += f"- {_check(health_check.api_responsive)} API Responsive\n"
    body += f"- {_check(health_check.database_connected)} Database Connected\n"
    body += f"- ⏱️ Response Time: {health_check.response_time}ms\n"
    body += f"- 📊 Error Frequency: {log_analysis.frequency} occurrences\n"
    body += f"- 🎯 Confidence: {validation.confidence}%\n\n"

    if remediation and remediation.attempted:
        body += "### Auto-Remediation Attempted\n"
        body += f"**Action Taken**: {remediation.action}\n"
        body += f"**Result**: {'✅ Success' if remediation.success else '❌ Failed'}\n"
        if not remediation.success:
            body += "**Logs**:\n" + _code_block("\n".join(remediation.logs))

    known_issue = validation.known_issue
    if known_issue:
        body += "### Known Issue Match\n"
        body += f"**Title**: {known_issue.title}\n"
        body += f"**Solution**: {known_issue.solution}\n"
        body += f"**Previous Occurrences**: {known_issue.occurrences}\n\n"

    body += "### Related Logs\n"
    body += "**Loki Query**:\n" + _code_block(alert.log_query)
    if len(log_analysis.error_messages) > 1:
        body += "**Sample Log Entries**:\n"
        body += _code_block("\n".join(log_analysis.error_messages[:3]))

    body += "### Recommended Actions\n"
    body += build_recommendations(categorization, known_issue)
    body += "\n\n---\n\n"
    body += f"**Grafana Dashboard**: [View in Grafana]({grafana_url})\n\n"
    body += "---\n"
    body += "*This issue was automatically created by the Issue Intelligence Service*\n"
    body += f"*Last updated: {utcnow().isoformat()}*"
    return body


def build_error_title(error: DetectedError) -> str:
    prefix = "🚨" if error.severity == ErrorSeverity.CRITICAL else "⚠️"
    return f"{prefix} [{error.service_name}] {error.error_message[:80]}"


def build_error_body(error: DetectedError) -> str:
    """Markdown body of a ticket for an error found by the log monitor."""
    body = f"## Error detected in {error.service_name}\n\n"
    body += f"**Severity**: {error.severity.value}\n"
    body += f"**Category**: {error.category}\n"
    body += f"**Occurrences**: {error.occurrence_count}\n"
    body += f"**First Seen**: {error.first_seen.isoformat()}\n"
    body += f"**Last Seen**: {error.last_seen.isoformat()}\n"
    if error.deployment_id:
        body += f"**Deployment**: {error.deployment_id}\n"
    body += f"**Signature**: `{error.signature}`\n\n"
    body += "### Error Message\n" + _code_block(error.error_message)
    if error.log_lines:
        body += "### Log Excerpt\n" + _code_block("\n".join(error.log_lines))
    body += "---\n"
    body += "*This issue was automatically created by the Issue Intelligence Service*"
    return body


def build_recurrence_comment(occurrences: int, last_seen: datetime) -> str:
    return (
        "🔁 **Error occurred again**\n\n"
        f"- **New Occurrences**: {occurrences}\n"
        f"- **Last Seen**: {last_seen.isoformat()}\n"
    )


class TicketingService:
    """Create or update GitHub issues, one per error signature."""

    def __init__(
        self,
        client: Optional[GitHubClient] = None,
        repository: Optional[IssueRepository] = None,
        settings: Optional[Dict] = None,
    ):
        """
        Initialize ticketing service.

        Args:
            client: GitHub client
            repository: Issue record repository
            settings: Ticketing config (loaded from config if None)
        """
        self.client = client or get_github_client()
        self.repository = repository or IssueRepository()
        self.settings = settings if settings is not None else get_ticketing_config()
        self.grafana_url = os.getenv("GRAFANA_URL", DEFAULT_GRAFANA_URL)

    def build_labels(self, extra: List[str]) -> List[str]:
        labels = list(self.settings.get("default_labels", []))
        labels.extend(label for label in extra if label not in labels)
        return labels

    def file_alert_ticket(
        self,
        alert: AlertContext,
        signature: str,
        validation: ValidationResult,
        categorization: IssueCategorization,
        log_analysis: LogAnalysis,
        health_check: HealthCheck,
        remediation: Optional[RemediationResult] = None,
    ) -> TicketRef:
        """
        Open a ticket for an investigated alert, or comment on the existing one.

        Raises:
            TicketingError: If the GitHub call fails
            DatabaseError: If the existing issue lookup fails
        """
        return self._file(
            signature=signature,
            service_name=alert.affected_service,
            error_message=log_analysis.error_pattern or alert.alert_name,
            first_seen=log_analysis.first_occurrence,
            last_seen=alert.timestamp,
            occurrences=max(log_analysis.frequency, 1),
            open_issue=validation.should_update_existing,
            create=lambda: self.client.create_issue(
                build_alert_title(alert, categorization),
                build_alert_body(
                    alert,
                    validation,
                    categorization,
                    log_analysis,
                    health_check,
                    remediation,
                    grafana_url=self.grafana_url,
                ),
                self.build_labels(categorization.labels),
            ),
        )

    def file_detected_error(self, error: DetectedError) -> TicketRef:
        """
        Open a ticket for a merged detected error, or comment on the existing one.

        Raises:
            TicketingError: If the GitHub call fails
            DatabaseError: If the existing issue lookup fails
        """
        return self._file(
            signature=error.signature,
            service_name=error.service_name,
            error_message=error.error_message,
            first_seen=error.first_seen,
            last_seen=error.last_seen,
            occurrences=error.occurrence_count,
            open_issue=None,
            create=lambda: self.client.create_issue(
                build_error_title(error),
                build_error_body(error),
                self.build_labels([error.severity.value, error.category, error.service_name]),
            ),
        )

    def _file(
        self,
        signature: str,
        service_name: str,
        error_message: str,
        first_seen: datetime,
        last_seen: datetime,
        occurrences: int,
        open_issue: Optional[int],
        create: Callable[[], Dict],
    ) -> TicketRef:
        existing = self.repository.find_by_signature(signature)

        if existing or open_issue:
            number = existing["github_issue_number"] if existing else open_issue
            logger.info(f"Error already tracked in issue #{number}, adding comment")
            try:
                self.client.add_comment(number, build_recurrence_comment(occurrences, last_seen))
            except Exception:
                tickets_total.labels(operation="comment", status="error").inc()
                raise
            tickets_total.labels(operation="comment", status="success").inc()

            url = existing["github_issue_url"] if existing else ""
            if existing:
                self._write(
                    lambda: self.repository.increment_occurrence(signature, occurrences, last_seen)
                )
            return TicketRef(number=number, url=url, created=False)

        try:
            issue = create()
        except Exception:
            tickets_total.labels(operation="create", status="error").inc()
            raise
        tickets_total.labels(operation="create", status="success").inc()

        row = self._write(
            lambda: self.repository.record_occurrence(
                error_signature=signature,
                github_issue_number=issue["number"],
                github_issue_url=issue["html_url"],
                service_name=service_name,
                error_message=error_message,
                first_seen=first_seen,
                last_seen=last_seen,
                occurrence_count=occurrences,
            )
        )
        if row is not None and not row.get("inserted", True):
            logger.warning(
                f"Signature {signature} was recorded concurrently under issue "
                f"#{row['github_issue_number']}; issue #{issue['number']} is a duplicate"
            )
        return TicketRef(number=issue["number"], url=issue["html_url"], created=True)

    @staticmethod
    def _write(operation: Callable[[], Optional[Dict]]) -> Optional[Dict]:
        try:
            return operation()
        except DatabaseError as e:
            logger.error(f"Issue record not updated: {e}")
            return None
