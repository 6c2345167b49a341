"""Pydantic models for the Issue Intelligence Service."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class LogLevel(str, Enum):
    """Severity of a single parsed log line."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class ErrorSeverity(str, Enum):
    """Severity of a detected error or triaged issue."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertSeverity(str, Enum):
    """Severity carried by an inbound alert."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class IssueType(str, Enum):
    BUG = "bug"
    PERFORMANCE = "performance"
    SECURITY = "security"
    INFRASTRUCTURE = "infrastructure"
    DATABASE = "database"


class Component(str, Enum):
    BACKEND_API = "backend-api"
    FRONTEND = "frontend"
    SCRAPER = "scraper"
    AUTHENTICATION = "authentication"
    DATABASE = "database"


class ServiceStatus(str, Enum):
    """Status of an external dependency probed by the health check."""

    UP = "up"
    DOWN = "down"
    DEGRADED = "degraded"


class RemediationStrategy(str, Enum):
    """Known remediation actions."""

    RESTART = "restart"
    RECONNECT_DB = "reconnect-db"
    RECONNECT_REDIS = "reconnect-redis"
    CACHE_CLEAR = "cache-clear"


class LogEntry(BaseModel):
    """One parsed log line."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    message: str
    severity: LogLevel
    service_name: str
    deployment_id: Optional[str] = None
    raw_line: str


class DetectedError(BaseModel):
    """An error incident built from a run of adjacent log entries.

    Instances are immutable; merging occurrences produces a new object.
    """

    model_config = ConfigDict(frozen=True)

    signature: str
    service_name: str
    error_message: str
    severity: ErrorSeverity
    category: str  # error pattern category, e.g. "database", "auth", "network"
    log_lines: List[str] = Field(default_factory=list)
    first_seen: datetime
    last_seen: datetime
    occurrence_count: int = 1
    deployment_id: Optional[str] = None


class AlertMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    error_count: int = 0
    time_window: str = "5m"
    affected_endpoints: Optional[List[str]] = None


class AlertContext(BaseModel):
    """Normalized inbound alert."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    alert_name: str
    severity: AlertSeverity
    affected_service: str
    log_query: str
    metrics: AlertMetrics = Field(default_factory=AlertMetrics)


class LogAnalysis(BaseModel):
    """Evidence extracted from the logs around an alert."""

    error_messages: List[str] = Field(default_factory=list)  # at most 10 unique
    stack_traces: List[str] = Field(default_factory=list)  # at most 5
    affected_endpoints: List[str] = Field(default_factory=list)
    affected_users: Optional[int] = None
    error_pattern: Optional[str] = None
    first_occurrence: datetime
    last_occurrence: datetime
    frequency: int = 0

    @classmethod
    def empty(cls, now: Optional[datetime] = None) -> "LogAnalysis":
        """Analysis with no evidence, used when the log query fails."""
        now = now or utcnow()
        return cls(first_occurrence=now, last_occurrence=now)

    @classmethod
    def from_detected_error(cls, error: DetectedError) -> "LogAnalysis":
        """Build evidence for the known-issue matcher from a merged detected error."""
        stack_lines = [line for line in error.log_lines if line.strip().lower().startswith("at ")]
        return cls(
            error_messages=[error.error_message],
            stack_traces=["\n".join(stack_lines)] if stack_lines else [],
            error_pattern=error.error_message,
            first_occurrence=error.first_seen,
            last_occurrence=error.last_seen,
            frequency=error.occurrence_count,
        )


class HealthCheck(BaseModel):
    """Result of probing the monitored application."""

    api_responsive: bool
    database_connected: bool
    response_time: float  # milliseconds
    external_services: Dict[str, ServiceStatus] = Field(default_factory=dict)

    @classmethod
    def unresponsive(cls, response_time: float = 0) -> "HealthCheck":
        return cls(api_responsive=False, database_connected=False, response_time=response_time)


class HistoricalContext(BaseModel):
    """Prior occurrences of the same alert."""

    is_recurring: bool = False
    last_occurrence: Optional[datetime] = None
    open_github_issue: Optional[int] = None
    total_occurrences: int = 0
    mean_time_between_occurrences: Optional[float] = None  # seconds


class KnownIssue(BaseModel):
    """Catalog entry mapping an error pattern to a cause and remediation."""

    id: Optional[int] = None
    error_pattern: str
    title: str
    description: str = ""
    solution: str = ""
    auto_remediable: bool = False
    remediation_script: Optional[str] = None
    severity: ErrorSeverity
    category: IssueType
    component: Component
    occurrences: int = 0
    last_seen: Optional[datetime] = None


class ValidationResult(BaseModel):
    """Real-vs-noise decision for one alert. Never persisted as-is."""

    is_real_issue: bool
    confidence: int  # 0-100
    reason: str
    rule: str
    should_create_issue: bool
    should_attempt_remediation: bool
    should_update_existing: Optional[int] = None  # open GitHub issue number
    known_issue: Optional[KnownIssue] = None


class IssueCategorization(BaseModel):
    severity: ErrorSeverity
    type: IssueType
    component: Component
    labels: List[str] = Field(default_factory=list)


class RemediationResult(BaseModel):
    """Outcome of a single remediation attempt."""

    attempted: bool
    success: bool
    action: str
    logs: List[str] = Field(default_factory=list)
    should_create_issue: bool = True


class Checkpoint(BaseModel):
    service_name: str
    last_check_time: datetime


class SlackHandle(BaseModel):
    """Handle of a posted chat message, used for threaded updates."""

    message_id: str
    channel: str


class TicketRef(BaseModel):
    """A GitHub issue that was created or commented on."""

    number: int
    url: str
    created: bool  # False when an existing issue received a recurrence comment


class InvestigationOutcome(BaseModel):
    """Summary of one investigation run."""

    alert_name: str
    outcome: str  # ticketed, updated, remediated, dismissed, ticket_failed
    alert_event_id: Optional[int] = None
    validation: ValidationResult
    categorization: IssueCategorization
    remediation: Optional[RemediationResult] = None
    ticket: Optional[TicketRef] = None
    slack: Optional[SlackHandle] = None


class MonitorCycleResult(BaseModel):
    """Summary of one log monitor cycle."""

    check_time: datetime
    services_checked: List[str] = Field(default_factory=list)
    services_failed: List[str] = Field(default_factory=list)
    errors_detected: int = 0
    tickets: List[TicketRef] = Field(default_factory=list)
    skipped_false_positives: int = 0


# Webhook payloads


class WebhookAlert(BaseModel):
    """One alert record of a Grafana/Alertmanager webhook."""

    status: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    startsAt: Optional[str] = None
    endsAt: Optional[str] = None
    generatorURL: Optional[str] = None
    fingerprint: Optional[str] = None


class WebhookPayload(BaseModel):
    """Grafana/Alertmanager webhook body. Unknown fields are ignored."""

    receiver: Optional[str] = None
    status: Optional[str] = None
    alerts: List[WebhookAlert] = Field(default_factory=list)
    groupLabels: Dict[str, Any] = Field(default_factory=dict)
    commonLabels: Dict[str, Any] = Field(default_factory=dict)
    commonAnnotations: Dict[str, Any] = Field(default_factory=dict)
    externalURL: Optional[str] = None
