"""Service layer: investigation steps, ticketing, notification and log monitoring."""
from intel_service.services.health_check_service import HealthCheckService
from intel_service.services.historical_service import HistoricalService
from intel_service.services.investigation_service import InvestigationService
from intel_service.services.known_issue_service import KnownIssueService
from intel_service.services.log_analysis_service import LogAnalysisService
from intel_service.services.log_monitor_service import LogMonitorService
from intel_service.services.notification_service import NotificationService
from intel_service.services.remediation_service import RemediationService
from intel_service.services.ticketing_service import TicketingService

__all__ = [
    "HealthCheckService",
    "HistoricalService",
    "InvestigationService",
    "KnownIssueService",
    "LogAnalysisService",
    "LogMonitorService",
    "NotificationService",
    "RemediationService",
    "TicketingService",
]
