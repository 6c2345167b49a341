"""Severity, type and component labelling of validated issues."""

from typing import Dict, List, Optional

from intel_service.core import get_logger, get_categorization_config
from intel_service.models import (
    Component,
    ErrorSeverity,
    HealthCheck,
    IssueCategorization,
    IssueType,
    KnownIssue,
    LogAnalysis,
)
from intel_service.rules import first_match

logger = get_logger(__name__)


def determine_severity(log_analysis: LogAnalysis, health_check: HealthCheck) -> ErrorSeverity:
    """Severity from health and error-frequency thresholds."""
    if not health_check.api_responsive or not health_check.database_connected:
        return ErrorSeverity.CRITICAL
    if log_analysis.frequency > 50:
        return ErrorSeverity.CRITICAL
    if log_analysis.frequency > 10 or health_check.response_time > 5000:
        return ErrorSeverity.HIGH
    if log_analysis.frequency > 3 or health_check.response_time > 3000:
        return ErrorSeverity.MEDIUM
    return ErrorSeverity.LOW


def _keyword_hit(rule: Dict, error_text: str, endpoint_text: str = "") -> bool:
    if any(keyword in error_text for keyword in rule.get("keywords", [])):
        return True
    return any(keyword in endpoint_text for keyword in rule.get("endpoint_keywords", []))


class CategorizationService:
    """Label issues by severity, type and component."""

    def __init__(self, settings: Optional[Dict] = None):
        """
        Initialize categorization service.

        Args:
            settings: Optional keyword rules (loaded from config if None)
        """
        settings = settings if settings is not None else get_categorization_config()
        self.type_rules: List[Dict] = settings.get("type_rules", [])
        self.component_rules: List[Dict] = settings.get("component_rules", [])
        self.default_type = IssueType(settings.get("default_type", IssueType.BUG.value))
        self.default_component = Component(
            settings.get("default_component", Component.BACKEND_API.value)
        )

    def determine_type(self, log_analysis: LogAnalysis) -> IssueType:
        error_text = " ".join(log_analysis.error_messages).lower()
        rule = first_match(self.type_rules, lambda r: _keyword_hit(r, error_text))
        return IssueType(rule["value"]) if rule else self.default_type

    def determine_component(self, log_analysis: LogAnalysis) -> Component:
        error_text = " ".join(log_analysis.error_messages).lower()
        endpoint_text = " ".join(log_analysis.affected_endpoints).lower()
        rule = first_match(
            self.component_rules, lambda r: _keyword_hit(r, error_text, endpoint_text)
        )
        return Component(rule["value"]) if rule else self.default_component

    def categorize(
        self,
        log_analysis: LogAnalysis,
        health_check: HealthCheck,
        known_issue: Optional[KnownIssue] = None,
    ) -> IssueCategorization:
        """
        Categorize an issue. A matched known issue's labels are used verbatim.

        Returns:
            IssueCategorization with labels [severity, type, component]
        """
        if known_issue:
            severity, issue_type, component = (
                known_issue.severity,
                known_issue.category,
                known_issue.component,
            )
        else:
            severity = determine_severity(log_analysis, health_check)
            issue_type = self.determine_type(log_analysis)
            component = self.determine_component(log_analysis)

        logger.info(
            f"Categorized issue: severity={severity.value}, type={issue_type.value}, "
            f"component={component.value}"
        )
        return IssueCategorization(
            severity=severity,
            type=issue_type,
            component=component,
            labels=[severity.value, issue_type.value, component.value],
        )
