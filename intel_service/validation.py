"""Real-vs-noise decision table for investigated alerts."""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from intel_service.core import get_logger, get_validation_config
from intel_service.core.metrics import validation_decisions_total
from intel_service.models import (
    AlertContext,
    AlertSeverity,
    HealthCheck,
    HistoricalContext,
    KnownIssue,
    LogAnalysis,
    ValidationResult,
)
from intel_service.rules import first_match

logger = get_logger(__name__)

DEFAULT_MIN_ERROR_COUNT = 3
DEFAULT_MIN_CONFIDENCE = 60
DEFAULT_SLOW_RESPONSE_MS = 3000


@dataclass(frozen=True)
class Evidence:
    """Everything the decision table looks at for one alert."""

    context: AlertContext
    log_analysis: LogAnalysis
    health_check: HealthCheck
    historical: HistoricalContext
    known_issue: Optional[KnownIssue]
    settings: Dict


@dataclass(frozen=True)
class ValidationRule:
    name: str
    applies: Callable[[Evidence], bool]
    is_real_issue: bool
    confidence: int
    reason: Callable[[Evidence], str]


def is_known_false_positive(known_issue: Optional[KnownIssue]) -> bool:
    """Documented noise: a non-remediable known issue about JWT expiry."""
    return bool(known_issue and not known_issue.auto_remediable and "JWT" in known_issue.title)


def _has_stack_trace(evidence: Evidence) -> bool:
    return len(evidence.log_analysis.stack_traces) > 0


# Evaluated top to bottom, first match wins
VALIDATION_RULES = [
    ValidationRule(
        name="health_check_failure",
        applies=lambda e: not e.health_check.api_responsive or not e.health_check.database_connected,
        is_real_issue=True,
        confidence=95,
        reason=lambda e: "Health check failures detected",
    ),
    ValidationRule(
        name="sustained_errors",
        applies=lambda e: e.log_analysis.frequency
        >= e.settings.get("min_error_count", DEFAULT_MIN_ERROR_COUNT),
        is_real_issue=True,
        confidence=85,
        reason=lambda e: f"Sustained errors: {e.log_analysis.frequency} occurrences",
    ),
    ValidationRule(
        name="critical_with_stack_trace",
        applies=lambda e: _has_stack_trace(e) and e.context.severity == AlertSeverity.CRITICAL,
        is_real_issue=True,
        confidence=80,
        reason=lambda e: "Critical error with stack trace",
    ),
    ValidationRule(
        name="slow_response",
        applies=lambda e: e.health_check.response_time
        > e.settings.get("slow_response_ms", DEFAULT_SLOW_RESPONSE_MS),
        is_real_issue=True,
        confidence=70,
        reason=lambda e: f"High response time: {e.health_check.response_time:.0f}ms",
    ),
    ValidationRule(
        name="single_error_with_stack_trace",
        applies=lambda e: _has_stack_trace(e)
        and e.settings.get("create_issue_on_single_error_with_stack_trace", True),
        is_real_issue=True,
        confidence=65,
        reason=lambda e: "Single error with stack trace",
    ),
    ValidationRule(
        name="known_false_positive",
        applies=lambda e: is_known_false_positive(e.known_issue),
        is_real_issue=False,
        confidence=90,
        reason=lambda e: "Known false positive: JWT token expiry",
    ),
    ValidationRule(
        name="insufficient_evidence",
        applies=lambda e: True,
        is_real_issue=False,
        confidence=50,
        reason=lambda e: "Insufficient evidence for real issue",
    ),
]


class ValidationService:
    """Apply the validation decision table."""

    def __init__(self, settings: Optional[Dict] = None):
        """
        Initialize validation service.

        Args:
            settings: Optional validation thresholds (loaded from config if None)
        """
        self.settings = settings if settings is not None else get_validation_config()

    def validate(
        self,
        context: AlertContext,
        log_analysis: LogAnalysis,
        health_check: HealthCheck,
        historical: HistoricalContext,
        known_issue: Optional[KnownIssue] = None,
    ) -> ValidationResult:
        """
        Decide whether an alert is a real issue and what to do about it.

        Returns:
            ValidationResult with confidence and the downstream decisions
        """
        evidence = Evidence(
            context=context,
            log_analysis=log_analysis,
            health_check=health_check,
            historical=historical,
            known_issue=known_issue,
            settings=self.settings,
        )
        rule = first_match(VALIDATION_RULES, lambda r: r.applies(evidence))

        min_confidence = self.settings.get("min_confidence", DEFAULT_MIN_CONFIDENCE)
        result = ValidationResult(
            is_real_issue=rule.is_real_issue,
            confidence=rule.confidence,
            reason=rule.reason(evidence),
            rule=rule.name,
            should_create_issue=rule.is_real_issue and rule.confidence >= min_confidence,
            should_attempt_remediation=bool(
                rule.is_real_issue and known_issue and known_issue.auto_remediable
            ),
            should_update_existing=historical.open_github_issue,
            known_issue=known_issue,
        )

        validation_decisions_total.labels(
            rule=rule.name, is_real_issue=str(result.is_real_issue).lower()
        ).inc()
        logger.info(
            f"Validation for '{context.alert_name}': real={result.is_real_issue}, "
            f"confidence={result.confidence}, reason={result.reason}"
        )
        return result
