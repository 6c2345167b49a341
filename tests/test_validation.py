"""Unit tests for the real-vs-noise validation decision table."""

import pytest

from intel_service.models import AlertSeverity, HealthCheck, HistoricalContext
from intel_service.validation import ValidationService, is_known_false_positive
from tests.conftest import healthy, jwt_known_issue, make_alert, make_analysis, pool_known_issue

SETTINGS = {
    "min_error_count": 3,
    "min_confidence": 60,
    "slow_response_ms": 3000,
    "create_issue_on_single_error_with_stack_trace": True,
}

STACK = "TypeError: x is undefined\n    at handler (/app/src/index.js:1:1)"


@pytest.fixture
def service():
    return ValidationService(settings=dict(SETTINGS))


class TestValidationRules:
    """Test rule precedence and confidences."""

    def test_health_failure_wins(self, service):
        """Test that a health failure takes precedence over every other rule."""
        result = service.validate(
            make_alert(severity=AlertSeverity.CRITICAL),
            make_analysis(frequency=100, stack_traces=[STACK]),
            HealthCheck(api_responsive=True, database_connected=False, response_time=10),
            HistoricalContext(),
            known_issue=jwt_known_issue(),
        )
        assert result.is_real_issue
        assert result.confidence == 95
        assert result.rule == "health_check_failure"
        assert result.reason == "Health check failures detected"
        assert result.should_create_issue

    def test_database_down_with_connection_refused(self, service):
        """Test the connection-refused scenario with the database reported down."""
        result = service.validate(
            make_alert(severity=AlertSeverity.CRITICAL),
            make_analysis(
                error_messages=["connect ECONNREFUSED 127.0.0.1:5432"], frequency=4
            ),
            HealthCheck(api_responsive=True, database_connected=False, response_time=85),
            HistoricalContext(),
        )
        assert result.confidence == 95
        assert result.should_create_issue
        assert not result.should_attempt_remediation

    def test_sustained_errors(self, service):
        result = service.validate(
            make_alert(), make_analysis(frequency=3), healthy(), HistoricalContext()
        )
        assert result.rule == "sustained_errors"
        assert result.confidence == 85
        assert result.reason == "Sustained errors: 3 occurrences"

    def test_below_min_error_count(self, service):
        """Test that frequency below the threshold does not trigger sustained errors."""
        result = service.validate(
            make_alert(), make_analysis(frequency=2), healthy(), HistoricalContext()
        )
        assert result.rule == "insufficient_evidence"
        assert not result.is_real_issue
        assert result.confidence == 50
        assert not result.should_create_issue

    def test_critical_with_stack_trace(self, service):
        result = service.validate(
            make_alert(severity=AlertSeverity.CRITICAL),
            make_analysis(frequency=1, stack_traces=[STACK]),
            healthy(),
            HistoricalContext(),
        )
        assert result.rule == "critical_with_stack_trace"
        assert result.confidence == 80

    def test_slow_response(self, service):
        result = service.validate(
            make_alert(), make_analysis(frequency=1), healthy(response_time=3500), HistoricalContext()
        )
        assert result.rule == "slow_response"
        assert result.confidence == 70
        assert result.reason == "High response time: 3500ms"

    def test_response_at_threshold_is_not_slow(self, service):
        result = service.validate(
            make_alert(), make_analysis(frequency=1), healthy(response_time=3000), HistoricalContext()
        )
        assert result.rule == "insufficient_evidence"

    def test_single_error_with_stack_trace(self, service):
        result = service.validate(
            make_alert(), make_analysis(frequency=1, stack_traces=[STACK]), healthy(), HistoricalContext()
        )
        assert result.rule == "single_error_with_stack_trace"
        assert result.confidence == 65
        assert result.should_create_issue

    def test_single_error_rule_can_be_disabled(self):
        settings = dict(SETTINGS, create_issue_on_single_error_with_stack_trace=False)
        result = ValidationService(settings=settings).validate(
            make_alert(), make_analysis(frequency=1, stack_traces=[STACK]), healthy(), HistoricalContext()
        )
        assert result.rule == "insufficient_evidence"

    def test_jwt_false_positive(self, service):
        """Test that an isolated JWT expiry on a healthy API is dismissed."""
        result = service.validate(
            make_alert(alert_name="AuthErrors"),
            make_analysis(error_messages=["jwt expired"], frequency=1),
            healthy(),
            HistoricalContext(),
            known_issue=jwt_known_issue(),
        )
        assert result.rule == "known_false_positive"
        assert not result.is_real_issue
        assert result.confidence == 90
        assert result.reason == "Known false positive: JWT token expiry"
        assert not result.should_create_issue

    def test_sustained_jwt_errors_are_real(self, service):
        """Test that sustained errors outrank the JWT false-positive rule."""
        result = service.validate(
            make_alert(alert_name="AuthErrors"),
            make_analysis(error_messages=["jwt expired"], frequency=5),
            healthy(),
            HistoricalContext(),
            known_issue=jwt_known_issue(),
        )
        assert result.rule == "sustained_errors"
        assert result.is_real_issue
        assert result.confidence == 85

    def test_min_confidence_gates_issue_creation(self):
        """Test that a real issue below the confidence floor is not filed."""
        settings = dict(SETTINGS, min_confidence=75)
        result = ValidationService(settings=settings).validate(
            make_alert(), make_analysis(frequency=1), healthy(response_time=4000), HistoricalContext()
        )
        assert result.is_real_issue
        assert result.confidence == 70
        assert not result.should_create_issue


class TestValidationDecisions:
    """Test the downstream decisions carried by the result."""

    def test_remediation_requires_auto_remediable_known_issue(self, service):
        result = service.validate(
            make_alert(),
            make_analysis(error_messages=["too many clients already"], frequency=5),
            healthy(),
            HistoricalContext(),
            known_issue=pool_known_issue(),
        )
        assert result.should_attempt_remediation
        assert result.known_issue.title == "Database Connection Pool Exhausted"

    def test_no_remediation_for_noise(self, service):
        result = service.validate(
            make_alert(),
            make_analysis(frequency=0),
            healthy(),
            HistoricalContext(),
            known_issue=pool_known_issue(),
        )
        assert not result.is_real_issue
        assert not result.should_attempt_remediation

    def test_open_issue_is_carried(self, service):
        result = service.validate(
            make_alert(),
            make_analysis(frequency=10),
            healthy(),
            HistoricalContext(is_recurring=True, total_occurrences=3, open_github_issue=42),
        )
        assert result.should_update_existing == 42

    def test_is_known_false_positive(self):
        assert is_known_false_positive(jwt_known_issue())
        assert not is_known_false_positive(jwt_known_issue(auto_remediable=True))
        assert not is_known_false_positive(pool_known_issue(auto_remediable=False))
        assert not is_known_false_positive(None)
