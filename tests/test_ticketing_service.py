"""Unit tests for GitHub ticket creation and deduplication."""

import pytest

from intel_service.core import DatabaseError, TicketingError
from intel_service.error_detector import ErrorDetector
from intel_service.models import (
    Component,
    ErrorSeverity,
    HistoricalContext,
    IssueCategorization,
    IssueType,
    RemediationResult,
)
from intel_service.services.ticketing_service import (
    TicketingService,
    build_alert_body,
    build_alert_title,
    build_recommendations,
)
from intel_service.validation import ValidationService
from tests.conftest import (
    FakeGitHubClient,
    healthy,
    make_alert,
    make_analysis,
    make_entry,
    pool_known_issue,
)

SETTINGS = {"default_labels": ["automated", "intel-service"]}


@pytest.fixture
def service(github_client, issue_repository):
    return TicketingService(client=github_client, repository=issue_repository, settings=SETTINGS)


@pytest.fixture
def detected_error():
    entries = [make_entry("Error: connect ECONNREFUSED 127.0.0.1:5432", minutes) for minutes in (0, 1)]
    return ErrorDetector().detect_errors(entries)[0]


def critical_categorization():
    return IssueCategorization(
        severity=ErrorSeverity.CRITICAL,
        type=IssueType.DATABASE,
        component=Component.DATABASE,
        labels=["critical", "database", "database"],
    )


class TestDetectedErrorTickets:
    """Test filing of errors found by the log monitor."""

    def test_first_occurrence_creates_issue(self, service, github_client, issue_repository, detected_error):
        ticket = service.file_detected_error(detected_error)

        assert ticket.created
        assert ticket.number == 100
        assert len(github_client.created) == 1
        created = github_client.created[0]
        assert created["title"].startswith("🚨 [backend] connect ECONNREFUSED")
        assert created["labels"] == ["automated", "intel-service", "critical", "database", "backend"]
        assert detected_error.signature in created["body"]

        record = issue_repository.records[detected_error.signature]
        assert record["github_issue_number"] == 100
        assert record["occurrence_count"] == 2

    def test_same_signature_twice_comments(self, service, github_client, issue_repository, detected_error):
        """Test that filing the same signature twice yields one issue and one comment."""
        first = service.file_detected_error(detected_error)
        second = service.file_detected_error(detected_error)

        assert first.created
        assert not second.created
        assert second.number == first.number
        assert second.url == first.url
        assert len(github_client.created) == 1
        assert len(github_client.comments) == 1
        assert github_client.comments[0]["number"] == first.number
        assert "New Occurrences**: 2" in github_client.comments[0]["body"]
        assert issue_repository.records[detected_error.signature]["occurrence_count"] == 4

    def test_create_failure_propagates(self, issue_repository, detected_error):
        client = FakeGitHubClient(fail_create=True)
        service = TicketingService(client=client, repository=issue_repository, settings=SETTINGS)
        with pytest.raises(TicketingError):
            service.file_detected_error(detected_error)
        assert issue_repository.records == {}

    def test_record_failure_keeps_ticket(self, github_client, detected_error):
        """Test that a failed record write still returns the created ticket."""

        class BrokenRepository:
            def find_by_signature(self, signature):
                return None

            def record_occurrence(self, **kwargs):
                raise DatabaseError("connection lost")

        service = TicketingService(client=github_client, repository=BrokenRepository(), settings=SETTINGS)
        ticket = service.file_detected_error(detected_error)
        assert ticket.created
        assert ticket.number == 100

    def test_concurrent_duplicate_is_reported(self, service, github_client, issue_repository, detected_error):
        """Test that losing the insert race is logged as a duplicate."""
        original_find = issue_repository.find_by_signature
        issue_repository.find_by_signature = lambda signature: None
        service.file_detected_error(detected_error)
        service.file_detected_error(detected_error)
        issue_repository.find_by_signature = original_find

        assert len(github_client.created) == 2
        assert issue_repository.records[detected_error.signature]["github_issue_number"] == 100


class TestAlertTickets:
    """Test filing of investigated alerts."""

    def test_alert_ticket_created(self, service, github_client):
        alert = make_alert(alert_name="DatabaseDown")
        analysis = make_analysis(error_messages=["connect ECONNREFUSED"], frequency=4, error_pattern="connect ECONNREFUSED")
        validation = ValidationService(settings={}).validate(alert, analysis, healthy(), HistoricalContext())

        ticket = service.file_alert_ticket(
            alert, "database-connect-econnrefused", validation, critical_categorization(), analysis, healthy()
        )

        assert ticket.created
        created = github_client.created[0]
        assert created["title"] == "🚨 [database] DatabaseDown"
        assert "Sustained errors: 4 occurrences" in created["body"]
        assert created["labels"] == ["automated", "intel-service", "critical", "database"]

    def test_open_issue_gets_comment(self, service, github_client):
        """Test that an alert with an open issue comments instead of creating."""
        alert = make_alert()
        analysis = make_analysis(frequency=5)
        validation = ValidationService(settings={}).validate(
            alert, analysis, healthy(), HistoricalContext(is_recurring=True, open_github_issue=7)
        )

        ticket = service.file_alert_ticket(
            alert, "bug-higherrorrate", validation, critical_categorization(), analysis, healthy()
        )

        assert not ticket.created
        assert ticket.number == 7
        assert github_client.created == []
        assert github_client.comments[0]["number"] == 7


class TestTicketBodies:
    """Test title, body and recommendation rendering."""

    def test_warning_title(self):
        categorization = IssueCategorization(
            severity=ErrorSeverity.MEDIUM, type=IssueType.BUG, component=Component.FRONTEND
        )
        assert build_alert_title(make_alert(alert_name="SlowPages"), categorization) == "⚠️ [frontend] SlowPages"

    def test_body_sections(self):
        alert = make_alert()
        analysis = make_analysis(
            error_messages=["too many clients already", "pool timeout"],
            stack_traces=["Error: too many clients\n    at pool.js:1:1"],
            frequency=6,
            affected_endpoints=["/api/restaurants"],
        )
        validation = ValidationService(settings={}).validate(
            alert, analysis, healthy(), HistoricalContext(), known_issue=pool_known_issue()
        )
        remediation = RemediationResult(
            attempted=True, success=False, action="restart", logs=["Health check failed"]
        )

        body = build_alert_body(alert, validation, critical_categorization(), analysis, healthy(), remediation)

        assert "**Affected Endpoints**: /api/restaurants" in body
        assert "**Stack Trace**" in body
        assert "### Auto-Remediation Attempted" in body
        assert "❌ Failed" in body
        assert "### Known Issue Match" in body
        assert "- Restart service to reset connection pool." in body
        assert "**Sample Log Entries**" in body

    def test_recommendations_by_type(self):
        categorization = critical_categorization()
        assert "- Check database connection pool settings" in build_recommendations(categorization)

        bug = categorization.model_copy(update={"type": IssueType.BUG})
        assert build_recommendations(bug).startswith("- Review logs for root cause")

    def test_build_labels_deduplicates(self, service):
        assert service.build_labels(["automated", "high"]) == ["automated", "intel-service", "high"]
