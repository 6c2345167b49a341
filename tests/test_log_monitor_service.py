"""Unit tests for the periodic log monitor."""

import threading
from datetime import timedelta

import pytest

from intel_service.core import LogSourceError
from intel_service.error_detector import ErrorDetector
from intel_service.models import utcnow
from intel_service.services.known_issue_service import KnownIssueService
from intel_service.services.log_monitor_service import LogMonitorService
from intel_service.services.ticketing_service import TicketingService
from tests.conftest import BASE_TIME, FakeGitHubClient, make_entry

SETTINGS = {
    "services": [
        {"name": "backend", "service_id_env": "RAILWAY_BACKEND_SERVICE_ID"},
        {"name": "frontend", "service_id_env": "RAILWAY_FRONTEND_SERVICE_ID"},
        {"name": "scraper", "service_id_env": "RAILWAY_SCRAPER_SERVICE_ID"},
    ],
    "checkpoint_default_lookback_minutes": 15,
    "skip_known_false_positives": True,
}

JWT_CATALOG = [
    {
        "id": 4,
        "error_pattern": ".*jwt expired.*",
        "title": "JWT Token Expired",
        "auto_remediable": False,
        "severity": "low",
        "category": "security",
        "component": "backend-api",
    }
]


class FakeRailway:
    def __init__(self, logs, failing=()):
        self.service_ids = {"backend": "svc-b", "frontend": "svc-f", "scraper": "svc-s"}
        self.logs = logs
        self.failing = set(failing)
        self.since = {}

    def fetch_logs_for_service(self, service_id, service_name, since, **kwargs):
        self.since[service_name] = since
        if service_name in self.failing:
            raise LogSourceError(f"Failed to list deployments for {service_id}: 503")
        return self.logs.get(service_name, [])


class FakeCheckpoints:
    def __init__(self, stored=None, fail_get=False):
        self.stored = dict(stored or {})
        self.fail_get = fail_get

    def get(self, service_name):
        if self.fail_get:
            raise RuntimeError("connection refused")
        return self.stored.get(service_name)

    def upsert(self, service_name, check_time):
        self.stored[service_name] = check_time


class FakeKnownIssueRepository:
    def __init__(self, rows):
        self.rows = rows
        self.matched = []

    def list_all(self):
        return self.rows

    def record_match(self, known_issue_id):
        self.matched.append(known_issue_id)


def build_monitor(issue_repository, github_client, logs=None, failing=(), checkpoints=None, catalog=()):
    return LogMonitorService(
        settings=SETTINGS,
        railway_client=FakeRailway(logs or {}, failing),
        detector=ErrorDetector(),
        checkpoint_repository=checkpoints or FakeCheckpoints(),
        issue_repository=issue_repository,
        known_issue_service=KnownIssueService(repository=FakeKnownIssueRepository(list(catalog))),
        ticketing_service=TicketingService(client=github_client, repository=issue_repository, settings={}),
    )


class TestCheckpoints:
    """Test checkpoint lookup and fallback."""

    def test_missing_checkpoint_falls_back_to_lookback(self, issue_repository, github_client):
        monitor = build_monitor(issue_repository, github_client)
        since = monitor.get_last_check_time("backend")
        expected = utcnow() - timedelta(minutes=15)
        assert abs((since - expected).total_seconds()) < 1

    def test_unreadable_checkpoint_falls_back(self, issue_repository, github_client):
        """Test that a failing checkpoint read does not stop the cycle."""
        monitor = build_monitor(issue_repository, github_client, checkpoints=FakeCheckpoints(fail_get=True))
        since = monitor.get_last_check_time("backend", now=BASE_TIME)
        assert since == BASE_TIME - timedelta(minutes=15)

    def test_stored_checkpoint(self, issue_repository, github_client):
        stored = BASE_TIME - timedelta(minutes=3)
        monitor = build_monitor(issue_repository, github_client, checkpoints=FakeCheckpoints({"backend": stored}))
        assert monitor.get_last_check_time("backend", now=BASE_TIME) == stored

    def test_checkpoint_advances(self, issue_repository, github_client):
        checkpoints = FakeCheckpoints()
        monitor = build_monitor(issue_repository, github_client, checkpoints=checkpoints)
        monitor.run(check_time=BASE_TIME)
        assert checkpoints.stored == {"backend": BASE_TIME, "frontend": BASE_TIME, "scraper": BASE_TIME}

    def test_next_cycle_reads_previous_check_time(self, issue_repository, github_client):
        monitor = build_monitor(issue_repository, github_client)
        monitor.run(check_time=BASE_TIME)
        later = BASE_TIME + timedelta(minutes=10)
        monitor.run(check_time=later)
        assert monitor.railway_client.since["backend"] == BASE_TIME


class TestMonitorCycle:
    """Test detection, deduplication and failure isolation."""

    def test_errors_are_ticketed_once_per_signature(self, issue_repository, github_client):
        logs = {
            "backend": [
                make_entry("Error: connect ECONNREFUSED 127.0.0.1:5432", minutes)
                for minutes in (0, 1, 30, 31)
            ]
        }
        monitor = build_monitor(issue_repository, github_client, logs=logs)

        result = monitor.run(check_time=BASE_TIME + timedelta(hours=1))

        assert result.errors_detected == 1
        assert len(result.tickets) == 1
        assert len(github_client.created) == 1
        record = next(iter(issue_repository.records.values()))
        assert record["occurrence_count"] == 4

    def test_second_cycle_comments(self, issue_repository, github_client):
        """Test that a recurring signature updates the existing issue."""
        logs = {"backend": [make_entry("Error: connect ECONNREFUSED 127.0.0.1:5432")]}
        monitor = build_monitor(issue_repository, github_client, logs=logs)

        monitor.run(check_time=BASE_TIME)
        result = monitor.run(check_time=BASE_TIME + timedelta(minutes=10))

        assert not result.tickets[0].created
        assert len(github_client.created) == 1
        assert len(github_client.comments) == 1

    def test_false_positive_skipped(self, issue_repository, github_client):
        logs = {"frontend": [make_entry("Error: jwt expired", service_name="frontend")]}
        monitor = build_monitor(issue_repository, github_client, logs=logs, catalog=JWT_CATALOG)

        result = monitor.run(check_time=BASE_TIME)

        assert result.skipped_false_positives == 1
        assert result.tickets == []
        assert github_client.created == []
        assert monitor.known_issue_service.repository.matched == []

    def test_failing_service_does_not_stop_others(self, issue_repository, github_client):
        logs = {"scraper": [make_entry("Error: navigation timeout of 30000 ms exceeded", service_name="scraper")]}
        checkpoints = FakeCheckpoints()
        monitor = build_monitor(
            issue_repository, github_client, logs=logs, failing={"backend"}, checkpoints=checkpoints
        )

        result = monitor.run(check_time=BASE_TIME)

        assert result.services_failed == ["backend"]
        assert result.services_checked == ["frontend", "scraper"]
        assert len(result.tickets) == 1
        assert "backend" not in checkpoints.stored

    def test_services_are_fetched_concurrently(self, issue_repository, github_client):
        """Test that every service fetch is in flight before any returns."""
        monitor = build_monitor(issue_repository, github_client)
        barrier = threading.Barrier(len(SETTINGS["services"]), timeout=5)
        fetch = monitor.railway_client.fetch_logs_for_service

        def fetch_after_all_started(service_id, service_name, since, **kwargs):
            barrier.wait()
            return fetch(service_id, service_name, since, **kwargs)

        monitor.railway_client.fetch_logs_for_service = fetch_after_all_started

        result = monitor.run(check_time=BASE_TIME)

        assert result.services_failed == []
        assert result.services_checked == ["backend", "frontend", "scraper"]

    def test_ticket_failure_is_isolated(self, issue_repository):
        logs = {"backend": [make_entry("Error: connect ECONNREFUSED 127.0.0.1:5432")]}
        checkpoints = FakeCheckpoints()
        monitor = build_monitor(
            issue_repository, FakeGitHubClient(fail_create=True), logs=logs, checkpoints=checkpoints
        )

        result = monitor.run(check_time=BASE_TIME)

        assert result.services_checked == ["backend", "frontend", "scraper"]
        assert result.errors_detected == 1
        assert result.tickets == []
        assert checkpoints.stored["backend"] == BASE_TIME

    def test_missing_service_id(self, issue_repository, github_client):
        monitor = build_monitor(issue_repository, github_client)
        monitor.railway_client.service_ids.pop("frontend")
        result = monitor.run(check_time=BASE_TIME)
        assert result.services_failed == ["frontend"]

    def test_process_error_without_false_positive_skip(self, issue_repository, github_client):
        monitor = build_monitor(issue_repository, github_client, catalog=JWT_CATALOG)
        monitor.settings = dict(SETTINGS, skip_known_false_positives=False)
        error = ErrorDetector().detect_errors([make_entry("Error: jwt expired")])[0]
        assert monitor.process_error(error).created


class TestMonitorQueries:
    """Test status and bookkeeping delegation."""

    @pytest.fixture
    def repository(self):
        class Repository:
            def list_unanalyzed(self):
                return [{"github_issue_number": 1}, {"github_issue_number": 2}]

            def get_stats(self):
                return {"total": 2}

            def mark_analyzed(self, number):
                return number == 1

            def mark_resolved(self, number):
                return False

        return Repository()

    def test_status(self, repository, github_client):
        monitor = build_monitor(repository, github_client)
        status = monitor.get_status()
        assert status["unanalyzed_count"] == 2

    def test_marks(self, repository, github_client):
        monitor = build_monitor(repository, github_client)
        assert monitor.mark_analyzed(1)
        assert not monitor.mark_analyzed(3)
        assert not monitor.mark_resolved(1)
        assert monitor.get_stats() == {"total": 2}
