"""Shared fixtures and in-memory stand-ins for repositories and clients."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from intel_service.models import (
    AlertContext,
    AlertMetrics,
    AlertSeverity,
    Component,
    ErrorSeverity,
    HealthCheck,
    IssueType,
    KnownIssue,
    LogAnalysis,
    LogEntry,
    LogLevel,
)

BASE_TIME = datetime(2026, 1, 19, 12, 0, tzinfo=timezone.utc)


def make_entry(
    message: str,
    minutes: float = 0,
    severity: LogLevel = LogLevel.ERROR,
    service_name: str = "backend",
    raw_line: Optional[str] = None,
) -> LogEntry:
    return LogEntry(
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        message=message,
        severity=severity,
        service_name=service_name,
        raw_line=raw_line if raw_line is not None else message,
    )


def make_alert(
    alert_name: str = "HighErrorRate",
    severity: AlertSeverity = AlertSeverity.WARNING,
    affected_service: str = "backend",
) -> AlertContext:
    return AlertContext(
        timestamp=BASE_TIME,
        alert_name=alert_name,
        severity=severity,
        affected_service=affected_service,
        log_query='{service="backend"} |= "error"',
        metrics=AlertMetrics(error_count=5),
    )


def make_analysis(
    error_messages: Optional[List[str]] = None,
    stack_traces: Optional[List[str]] = None,
    frequency: int = 0,
    error_pattern: Optional[str] = None,
    affected_endpoints: Optional[List[str]] = None,
) -> LogAnalysis:
    return LogAnalysis(
        error_messages=error_messages or [],
        stack_traces=stack_traces or [],
        affected_endpoints=affected_endpoints or [],
        error_pattern=error_pattern,
        first_occurrence=BASE_TIME - timedelta(minutes=15),
        last_occurrence=BASE_TIME + timedelta(minutes=15),
        frequency=frequency,
    )


def healthy(response_time: float = 120.0) -> HealthCheck:
    return HealthCheck(api_responsive=True, database_connected=True, response_time=response_time)


def jwt_known_issue(**overrides) -> KnownIssue:
    data = dict(
        id=4,
        error_pattern=".*jwt expired.*|.*token.*expired.*",
        title="JWT Token Expired",
        solution="Not a service issue - users need to re-authenticate.",
        auto_remediable=False,
        severity=ErrorSeverity.LOW,
        category=IssueType.SECURITY,
        component=Component.BACKEND_API,
    )
    data.update(overrides)
    return KnownIssue(**data)


def pool_known_issue(**overrides) -> KnownIssue:
    data = dict(
        id=1,
        error_pattern=".*(connection pool|too many clients).*",
        title="Database Connection Pool Exhausted",
        solution="Restart service to reset connection pool.",
        auto_remediable=True,
        remediation_script="restart",
        severity=ErrorSeverity.CRITICAL,
        category=IssueType.DATABASE,
        component=Component.BACKEND_API,
    )
    data.update(overrides)
    return KnownIssue(**data)


class InMemoryIssueRepository:
    """Issue record store keyed by signature, mirroring the upsert semantics."""

    def __init__(self):
        self.records: Dict[str, Dict] = {}

    def find_by_signature(self, error_signature):
        return self.records.get(error_signature)

    def record_occurrence(
        self,
        error_signature,
        github_issue_number,
        github_issue_url,
        service_name,
        error_message,
        first_seen,
        last_seen,
        occurrence_count,
    ):
        existing = self.records.get(error_signature)
        if existing:
            existing["occurrence_count"] += occurrence_count
            existing["last_seen"] = max(existing["last_seen"], last_seen)
            return {**existing, "inserted": False}
        record = {
            "error_signature": error_signature,
            "github_issue_number": github_issue_number,
            "github_issue_url": github_issue_url,
            "service_name": service_name,
            "error_message": error_message,
            "first_seen": first_seen,
            "last_seen": last_seen,
            "occurrence_count": occurrence_count,
            "analyzed": False,
            "resolved": False,
        }
        self.records[error_signature] = record
        return {**record, "inserted": True}

    def increment_occurrence(self, error_signature, additional_occurrences, last_seen):
        record = self.records.get(error_signature)
        if record is None:
            return None
        record["occurrence_count"] += additional_occurrences
        record["last_seen"] = max(record["last_seen"], last_seen)
        return record


class FakeGitHubClient:
    def __init__(self, fail_create: bool = False):
        self.created: List[Dict] = []
        self.comments: List[Dict] = []
        self.fail_create = fail_create

    def create_issue(self, title, body, labels):
        from intel_service.core import TicketingError

        if self.fail_create:
            raise TicketingError("GitHub issue creation failed: 502 Bad Gateway")
        number = 100 + len(self.created)
        self.created.append({"title": title, "body": body, "labels": labels})
        return {"number": number, "html_url": f"https://github.com/acme/app/issues/{number}"}

    def add_comment(self, issue_number, body):
        self.comments.append({"number": issue_number, "body": body})


@pytest.fixture
def issue_repository():
    return InMemoryIssueRepository()


@pytest.fixture
def github_client():
    return FakeGitHubClient()
