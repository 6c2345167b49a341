"""Unit tests for the outbound HTTP clients."""

from datetime import timedelta

import pytest
import requests

from intel_service.clients import github_client, http, loki_client, railway_client, slack_client
from intel_service.clients.github_client import GitHubClient
from intel_service.clients.http import request_with_retry, should_retry
from intel_service.clients.loki_client import LokiClient
from intel_service.clients.railway_client import RailwayClient, service_ids_from_env
from intel_service.clients.slack_client import SlackClient
from intel_service.core import LogSourceError, NotificationError, RemediationError, TicketingError
from intel_service.models import LogLevel
from tests.conftest import BASE_TIME


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body if body is not None else {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        return self.body


class RecordingTransport:
    """Replacement for request_with_retry that records calls."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, method, url, max_retries=3, timeout=10.0, **kwargs):
        self.calls.append({"method": method, "url": url, "max_retries": max_retries, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class TestRequestWithRetry:
    """Test retry and backoff of outbound requests."""

    @pytest.fixture(autouse=True)
    def no_sleep(self, monkeypatch):
        self.sleeps = []
        monkeypatch.setattr(http.time, "sleep", self.sleeps.append)

    def test_retries_transient_errors(self, monkeypatch):
        responses = [FakeResponse(503), FakeResponse(200, {"ok": True})]
        monkeypatch.setattr(http.requests, "request", lambda method, url, timeout, **kw: responses.pop(0))

        response = request_with_retry("GET", "http://example.test")

        assert response.json() == {"ok": True}
        assert len(self.sleeps) == 1

    def test_client_errors_are_not_retried(self, monkeypatch):
        calls = []

        def request(method, url, timeout, **kwargs):
            calls.append(url)
            return FakeResponse(404)

        monkeypatch.setattr(http.requests, "request", request)
        with pytest.raises(requests.exceptions.HTTPError):
            request_with_retry("GET", "http://example.test")
        assert len(calls) == 1
        assert self.sleeps == []

    def test_gives_up_after_max_retries(self, monkeypatch):
        def request(method, url, timeout, **kwargs):
            raise requests.exceptions.ConnectionError("Connection refused")

        monkeypatch.setattr(http.requests, "request", request)
        with pytest.raises(requests.exceptions.ConnectionError):
            request_with_retry("GET", "http://example.test", max_retries=3)
        assert len(self.sleeps) == 2
        assert self.sleeps[1] > self.sleeps[0]

    def test_should_retry(self):
        assert should_retry(503)
        assert should_retry(429)
        assert not should_retry(400)
        assert should_retry(error=requests.exceptions.Timeout())


class TestRailwayClient:
    """Test the Railway GraphQL client."""

    def make_client(self):
        return RailwayClient(
            api_token="token",
            project_id="proj",
            environment_id="env",
            service_ids={"backend": "svc-b", "frontend": "svc-f", "scraper": "svc-s"},
        )

    def test_fetch_logs_for_service(self, monkeypatch):
        transport = RecordingTransport(
            FakeResponse(body={"data": {"deployments": {"edges": [{"node": {"id": "dep-1"}}]}}}),
            FakeResponse(
                body={
                    "data": {
                        "deploymentLogs": [
                            {"timestamp": "2026-01-19T12:05:00.466150925Z", "message": "Error: late", "severity": "error"},
                            {"timestamp": "2026-01-19T11:00:00Z", "message": "Error: too old", "severity": "error"},
                            {"timestamp": "2026-01-19T12:01:00Z", "message": "slow query", "severity": "warn"},
                        ]
                    }
                }
            ),
        )
        monkeypatch.setattr(railway_client, "request_with_retry", transport)

        entries = self.make_client().fetch_logs_for_service("svc-b", "backend", BASE_TIME)

        assert [entry.message for entry in entries] == ["slow query", "Error: late"]
        assert entries[0].severity == LogLevel.WARN
        assert entries[1].timestamp == BASE_TIME + timedelta(minutes=5, microseconds=466150)
        assert entries[1].deployment_id == "dep-1"
        assert transport.calls[0]["headers"]["Authorization"] == "Bearer token"
        assert transport.calls[1]["json"]["variables"]["filter"] == "@level:error OR @level:warn"

    def test_no_deployment(self, monkeypatch):
        transport = RecordingTransport(FakeResponse(body={"data": {"deployments": {"edges": []}}}))
        monkeypatch.setattr(railway_client, "request_with_retry", transport)
        assert self.make_client().fetch_logs_for_service("svc-b", "backend", BASE_TIME) == []

    def test_graphql_errors_raise(self, monkeypatch):
        transport = RecordingTransport(FakeResponse(body={"errors": [{"message": "Not Authorized"}]}))
        monkeypatch.setattr(railway_client, "request_with_retry", transport)
        with pytest.raises(LogSourceError, match="Not Authorized"):
            self.make_client().get_latest_deployment_id("svc-b")

    def test_redeploy_is_not_retried(self, monkeypatch):
        transport = RecordingTransport(requests.exceptions.Timeout("timed out"))
        monkeypatch.setattr(railway_client, "request_with_retry", transport)
        with pytest.raises(RemediationError):
            self.make_client().redeploy_service("svc-b")
        assert transport.calls[0]["max_retries"] == 1

    def test_resolve_service_id(self):
        client = self.make_client()
        assert client.resolve_service_id("Backend-API") == "svc-b"
        assert client.resolve_service_id("api-gateway") == "svc-b"
        assert client.resolve_service_id("frontend") == "svc-f"
        assert client.resolve_service_id("michelin-scraper") == "svc-s"
        assert client.resolve_service_id("billing") is None

    def test_service_ids_from_env(self, monkeypatch):
        monkeypatch.setenv("RAILWAY_BACKEND_SERVICE_ID", "svc-b")
        monkeypatch.delenv("RAILWAY_FRONTEND_SERVICE_ID", raising=False)
        services = [
            {"name": "backend", "service_id_env": "RAILWAY_BACKEND_SERVICE_ID"},
            {"name": "frontend", "service_id_env": "RAILWAY_FRONTEND_SERVICE_ID"},
        ]
        assert service_ids_from_env(services) == {"backend": "svc-b"}


class TestGitHubClient:
    """Test the GitHub issues client."""

    def test_create_issue(self, monkeypatch):
        transport = RecordingTransport(
            FakeResponse(201, {"number": 42, "html_url": "https://github.com/acme/app/issues/42", "id": 1})
        )
        monkeypatch.setattr(github_client, "request_with_retry", transport)

        issue = GitHubClient(token="t", owner="acme", repo="app").create_issue("Title", "Body", ["bug"])

        assert issue == {"number": 42, "html_url": "https://github.com/acme/app/issues/42"}
        call = transport.calls[0]
        assert call["url"] == "https://api.github.com/repos/acme/app/issues"
        assert call["max_retries"] == 1
        assert call["json"]["labels"] == ["bug"]

    def test_create_failure(self, monkeypatch):
        monkeypatch.setattr(
            github_client, "request_with_retry", RecordingTransport(requests.exceptions.HTTPError("422"))
        )
        with pytest.raises(TicketingError):
            GitHubClient(token="t", owner="acme", repo="app").create_issue("Title", "Body", [])

    def test_not_configured(self, monkeypatch):
        for name in ("GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(TicketingError, match="not configured"):
            GitHubClient().add_comment(1, "again")

    def test_add_comment(self, monkeypatch):
        transport = RecordingTransport(FakeResponse(201))
        monkeypatch.setattr(github_client, "request_with_retry", transport)
        GitHubClient(token="t", owner="acme", repo="app").add_comment(7, "again")
        assert transport.calls[0]["url"].endswith("/issues/7/comments")


class TestSlackClient:
    """Test the Slack Web API client."""

    def test_post_message(self, monkeypatch):
        transport = RecordingTransport(FakeResponse(body={"ok": True, "ts": "1.2", "channel": "C1"}))
        monkeypatch.setattr(slack_client, "request_with_retry", transport)

        result = SlackClient(token="xoxb-test").post_message("#alerts", "hi", thread_ts="0.1")

        assert result == {"ts": "1.2", "channel": "C1"}
        assert transport.calls[0]["json"] == {"channel": "#alerts", "text": "hi", "thread_ts": "0.1"}

    def test_api_error(self, monkeypatch):
        transport = RecordingTransport(FakeResponse(body={"ok": False, "error": "channel_not_found"}))
        monkeypatch.setattr(slack_client, "request_with_retry", transport)
        with pytest.raises(NotificationError, match="channel_not_found"):
            SlackClient(token="xoxb-test").post_message("#missing", "hi")


class TestLokiClient:
    """Test the Loki query client."""

    def test_not_configured(self, monkeypatch):
        monkeypatch.delenv("LOKI_URL", raising=False)
        with pytest.raises(LogSourceError):
            LokiClient().query_range("{}", BASE_TIME, BASE_TIME)

    def test_query_range(self, monkeypatch):
        transport = RecordingTransport(FakeResponse(body={"data": {"result": []}}))
        monkeypatch.setattr(loki_client, "request_with_retry", transport)

        body = LokiClient(url="http://loki:3100/").query_range(
            '{service="backend"}', BASE_TIME, BASE_TIME + timedelta(seconds=1), limit=10
        )

        assert body == {"data": {"result": []}}
        call = transport.calls[0]
        assert call["url"] == "http://loki:3100/loki/api/v1/query_range"
        assert call["params"]["end"] - call["params"]["start"] == 1_000_000_000
        assert call["params"]["limit"] == 10
