"""Clients for external collaborators."""
from intel_service.clients.github_client import GitHubClient, get_github_client
from intel_service.clients.loki_client import LokiClient, get_loki_client
from intel_service.clients.railway_client import RailwayClient, get_railway_client
from intel_service.clients.slack_client import SlackClient, get_slack_client

__all__ = [
    "GitHubClient", "get_github_client",
    "LokiClient", "get_loki_client",
    "RailwayClient", "get_railway_client",
    "SlackClient", "get_slack_client",
]
