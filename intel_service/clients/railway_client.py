"""Railway GraphQL client for deployment logs and service redeploys."""
import os
import requests
from datetime import datetime
from typing import Dict, List, Optional
from intel_service.core import get_logger, get_monitoring_config, LogSourceError, RemediationError
from intel_service.clients.http import request_with_retry
from intel_service.log_parser import parse_log_line, parse_timestamp
from intel_service.models import LogEntry
from intel_service.rules import first_match

logger = get_logger(__name__)

RAILWAY_API_URL = "https://backboard.railway.app/graphql/v2"
DEFAULT_LOG_LIMIT = 1000
DEFAULT_LOG_FILTER = "@level:error OR @level:warn"

DEPLOYMENTS_QUERY = """
query GetDeployments($projectId: String!, $environmentId: String!, $serviceId: String!) {
  deployments(
    input: {projectId: $projectId, environmentId: $environmentId, serviceId: $serviceId}
  ) {
    edges { node { id status createdAt } }
  }
}
"""

DEPLOYMENT_LOGS_QUERY = """
query GetLogs($deploymentId: String!, $limit: Int, $filter: String) {
  deploymentLogs(deploymentId: $deploymentId, limit: $limit, filter: $filter) {
    timestamp
    message
    severity
  }
}
"""

REDEPLOY_MUTATION = """
mutation serviceInstanceRedeploy($serviceId: String!) {
  serviceInstanceRedeploy(serviceId: $serviceId)
}
"""

# Affected-service name keywords -> monitored service, first match wins
SERVICE_NAME_RULES = [
    ("backend", ("backend", "api")),
    ("frontend", ("frontend",)),
    ("scraper", ("scraper",)),
]


class RailwayClient:
    """Client for the Railway GraphQL API."""

    def __init__(
        self,
        api_token: Optional[str] = None,
        project_id: Optional[str] = None,
        environment_id: Optional[str] = None,
        service_ids: Optional[Dict[str, str]] = None,
        url: str = RAILWAY_API_URL,
    ):
        """
        Initialize Railway client.

        Args:
            api_token: API token (defaults to RAILWAY_API_TOKEN env var)
            project_id: Project ID (defaults to RAILWAY_PROJECT_ID env var)
            environment_id: Environment ID (defaults to RAILWAY_ENVIRONMENT_ID env var)
            service_ids: Monitored service name -> Railway service ID
            url: GraphQL endpoint
        """
        self.api_token = api_token or os.getenv("RAILWAY_API_TOKEN")
        self.project_id = project_id or os.getenv("RAILWAY_PROJECT_ID")
        self.environment_id = environment_id or os.getenv("RAILWAY_ENVIRONMENT_ID")
        self.service_ids = service_ids or {}
        self.url = url

    def is_configured(self) -> bool:
        return bool(self.api_token and self.project_id and self.environment_id)

    def _graphql(self, query: str, variables: Dict, timeout: float, max_retries: int = 3) -> Dict:
        response = request_with_retry(
            "POST",
            self.url,
            max_retries=max_retries,
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {self.api_token}",
                "Content-Type": "application/json",
            },
            json={"query": query, "variables": variables},
        )
        body = response.json()
        if body.get("errors"):
            raise ValueError(f"Railway API error: {body['errors']}")
        return body.get("data") or {}

    def get_latest_deployment_id(self, service_id: str) -> Optional[str]:
        """
        Get the most recent deployment of a service.

        Raises:
            LogSourceError: If the query fails
        """
        try:
            data = self._graphql(
                DEPLOYMENTS_QUERY,
                {
                    "projectId": self.project_id,
                    "environmentId": self.environment_id,
                    "serviceId": service_id,
                },
                timeout=10,
            )
        except (requests.exceptions.RequestException, ValueError) as e:
            raise LogSourceError(f"Failed to list deployments for {service_id}: {e}") from e

        edges = (data.get("deployments") or {}).get("edges") or []
        return edges[0]["node"]["id"] if edges else None

    def fetch_deployment_logs(
        self,
        deployment_id: str,
        service_name: str,
        since: datetime,
        limit: int = DEFAULT_LOG_LIMIT,
        log_filter: str = DEFAULT_LOG_FILTER,
    ) -> List[LogEntry]:
        """
        Fetch error/warn logs of a deployment at or after `since`, oldest first.

        Raises:
            LogSourceError: If the query fails
        """
        try:
            data = self._graphql(
                DEPLOYMENT_LOGS_QUERY,
                {"deploymentId": deployment_id, "limit": limit, "filter": log_filter},
                timeout=30,
            )
        except (requests.exceptions.RequestException, ValueError) as e:
            raise LogSourceError(f"Failed to fetch logs for deployment {deployment_id}: {e}") from e

        entries = []
        for node in data.get("deploymentLogs") or []:
            timestamp = parse_timestamp(node.get("timestamp"))
            if timestamp is None or timestamp < since:
                continue
            entry = parse_log_line(
                node.get("message") or "",
                service_name,
                deployment_id=deployment_id,
                severity=node.get("severity"),
                timestamp=timestamp,
            )
            # Timestamp from the log source wins over one embedded in the message
            entries.append(entry.model_copy(update={"timestamp": timestamp}))

        entries.sort(key=lambda entry: entry.timestamp)
        return entries

    def fetch_logs_for_service(
        self, service_id: str, service_name: str, since: datetime, **kwargs
    ) -> List[LogEntry]:
        """
        Fetch recent logs of the latest deployment of a service.

        Returns:
            Time-ordered log entries (empty if the service has no deployment)

        Raises:
            LogSourceError: If a query fails
        """
        deployment_id = self.get_latest_deployment_id(service_id)
        if not deployment_id:
            logger.info(f"No deployments found for service: {service_name}")
            return []
        return self.fetch_deployment_logs(deployment_id, service_name, since, **kwargs)

    def resolve_service_id(self, affected_service: str) -> Optional[str]:
        """Map an alert's affected service name to a Railway service ID."""
        normalized = affected_service.lower()
        rule = first_match(
            SERVICE_NAME_RULES, lambda r: any(keyword in normalized for keyword in r[1])
        )
        return self.service_ids.get(rule[0]) if rule else None

    def redeploy_service(self, service_id: str) -> None:
        """
        Trigger a redeploy of a service instance.

        Raises:
            RemediationError: If the mutation fails
        """
        try:
            self._graphql(REDEPLOY_MUTATION, {"serviceId": service_id}, timeout=10, max_retries=1)
            logger.info(f"Redeploy triggered for Railway service {service_id}")
        except (requests.exceptions.RequestException, ValueError) as e:
            raise RemediationError(f"Railway redeploy failed: {e}") from e


def service_ids_from_env(services: List[Dict]) -> Dict[str, str]:
    """Resolve configured monitored services to Railway service IDs from env vars."""
    resolved = {}
    for service in services:
        service_id = os.getenv(service.get("service_id_env", ""))
        if service_id:
            resolved[service["name"]] = service_id
    return resolved


_railway_client: Optional[RailwayClient] = None


def get_railway_client() -> RailwayClient:
    """Get or create Railway client instance."""
    global _railway_client
    if _railway_client is None:
        services = get_monitoring_config().get("services", [])
        _railway_client = RailwayClient(service_ids=service_ids_from_env(services))
    return _railway_client
