"""Health probes of the monitored application."""
import os
import time
import requests
from typing import Dict, Optional, Tuple
from intel_service.core import get_logger, get_validation_config
from intel_service.models import HealthCheck, ServiceStatus

logger = get_logger(__name__)

DEFAULT_HEALTH_URL = "http://localhost:3001/health"
DEFAULT_TIMEOUT_SECONDS = 10
DEGRADED_RESPONSE_MS = 3000

# Values of the health body's "database" field meaning the store is down
DATABASE_DOWN_VALUES = {"disconnected", "down", "error", "false"}


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 1)


class HealthCheckService:
    """Probe the application health endpoint and optional external services."""

    def __init__(
        self,
        health_url: Optional[str] = None,
        timeout: Optional[float] = None,
        external_services: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize health check service.

        Args:
            health_url: Health endpoint (defaults to APP_HEALTH_URL env var)
            timeout: Probe timeout in seconds (defaults to validation config)
            external_services: Optional name -> URL map of dependencies to probe
        """
        self.health_url = health_url or os.getenv("APP_HEALTH_URL", DEFAULT_HEALTH_URL)
        if timeout is None:
            timeout = get_validation_config().get(
                "health_check_timeout_seconds", DEFAULT_TIMEOUT_SECONDS
            )
        self.timeout = timeout
        self.external_services = external_services or {}

    def check_api(self) -> Tuple[bool, bool, float]:
        """
        Probe the health endpoint once.

        Returns:
            (api_responsive, database_connected, response_time_ms)
        """
        started = time.monotonic()
        try:
            response = requests.get(self.health_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"API health check failed: {e}")
            return False, False, _elapsed_ms(started)

        response_time = _elapsed_ms(started)
        return True, self._database_connected(response), response_time

    @staticmethod
    def _database_connected(response: requests.Response) -> bool:
        try:
            body = response.json()
        except ValueError:
            return True
        if not isinstance(body, dict) or "database" not in body:
            return True
        return str(body["database"]).lower() not in DATABASE_DOWN_VALUES

    def check_external(self, url: str) -> ServiceStatus:
        started = time.monotonic()
        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.warning(f"External service check failed for {url}: {e}")
            return ServiceStatus.DOWN
        if _elapsed_ms(started) > DEGRADED_RESPONSE_MS:
            return ServiceStatus.DEGRADED
        return ServiceStatus.UP

    def perform_health_checks(self, service: Optional[str] = None) -> HealthCheck:
        """
        Run all probes.

        Args:
            service: Affected service name (for logging)

        Returns:
            HealthCheck (unresponsive on failure, never raises)
        """
        logger.info(f"Performing health checks (service={service})")
        api_responsive, database_connected, response_time = self.check_api()
        external = {
            name: self.check_external(url) for name, url in self.external_services.items()
        }
        return HealthCheck(
            api_responsive=api_responsive,
            database_connected=database_connected,
            response_time=response_time,
            external_services=external,
        )
