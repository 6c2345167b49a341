"""Scripted remediation of known, auto-fixable issues."""
import time
from typing import Callable, Dict, List, Optional, Tuple
from db import connection as db_connection
from intel_service.clients.railway_client import RailwayClient, get_railway_client
from intel_service.core import (
    DatabaseError, IntelServiceError, get_logger, get_remediation_config,
)
from intel_service.core.metrics import remediation_attempts_total
from intel_service.models import AlertContext, KnownIssue, RemediationResult, RemediationStrategy
from intel_service.repositories.known_issue_repository import KnownIssueRepository
from intel_service.repositories.remediation_repository import RemediationRepository
from intel_service.services.health_check_service import HealthCheckService

logger = get_logger(__name__)

DEFAULT_RESTART_WAIT_SECONDS = 30
DEFAULT_DB_RECONNECT_WAIT_SECONDS = 2

StrategyOutcome = Tuple[bool, List[str]]


class RemediationService:
    """Attempt one remediation action per alert and record the outcome."""

    def __init__(
        self,
        settings: Optional[Dict] = None,
        railway_client: Optional[RailwayClient] = None,
        health_check_service: Optional[HealthCheckService] = None,
        known_issue_repository: Optional[KnownIssueRepository] = None,
        remediation_repository: Optional[RemediationRepository] = None,
        sleep: Callable[[float], None] = time.sleep,
        db_pool=None,
    ):
        """
        Initialize remediation service.

        Args:
            settings: Remediation config (loaded from config if None)
            railway_client: Restart actuator
            health_check_service: Used to verify a restart
            known_issue_repository: Fix outcome counters
            remediation_repository: Attempt history
            sleep: Wait function (injectable for tests)
            db_pool: Module exposing close_db_pool/init_db_pool/ping_db
        """
        self.settings = settings if settings is not None else get_remediation_config()
        self.railway_client = railway_client or get_railway_client()
        self.health_check_service = health_check_service or HealthCheckService()
        self.known_issue_repository = known_issue_repository or KnownIssueRepository()
        self.remediation_repository = remediation_repository or RemediationRepository()
        self.sleep = sleep
        self.db_pool = db_pool or db_connection

        self.strategies: Dict[str, Callable[[AlertContext, List[str]], StrategyOutcome]] = {
            RemediationStrategy.RESTART.value: self.restart_service,
            RemediationStrategy.RECONNECT_DB.value: self.reconnect_database,
            RemediationStrategy.RECONNECT_REDIS.value: self.reconnect_redis,
            RemediationStrategy.CACHE_CLEAR.value: self.clear_cache,
        }

    def _strategy_settings(self, strategy: str) -> Dict:
        return self.settings.get("strategies", {}).get(strategy, {})

    def attempt_remediation(
        self,
        alert: AlertContext,
        known_issue: KnownIssue,
        alert_event_id: Optional[int] = None,
    ) -> RemediationResult:
        """
        Run the known issue's remediation strategy.

        Never raises: failures are reported in the result and its logs.

        Args:
            alert: Alert being investigated
            known_issue: Matched, auto-remediable known issue
            alert_event_id: Persisted alert event (None if persistence failed)

        Returns:
            RemediationResult
        """
        if not self.settings.get("enabled", True):
            logger.info("Remediation is disabled")
            return RemediationResult(
                attempted=False,
                success=False,
                action="none",
                logs=["Remediation is disabled in config"],
                should_create_issue=True,
            )

        strategy = known_issue.remediation_script or "unknown"
        logger.info(f"Attempting remediation for '{known_issue.title}' (strategy={strategy})")

        max_attempts = max(1, int(self.settings.get("max_attempts", 1)))
        success, logs = False, []
        for attempt in range(max_attempts):
            success, logs = self._run_strategy(strategy, alert)
            self._record_attempt(alert_event_id, known_issue, strategy, success, logs)
            if success:
                break
            if attempt < max_attempts - 1:
                logger.info(f"Remediation attempt {attempt + 1}/{max_attempts} failed")

        return RemediationResult(
            attempted=True,
            success=success,
            action=strategy,
            logs=logs,
            should_create_issue=not success,
        )

    def _run_strategy(self, strategy: str, alert: AlertContext) -> StrategyOutcome:
        logs: List[str] = []
        handler = self.strategies.get(strategy)
        if handler is None:
            logs.append(f"Unknown remediation strategy: {strategy}")
            return False, logs
        if not self._strategy_settings(strategy).get("enabled", True):
            logs.append(f"Remediation strategy '{strategy}' is disabled in config")
            return False, logs

        try:
            return handler(alert, logs)
        except Exception as e:
            logger.error(f"Remediation failed with exception (strategy={strategy}): {e}", exc_info=True)
            logs.append(f"Exception: {e}")
            return False, logs

    def _record_attempt(
        self,
        alert_event_id: Optional[int],
        known_issue: KnownIssue,
        strategy: str,
        success: bool,
        logs: List[str],
    ) -> None:
        remediation_attempts_total.labels(
            strategy=strategy, status="success" if success else "failure"
        ).inc()
        error_message = None if success else (logs[-1] if logs else None)
        try:
            if known_issue.id is not None:
                self.known_issue_repository.record_fix_outcome(known_issue.id, success)
            self.remediation_repository.create_attempt(
                alert_event_id=alert_event_id,
                known_issue_id=known_issue.id,
                strategy=strategy,
                success=success,
                logs=logs,
                error_message=error_message,
            )
        except DatabaseError as e:
            logger.error(f"Remediation attempt not recorded: {e}")

    def restart_service(self, alert: AlertContext, logs: List[str]) -> StrategyOutcome:
        service_name = alert.affected_service
        logs.append(f"Attempting to restart service: {service_name}")

        service_id = self.railway_client.resolve_service_id(service_name)
        if not service_id:
            logs.append(f"Service ID not found for: {service_name}")
            return False, logs

        try:
            self.railway_client.redeploy_service(service_id)
        except IntelServiceError as e:
            logs.append(f"Failed to restart service: {e}")
            return False, logs
        logs.append("Service restart initiated successfully")

        wait = self._strategy_settings(RemediationStrategy.RESTART.value).get(
            "wait_for_health_check_seconds", DEFAULT_RESTART_WAIT_SECONDS
        )
        logs.append(f"Waiting {wait}s for health check...")
        self.sleep(wait)

        health = self.health_check_service.perform_health_checks(service_name)
        if health.api_responsive:
            logs.append("Health check passed - service is responsive")
            return True, logs
        logs.append("Health check failed - service still unresponsive")
        return False, logs

    def reconnect_database(self, alert: AlertContext, logs: List[str]) -> StrategyOutcome:
        logs.append("Attempting database reconnection")
        wait = self._strategy_settings(RemediationStrategy.RECONNECT_DB.value).get(
            "wait_seconds", DEFAULT_DB_RECONNECT_WAIT_SECONDS
        )
        try:
            self.db_pool.close_db_pool()
            logs.append("Disconnected from database")
            self.sleep(wait)
            self.db_pool.init_db_pool()
            logs.append("Reconnected to database")
        except Exception as e:
            logs.append(f"Database reconnection failed: {e}")
            return False, logs

        if self.db_pool.ping_db():
            logs.append("Database connection verified")
            return True, logs
        logs.append("Database reconnection failed: SELECT 1 did not succeed")
        return False, logs

    def reconnect_redis(self, alert: AlertContext, logs: List[str]) -> StrategyOutcome:
        logs.append("Redis reconnection not yet implemented")
        return False, logs

    def clear_cache(self, alert: AlertContext, logs: List[str]) -> StrategyOutcome:
        logs.append("Cache clear not yet implemented")
        return False, logs
