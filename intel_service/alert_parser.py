"""Webhook alert payload parsing."""

from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from intel_service.core import get_logger, ValidationError
from intel_service.log_parser import parse_timestamp
from intel_service.models import (
    AlertContext,
    AlertMetrics,
    AlertSeverity,
    WebhookAlert,
    WebhookPayload,
    utcnow,
)

logger = get_logger(__name__)

DEFAULT_TIME_WINDOW = "5m"
DEFAULT_QUERY_WINDOW = "15m"


def _severity_from_labels(labels: Dict[str, str]) -> AlertSeverity:
    severity = (labels.get("severity") or "").lower()
    if severity == "critical":
        return AlertSeverity.CRITICAL
    if severity == "warning":
        return AlertSeverity.WARNING
    return AlertSeverity.INFO


def _build_log_query(alert: WebhookAlert) -> str:
    """Build the LogQL query used to pull errors for the alerting service."""
    service = alert.labels.get("service") or alert.labels.get("job")
    window = alert.annotations.get("time_window") or DEFAULT_QUERY_WINDOW
    return f'{{service="{service}"}} |= "error" | json | __error__="" [{window}]'


def _parse_affected_endpoints(annotations: Dict[str, str]) -> Optional[List[str]]:
    endpoints = annotations.get("affected_endpoints")
    if not endpoints:
        return None
    return [endpoint.strip() for endpoint in endpoints.split(",") if endpoint.strip()]


def _parse_error_count(annotations: Dict[str, str]) -> int:
    value = annotations.get("error_count") or "0"
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Non-numeric error_count annotation: {value!r}")
        return 0


def parse_grafana_alert(payload: Any) -> AlertContext:
    """
    Normalize a Grafana (or Alertmanager) webhook body into an AlertContext.

    Only the first alert record of the payload is used.

    Args:
        payload: Decoded JSON body

    Returns:
        AlertContext for the first alert

    Raises:
        ValidationError: If the payload is malformed or carries no alerts
    """
    if not isinstance(payload, dict):
        raise ValidationError("Webhook payload must be a JSON object")

    try:
        webhook = WebhookPayload.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed webhook payload: {e.error_count()} invalid field(s)") from e

    if not webhook.alerts:
        raise ValidationError("No alerts found in payload")

    first = webhook.alerts[0]
    labels, annotations = first.labels, first.annotations

    return AlertContext(
        timestamp=parse_timestamp(first.startsAt) or utcnow(),
        alert_name=labels.get("alertname") or "Unknown Alert",
        severity=_severity_from_labels(labels),
        affected_service=labels.get("service") or labels.get("job") or "unknown",
        log_query=_build_log_query(first),
        metrics=AlertMetrics(
            error_count=_parse_error_count(annotations),
            time_window=annotations.get("time_window") or DEFAULT_TIME_WINDOW,
            affected_endpoints=_parse_affected_endpoints(annotations),
        ),
    )


# Webhook source -> parser. Alertmanager posts the same alerts[] shape as Grafana.
ALERT_PARSERS: Dict[str, Callable[[Any], AlertContext]] = {
    "grafana": parse_grafana_alert,
    "alertmanager": parse_grafana_alert,
}


def get_alert_parser(source: str) -> Optional[Callable[[Any], AlertContext]]:
    """Return the parser registered for a webhook source, or None."""
    return ALERT_PARSERS.get(source.lower())
