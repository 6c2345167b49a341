"""Loki log analysis around an alert."""
import re
from datetime import timedelta
from typing import List, Optional
from intel_service.clients.loki_client import LokiClient, get_loki_client
from intel_service.core import get_logger, get_monitoring_config
from intel_service.models import AlertContext, LogAnalysis

logger = get_logger(__name__)

ENDPOINT_PATTERN = re.compile(r"(?:GET|POST|PUT|DELETE|PATCH)\s+(\/[^\s]*)")

MAX_ERROR_MESSAGES = 10
MAX_STACK_TRACES = 5
DEFAULT_WINDOW_MINUTES = 15


def extract_error_pattern(errors: List[str]) -> Optional[str]:
    """Text before the first colon of the first error, else its first 100 chars."""
    if not errors:
        return None
    first = errors[0]
    colon = first.find(":")
    if colon > 0:
        return first[:colon].strip()
    return first[:100]


def _unique(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


class LogAnalysisService:
    """Collect error evidence from Loki for one alert."""

    def __init__(self, client: Optional[LokiClient] = None, settings: Optional[dict] = None):
        self.client = client or get_loki_client()
        settings = settings if settings is not None else get_monitoring_config().get("loki", {})
        self.window = timedelta(minutes=settings.get("window_minutes", DEFAULT_WINDOW_MINUTES))
        self.limit = settings.get("limit", 1000)

    def analyze_logs(self, context: AlertContext) -> LogAnalysis:
        """
        Query the window around the alert and summarize error lines.

        Raises:
            LogSourceError: If the Loki query fails
        """
        logger.info(f"Analyzing logs from Loki for alert: {context.alert_name}")
        start = context.timestamp - self.window
        end = context.timestamp + self.window

        body = self.client.query_range(context.log_query, start, end, limit=self.limit)
        return self.summarize(body, start, end)

    @staticmethod
    def summarize(body: dict, start, end) -> LogAnalysis:
        error_messages: List[str] = []
        stack_traces: List[str] = []
        endpoints: List[str] = []

        for stream in (body.get("data") or {}).get("result") or []:
            for _, message in stream.get("values") or []:
                if "error" in message.lower():
                    error_messages.append(message)
                if "at " in message and ".js:" in message:
                    stack_traces.append(message)
                match = ENDPOINT_PATTERN.search(message)
                if match:
                    endpoints.append(match.group(1))

        unique_errors = _unique(error_messages)
        return LogAnalysis(
            error_messages=unique_errors[:MAX_ERROR_MESSAGES],
            stack_traces=stack_traces[:MAX_STACK_TRACES],
            affected_endpoints=_unique(endpoints),
            error_pattern=extract_error_pattern(unique_errors),
            first_occurrence=start,
            last_occurrence=end,
            frequency=len(error_messages),
        )
