"""Loki client for log queries (read-only)."""
import os
import requests
from datetime import datetime
from typing import Dict, Optional
from intel_service.core import get_logger, LogSourceError
from intel_service.clients.http import request_with_retry

logger = get_logger(__name__)

DEFAULT_QUERY_TIMEOUT = 30  # seconds
DEFAULT_LIMIT = 1000


class LokiClient:
    """Read-only Loki client."""

    def __init__(self, url: Optional[str] = None, timeout: float = DEFAULT_QUERY_TIMEOUT):
        """
        Initialize Loki client.

        Args:
            url: Loki base URL (defaults to LOKI_URL env var)
            timeout: Query timeout in seconds
        """
        self.url = (url or os.getenv("LOKI_URL") or "").rstrip("/")
        self.timeout = timeout

        if not self.url:
            logger.warning("LOKI_URL not set - alert log analysis will be empty")

    def is_configured(self) -> bool:
        return bool(self.url)

    def query_range(
        self, query: str, start: datetime, end: datetime, limit: int = DEFAULT_LIMIT
    ) -> Dict:
        """
        Run a LogQL range query.

        Args:
            query: LogQL query
            start: Range start
            end: Range end
            limit: Maximum number of lines

        Returns:
            Decoded Loki response body

        Raises:
            LogSourceError: If Loki is not configured or the query fails
        """
        if not self.is_configured():
            raise LogSourceError("Loki is not configured (LOKI_URL missing)")

        params = {
            "query": query,
            "start": int(start.timestamp() * 1_000_000_000),
            "end": int(end.timestamp() * 1_000_000_000),
            "limit": limit,
        }
        try:
            response = request_with_retry(
                "GET",
                f"{self.url}/loki/api/v1/query_range",
                params=params,
                timeout=self.timeout,
            )
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Loki query failed: {e} (query={query})")
            raise LogSourceError(f"Loki query failed: {e}") from e


_loki_client: Optional[LokiClient] = None


def get_loki_client() -> LokiClient:
    """Get or create Loki client instance."""
    global _loki_client
    if _loki_client is None:
        _loki_client = LokiClient()
    return _loki_client
