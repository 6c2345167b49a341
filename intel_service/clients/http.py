"""Outbound HTTP with retry and exponential backoff."""
import random
import time
import requests
from typing import Optional
from intel_service.core import get_logger, sanitize_log_message

logger = get_logger(__name__)

# Retry configuration
MAX_RETRIES = 3
INITIAL_RETRY_DELAY = 1.0  # seconds
MAX_RETRY_DELAY = 30.0  # seconds
RETRY_EXPONENTIAL_BASE = 2.0


def should_retry(status_code: Optional[int] = None, error: Optional[Exception] = None) -> bool:
    """
    Determine if a failed call should be retried.

    Args:
        status_code: HTTP status code if available
        error: The exception that occurred

    Returns:
        True for connection errors, timeouts, 5xx and 429; False otherwise
    """
    if isinstance(error, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return True

    if status_code:
        if 500 <= status_code < 600 or status_code == 429:
            return True

    return False


def request_with_retry(
    method: str,
    url: str,
    max_retries: int = MAX_RETRIES,
    timeout: float = 10.0,
    **kwargs,
) -> requests.Response:
    """
    Send an HTTP request, retrying transient failures with exponential backoff.

    Args:
        method: HTTP method
        url: Request URL
        max_retries: Total attempts (1 disables retries)
        timeout: Per-attempt timeout in seconds
        **kwargs: Passed to requests.request (headers, json, params, ...)

    Returns:
        Successful response (2xx)

    Raises:
        requests.exceptions.RequestException: If all attempts fail or the error is not retryable
    """
    last_error = None

    for attempt in range(max_retries):
        try:
            response = requests.request(method, url, timeout=timeout, **kwargs)
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            last_error = e
            status_code = e.response.status_code if e.response is not None else None

            if not should_retry(status_code, e) or attempt == max_retries - 1:
                logger.warning(
                    f"{method} {url} failed (attempt {attempt + 1}/{max_retries}): "
                    f"{sanitize_log_message(str(e))}"
                )
                raise

            # Rate limits start from a longer delay
            base_delay = INITIAL_RETRY_DELAY * 2 if status_code == 429 else INITIAL_RETRY_DELAY
            delay = min(base_delay * (RETRY_EXPONENTIAL_BASE ** attempt), MAX_RETRY_DELAY)
            total_delay = delay + random.uniform(0, delay * 0.1)

            logger.warning(
                f"{method} {url} failed ({type(e).__name__}, attempt {attempt + 1}/{max_retries}): "
                f"{sanitize_log_message(str(e))}. Retrying in {total_delay:.2f}s..."
            )
            time.sleep(total_delay)

    raise last_error
