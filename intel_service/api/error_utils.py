"""Utility helpers for formatting user-friendly API error messages."""
from typing import List


def format_user_friendly_error(error: Exception) -> str:
    """
    Create an actionable error message for API responses.

    Args:
        error: Exception that occurred

    Returns:
        Human-friendly error message with optional hints
    """
    message = str(error) if error else "Unknown error"
    lower = message.lower()
    hints: List[str] = []

    if "railway" in lower:
        hints.append("Verify RAILWAY_API_TOKEN, RAILWAY_PROJECT_ID and the service ID variables.")

    if "github" in lower:
        hints.append("Verify GITHUB_TOKEN has issue write access to GITHUB_OWNER/GITHUB_REPO.")

    if "loki" in lower:
        hints.append("Check that LOKI_URL is reachable from the service.")

    if "rate limit" in lower or "429" in lower:
        hints.append("Wait a few seconds before retrying or reduce concurrent requests.")

    if "could not connect to server" in lower or "connection refused" in lower:
        hints.append("Ensure PostgreSQL is running and DATABASE_URL or POSTGRES_HOST/PORT are correct.")

    if "timeout" in lower or "timed out" in lower:
        hints.append("Try again shortly or increase timeout settings if the upstream is slow.")

    if hints:
        hint_text = " ".join(hints)
        return f"{message} Hint: {hint_text}"

    return f"{message} If the issue persists, retry or check the service logs for more details."
