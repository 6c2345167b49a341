"""Log sanitization utilities to prevent credentials from being logged."""

import re
from typing import Any, Dict, List, Optional

DEFAULT_SENSITIVE_KEYS = [
    "password",
    "passwd",
    "pwd",
    "api_key",
    "apikey",
    "token",
    "secret",
    "authorization",
    "postgres_password",
    "db_password",
]


def sanitize_log_message(message: str) -> str:
    """
    Sanitize a log message by redacting sensitive information.

    Args:
        message: The log message to sanitize

    Returns:
        Sanitized log message with sensitive data redacted
    """
    if not isinstance(message, str):
        return str(message)

    sanitized = message

    # GitHub tokens (classic and fine-grained)
    sanitized = re.sub(
        r"\b(ghp|gho|ghs|ghu|github_pat)_[A-Za-z0-9_]{20,}",
        r"\1_***REDACTED***",
        sanitized,
    )

    # Slack tokens: xoxb-, xoxp-, xapp-
    sanitized = re.sub(
        r"\b(xox[abpr]|xapp)-[A-Za-z0-9\-]{10,}",
        r"\1-***REDACTED***",
        sanitized,
    )

    # Authorization headers
    sanitized = re.sub(
        r"(?i)(bearer)\s+[A-Za-z0-9\-_\.=]{16,}",
        r"\1 ***REDACTED***",
        sanitized,
    )

    sanitized = re.sub(
        r"(?i)(api[_-]?key|apikey)\s*[:=]\s*['\"]?[a-zA-Z0-9\-_]{20,}['\"]?",
        r"\1=***REDACTED***",
        sanitized,
    )

    sanitized = re.sub(
        r"(?i)(password|passwd|pwd|postgres[_-]?password)\s*[:=]\s*['\"]?[^\s'\"]{3,}['\"]?",
        r"\1=***REDACTED***",
        sanitized,
    )

    sanitized = re.sub(
        r"(?i)(postgresql://|postgres://|redis://)[^:/@\s]+:[^@\s]+@",
        r"\1***REDACTED***:***REDACTED***@",
        sanitized,
    )

    sanitized = re.sub(
        r"(?i)(token)\s*[:=]\s*['\"]?[a-zA-Z0-9\-_]{20,}['\"]?",
        r"\1=***REDACTED***",
        sanitized,
    )

    return sanitized


def sanitize_dict(
    data: Dict[str, Any], sensitive_keys: Optional[List[str]] = None
) -> Dict[str, Any]:
    """
    Sanitize a dictionary by redacting values for sensitive keys.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Optional list of keys to redact. If None, uses default list.

    Returns:
        Sanitized copy of the dictionary
    """
    if sensitive_keys is None:
        sensitive_keys = DEFAULT_SENSITIVE_KEYS

    sanitized = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in sensitive_keys):
            sanitized[key] = "***REDACTED***"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, list):
            sanitized[key] = [
                sanitize_dict(item, sensitive_keys) if isinstance(item, dict) else item
                for item in value
            ]
        elif isinstance(value, str):
            sanitized[key] = sanitize_log_message(value)
        else:
            sanitized[key] = value

    return sanitized
