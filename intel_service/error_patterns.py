"""Ordered error pattern rules and signature generation."""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from intel_service.core import get_logger, get_error_pattern_rules, ConfigurationError
from intel_service.models import ErrorSeverity
from intel_service.rules import first_match

logger = get_logger(__name__)

DEFAULT_CATEGORY = "general"
DEFAULT_SEVERITY = ErrorSeverity.MEDIUM
SIGNATURE_MAX_LENGTH = 100


@dataclass(frozen=True)
class ErrorPattern:
    """One (regex, severity, category) rule."""

    pattern: re.Pattern
    severity: ErrorSeverity
    category: str

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def compile_error_patterns(rules: List[Dict]) -> List[ErrorPattern]:
    """
    Compile rule dicts ({pattern, severity, category}) into ErrorPatterns.

    Matching is case-insensitive. Order is preserved.

    Raises:
        ConfigurationError: If a rule has an invalid regex or severity
    """
    compiled = []
    for index, rule in enumerate(rules):
        try:
            compiled.append(
                ErrorPattern(
                    pattern=re.compile(rule["pattern"], re.IGNORECASE),
                    severity=ErrorSeverity(rule["severity"]),
                    category=rule["category"],
                )
            )
        except (KeyError, ValueError, re.error) as e:
            raise ConfigurationError(f"Invalid error pattern rule #{index}: {e}") from e
    return compiled


def load_error_patterns() -> List[ErrorPattern]:
    """Load the configured error pattern rules."""
    patterns = compile_error_patterns(get_error_pattern_rules())
    logger.debug(f"Loaded {len(patterns)} error pattern rules")
    return patterns


def match_error_pattern(text: str, patterns: List[ErrorPattern]) -> Optional[ErrorPattern]:
    """Return the first rule matching text, or None."""
    return first_match(patterns, lambda rule: rule.matches(text))


def normalize_message(message: str) -> str:
    """Lowercase, replace digit runs with N, strip quotes, hyphenate whitespace, truncate."""
    normalized = message.lower()
    normalized = re.sub(r"\d+", "N", normalized)
    normalized = re.sub(r"['\"]", "", normalized)
    normalized = re.sub(r"\s+", "-", normalized)
    return normalized[:SIGNATURE_MAX_LENGTH]


def generate_error_signature(error_message: str, category: str) -> str:
    """
    Build a stable deduplication key for an error.

    Messages that differ only in embedded numbers (ids, counts, ports)
    produce the same signature.
    """
    return f"{category}-{normalize_message(error_message)}"
