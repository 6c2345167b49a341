"""Error detection and grouping over parsed log entries."""

import re
from typing import Dict, List, Optional

from intel_service.core import get_logger
from intel_service.error_patterns import (
    DEFAULT_CATEGORY,
    DEFAULT_SEVERITY,
    ErrorPattern,
    generate_error_signature,
    load_error_patterns,
    match_error_pattern,
)
from intel_service.log_parser import (
    DEFAULT_GROUP_GAP_MINUTES,
    extract_stack_trace,
    group_consecutive_logs,
)
from intel_service.models import DetectedError, LogEntry, LogLevel

logger = get_logger(__name__)

ERROR_KEYWORDS = ("error", "failed", "exception", "fatal", "crash")

MAX_MESSAGE_LENGTH = 200
MAX_DETECTED_LOG_LINES = 10
MAX_MERGED_LOG_LINES = 20

ERROR_PREFIX = re.compile(r"Error:\s*(.+)", re.IGNORECASE)
EXCEPTION_PREFIX = re.compile(r"(\w+Exception|Error):\s*(.+)")


class ErrorDetector:
    """Detect, group and merge errors from time-ordered log entries."""

    def __init__(
        self,
        patterns: Optional[List[ErrorPattern]] = None,
        group_gap_minutes: float = DEFAULT_GROUP_GAP_MINUTES,
    ):
        """
        Initialize error detector.

        Args:
            patterns: Optional ordered error pattern rules (loaded from config if None)
            group_gap_minutes: Maximum gap between adjacent entries of one incident
        """
        self.patterns = patterns if patterns is not None else load_error_patterns()
        self.group_gap_minutes = group_gap_minutes

    @staticmethod
    def is_error_entry(entry: LogEntry) -> bool:
        if entry.severity == LogLevel.ERROR:
            return True
        lower = entry.message.lower()
        return any(keyword in lower for keyword in ERROR_KEYWORDS)

    def detect_errors(self, entries: List[LogEntry]) -> List[DetectedError]:
        """
        Turn a time-ordered sequence of log entries into detected errors.

        Args:
            entries: Log entries sorted by timestamp

        Returns:
            One DetectedError per run of adjacent error entries
        """
        error_entries = [entry for entry in entries if self.is_error_entry(entry)]
        if not error_entries:
            return []

        groups = group_consecutive_logs(error_entries, self.group_gap_minutes)
        detected = [self.analyze_group(group) for group in groups]
        logger.debug(
            f"Detected {len(detected)} errors from {len(error_entries)} error entries "
            f"({len(entries)} total)"
        )
        return detected

    def analyze_group(self, group: List[LogEntry]) -> DetectedError:
        """Build a DetectedError from one non-empty run of entries."""
        first, last = group[0], group[-1]

        combined = "\n".join(entry.message for entry in group)
        matched = match_error_pattern(combined, self.patterns)
        severity = matched.severity if matched else DEFAULT_SEVERITY
        category = matched.category if matched else DEFAULT_CATEGORY

        error_message = self.extract_main_error_message(group)
        raw_lines = [entry.raw_line for entry in group]
        stack_trace = extract_stack_trace(raw_lines)

        return DetectedError(
            signature=generate_error_signature(error_message, category),
            service_name=first.service_name,
            error_message=error_message,
            severity=severity,
            category=category,
            log_lines=stack_trace if stack_trace else raw_lines[:MAX_DETECTED_LOG_LINES],
            first_seen=first.timestamp,
            last_seen=last.timestamp,
            occurrence_count=len(group),
            deployment_id=first.deployment_id,
        )

    @staticmethod
    def extract_main_error_message(group: List[LogEntry]) -> str:
        for entry in group:
            match = ERROR_PREFIX.search(entry.message)
            if match:
                return match.group(1).strip()[:MAX_MESSAGE_LENGTH]

            match = EXCEPTION_PREFIX.search(entry.message)
            if match:
                return match.group(2).strip()[:MAX_MESSAGE_LENGTH]

        return group[0].message[:MAX_MESSAGE_LENGTH]

    @staticmethod
    def group_errors_by_signature(errors: List[DetectedError]) -> Dict[str, List[DetectedError]]:
        """Group errors by signature, keeping first-seen order of signatures."""
        grouped: Dict[str, List[DetectedError]] = {}
        for error in errors:
            grouped.setdefault(error.signature, []).append(error)
        return grouped

    @staticmethod
    def merge_error_occurrences(errors: List[DetectedError]) -> DetectedError:
        """
        Merge occurrences of one signature into a single error.

        Keeps the first error's metadata, sums occurrence counts, takes the
        latest last_seen and concatenates log lines (capped).

        Raises:
            ValueError: If errors is empty
        """
        if not errors:
            raise ValueError("Cannot merge an empty list of errors")
        if len(errors) == 1:
            return errors[0]

        first = errors[0]
        log_lines = [line for error in errors for line in error.log_lines][:MAX_MERGED_LOG_LINES]

        return first.model_copy(
            update={
                "occurrence_count": sum(error.occurrence_count for error in errors),
                "last_seen": max(error.last_seen for error in errors),
                "log_lines": log_lines,
            }
        )
