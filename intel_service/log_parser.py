"""Parsing of raw deployment log lines and grouping of adjacent entries."""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

from intel_service.models import LogEntry, LogLevel, utcnow
from intel_service.core import get_logger

logger = get_logger(__name__)

# "[timestamp] message" as emitted by Railway; anything else is a bare message
TIMESTAMPED_LINE = re.compile(r"^\[([^\]]+)\]\s*(.+)$")

STACK_FRAME = re.compile(r"^\s*at\s+", re.IGNORECASE)
ERROR_MARKER = re.compile(r"Error:", re.IGNORECASE)
INDENTED = re.compile(r"^\s+")

# Log sources emit up to nanosecond fractions; fromisoformat on 3.10 takes 3 or 6 digits
FRACTIONAL_SECONDS = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")

DEFAULT_GROUP_GAP_MINUTES = 5

REPORTED_LEVELS = {
    "error": LogLevel.ERROR,
    "err": LogLevel.ERROR,
    "fatal": LogLevel.ERROR,
    "warn": LogLevel.WARN,
    "warning": LogLevel.WARN,
    "info": LogLevel.INFO,
    "debug": LogLevel.INFO,
}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp into a timezone-aware UTC datetime.

    Handles:
    - datetime objects (naive ones are treated as UTC)
    - ISO format strings (with or without Z suffix)
    - Invalid formats (logs debug and returns None)

    Args:
        value: Timestamp value to parse

    Returns:
        Aware datetime or None if parsing fails
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            normalized = FRACTIONAL_SECONDS.sub(
                lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}",
                value.strip().replace("Z", "+00:00"),
            )
            parsed = datetime.fromisoformat(normalized)
        except ValueError:
            logger.debug(f"Could not parse timestamp '{value}'")
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def infer_severity(message: str) -> LogLevel:
    """Infer a log level from message content."""
    lower = message.lower()
    if "error" in lower or "failed" in lower or "exception" in lower:
        return LogLevel.ERROR
    if "warn" in lower:
        return LogLevel.WARN
    return LogLevel.INFO


def parse_log_line(
    line: str,
    service_name: str,
    deployment_id: Optional[str] = None,
    severity: Optional[str] = None,
    timestamp: Any = None,
) -> LogEntry:
    """
    Parse one raw log line.

    Accepts "[timestamp] message" or a bare message. When the line carries no
    usable timestamp the explicit timestamp argument is used, then the current
    time.

    Args:
        line: Raw log line
        service_name: Monitored service the line came from
        deployment_id: Optional deployment identifier
        severity: Optional level reported by the log source (error/warn/info)
        timestamp: Optional timestamp reported by the log source

    Returns:
        Parsed LogEntry
    """
    match = TIMESTAMPED_LINE.match(line)
    if match:
        parsed_ts = parse_timestamp(match.group(1))
        message = match.group(2)
    else:
        parsed_ts = None
        message = line

    if parsed_ts is None:
        parsed_ts = parse_timestamp(timestamp) or utcnow()

    # A level reported by the log source wins over the inferred one
    level = REPORTED_LEVELS.get((severity or "").lower()) or infer_severity(message)

    return LogEntry(
        timestamp=parsed_ts,
        message=message,
        severity=level,
        service_name=service_name,
        deployment_id=deployment_id,
        raw_line=line,
    )


def extract_stack_trace(lines: List[str]) -> List[str]:
    """
    Collect stack trace lines from raw log lines.

    A frame line ("at ...") or a line containing "Error:" opens capture;
    indented lines and further frames continue it; any other line closes it.
    """
    trace: List[str] = []
    capturing = False

    for line in lines:
        if STACK_FRAME.match(line) or ERROR_MARKER.search(line):
            capturing = True
            trace.append(line)
        elif capturing:
            if INDENTED.match(line) or STACK_FRAME.match(line):
                trace.append(line)
            else:
                capturing = False

    return trace


def group_consecutive_logs(
    entries: List[LogEntry], max_gap_minutes: float = DEFAULT_GROUP_GAP_MINUTES
) -> List[List[LogEntry]]:
    """
    Split time-ordered entries into runs whose adjacent gap is within max_gap_minutes.

    Single left-to-right pass; entries must already be sorted by timestamp.
    """
    if not entries:
        return []

    max_gap = timedelta(minutes=max_gap_minutes)
    groups: List[List[LogEntry]] = []
    current = [entries[0]]

    for previous, entry in zip(entries, entries[1:]):
        if entry.timestamp - previous.timestamp <= max_gap:
            current.append(entry)
        else:
            groups.append(current)
            current = [entry]

    groups.append(current)
    return groups
