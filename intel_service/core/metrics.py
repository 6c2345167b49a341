"""Prometheus metrics for the Issue Intelligence Service."""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response
from typing import Optional
import time


# Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# Alert investigation metrics
alerts_received_total = Counter(
    "alerts_received_total",
    "Total webhook alerts received",
    ["source", "status"]  # queued, rejected
)

investigations_total = Counter(
    "investigations_total",
    "Total alert investigations",
    ["outcome"]  # ticketed, updated, remediated, dismissed, ticket_failed
)

investigation_duration_seconds = Histogram(
    "investigation_duration_seconds",
    "Alert investigation duration in seconds",
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0]
)

validation_decisions_total = Counter(
    "validation_decisions_total",
    "Validation decisions by rule",
    ["rule", "is_real_issue"]
)

remediation_attempts_total = Counter(
    "remediation_attempts_total",
    "Total remediation attempts",
    ["strategy", "status"]  # success, failure
)

# Ticketing metrics
tickets_total = Counter(
    "tickets_total",
    "GitHub issue operations",
    ["operation", "status"]  # create/comment, success/error
)

# Log monitor metrics
log_checks_total = Counter(
    "log_checks_total",
    "Per-service log checks",
    ["service", "status"]  # success, error, skipped
)

detected_errors_total = Counter(
    "detected_errors_total",
    "Detected error groups",
    ["service", "category", "severity"]
)

# Queue metrics
investigation_queue_jobs = Gauge(
    "investigation_queue_jobs",
    "Investigation jobs by state",
    ["state"]  # waiting, active
)


def get_metrics_response() -> Response:
    """Generate Prometheus metrics response."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


class MetricsTimer:
    """Context manager for timing operations."""

    def __init__(self, histogram: Histogram, labels: Optional[dict] = None):
        """
        Initialize timer.

        Args:
            histogram: Prometheus Histogram metric
            labels: Optional labels dict
        """
        self.histogram = histogram
        self.labels = labels or {}
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time
        if self.labels:
            self.histogram.labels(**self.labels).observe(duration)
        else:
            self.histogram.observe(duration)
