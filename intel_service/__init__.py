"""Issue Intelligence Service: alert investigation and log monitoring."""

__version__ = "1.0.0"
