"""Custom exceptions for the Issue Intelligence Service."""


class IntelServiceError(Exception):
    """Base exception for Issue Intelligence Service errors."""

    pass


class ValidationError(IntelServiceError):
    """Raised when an inbound payload is malformed or incomplete."""

    pass


class AlertNotFoundError(IntelServiceError):
    """Raised when an alert event is not found."""

    pass


class DatabaseError(IntelServiceError):
    """Raised when database operations fail."""

    pass


class ConfigurationError(IntelServiceError):
    """Raised when configuration is invalid or missing."""

    pass


class ExternalServiceError(IntelServiceError):
    """Raised when a call to an external collaborator fails."""

    pass


class LogSourceError(ExternalServiceError):
    """Raised when Loki or Railway log queries fail."""

    pass


class TicketingError(ExternalServiceError):
    """Raised when GitHub issue operations fail."""

    pass


class NotificationError(ExternalServiceError):
    """Raised when Slack calls fail."""

    pass


class RemediationError(ExternalServiceError):
    """Raised when a remediation actuator call fails."""

    pass
