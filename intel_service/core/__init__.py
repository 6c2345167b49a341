"""Core utilities and infrastructure."""
from intel_service.core.logger import setup_logging, get_logger
from intel_service.core.exceptions import (
    IntelServiceError, ValidationError, AlertNotFoundError, DatabaseError,
    ConfigurationError, ExternalServiceError, LogSourceError, TicketingError,
    NotificationError, RemediationError,
)
from intel_service.core.config_loader import (
    load_config, reload_config, validate_required_settings,
    get_validation_config, get_remediation_config, get_monitoring_config,
    get_notification_config, get_ticketing_config, get_categorization_config,
    get_error_pattern_rules, get_known_issue_catalog,
)
from intel_service.core.log_sanitizer import sanitize_log_message, sanitize_dict

__all__ = [
    "setup_logging", "get_logger",
    "IntelServiceError", "ValidationError", "AlertNotFoundError", "DatabaseError",
    "ConfigurationError", "ExternalServiceError", "LogSourceError", "TicketingError",
    "NotificationError", "RemediationError",
    "load_config", "reload_config", "validate_required_settings",
    "get_validation_config", "get_remediation_config", "get_monitoring_config",
    "get_notification_config", "get_ticketing_config", "get_categorization_config",
    "get_error_pattern_rules", "get_known_issue_catalog",
    "sanitize_log_message", "sanitize_dict",
]
