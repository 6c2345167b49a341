"""Configuration loader for config files and required environment settings."""

import os
import json
from typing import Dict, List, Optional
from intel_service.core.logger import get_logger
from intel_service.core.exceptions import ConfigurationError

logger = get_logger(__name__)

_CONFIG_CACHE: Optional[Dict] = None

# Section name -> file name inside the config directory
CONFIG_FILES = {
    "validation": "validation.json",
    "remediation": "remediation.json",
    "monitoring": "monitoring.json",
    "notifications": "notifications.json",
    "ticketing": "ticketing.json",
    "categorization": "categorization.json",
    "error_patterns": "error_patterns.json",
    "known_issues": "known_issues.json",
}

# Always required, regardless of which loops are enabled
REQUIRED_ENV = ["GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO"]

# Required only when the log polling loop is enabled
LOG_MONITOR_REQUIRED_ENV = [
    "RAILWAY_API_TOKEN",
    "RAILWAY_PROJECT_ID",
    "RAILWAY_ENVIRONMENT_ID",
]


def _get_config_dir() -> str:
    """Get the config directory path."""
    # __file__ is intel_service/core/config_loader.py -> project root is 3 levels up
    current_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    return os.getenv("INTEL_CONFIG_DIR", os.path.join(current_dir, "config"))


def load_config(config_dir: Optional[str] = None) -> Dict:
    """
    Load configuration from the config directory (one JSON file per section).

    Args:
        config_dir: Optional path to config directory. If None, uses default location.

    Returns:
        Merged configuration dictionary keyed by section name

    Raises:
        ConfigurationError: If a config file is missing or is not valid JSON
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE is not None:
        logger.debug("Returning cached configuration")
        return _CONFIG_CACHE

    if config_dir is None:
        config_dir = _get_config_dir()

    logger.info(f"Loading configuration from: {config_dir}")

    merged_config = {}
    for key, filename in CONFIG_FILES.items():
        config_path = os.path.join(config_dir, filename)
        try:
            with open(config_path, "r") as f:
                merged_config[key] = json.load(f)
            logger.debug(f"Loaded config file: {filename}")
        except FileNotFoundError:
            logger.error(f"Configuration file not found: {config_path}")
            raise ConfigurationError(f"Configuration file not found: {config_path}")
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in configuration file {config_path}: {e}")
            raise ConfigurationError(f"Invalid JSON in configuration file {config_path}: {e}")

    _CONFIG_CACHE = merged_config
    logger.info("Configuration loaded successfully")
    return merged_config


def reload_config(config_dir: Optional[str] = None) -> Dict:
    """
    Force reload configuration (clears cache).

    Args:
        config_dir: Optional path to config directory.

    Returns:
        Configuration dictionary
    """
    global _CONFIG_CACHE
    logger.info("Reloading configuration (clearing cache)")
    _CONFIG_CACHE = None
    return load_config(config_dir)


def get_validation_config() -> Dict:
    """Get validation thresholds (min error count, min confidence, ...)."""
    return load_config().get("validation", {})


def get_remediation_config() -> Dict:
    """Get remediation configuration (enabled flag, strategies)."""
    return load_config().get("remediation", {})


def get_monitoring_config() -> Dict:
    """Get log monitoring configuration (services, polling interval, grouping gap)."""
    return load_config().get("monitoring", {})


def get_notification_config() -> Dict:
    """Get Slack channel routing configuration."""
    return load_config().get("notifications", {})


def get_ticketing_config() -> Dict:
    """Get GitHub issue creation configuration."""
    return load_config().get("ticketing", {})


def get_categorization_config() -> Dict:
    """Get keyword rules for issue type/component categorization."""
    return load_config().get("categorization", {})


def get_error_pattern_rules() -> List[Dict]:
    """Get the ordered error pattern rule list."""
    return load_config().get("error_patterns", {}).get("rules", [])


def get_known_issue_catalog() -> List[Dict]:
    """Get the seed catalog of known issues."""
    return load_config().get("known_issues", {}).get("issues", [])


def validate_required_settings(require_log_monitor: Optional[bool] = None) -> None:
    """
    Check that every required environment setting is present.

    Args:
        require_log_monitor: Whether the Railway polling settings are required.
            If None, follows the monitoring config "enabled" flag.

    Raises:
        ConfigurationError: If any required setting is missing
    """
    required = list(REQUIRED_ENV)

    if require_log_monitor is None:
        require_log_monitor = get_monitoring_config().get("enabled", True)

    if require_log_monitor:
        required.extend(LOG_MONITOR_REQUIRED_ENV)
        for service in get_monitoring_config().get("services", []):
            env_var = service.get("service_id_env")
            if env_var:
                required.append(env_var)

    missing = [key for key in required if not os.getenv(key)]
    if missing:
        logger.error(f"Missing required environment variables: {', '.join(missing)}")
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    logger.debug("All required settings present")
