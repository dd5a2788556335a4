"""Configuration - YAML settings, schema validation and SMTP credentials."""

from .settings import (
    AppConfig,
    ConfigurationError,
    ScheduleConfig,
    SecretRedactionFilter,
    Settings,
    SmtpConfig,
    load_config,
    setup_logging_redaction,
)

__all__ = [
    "AppConfig",
    "ConfigurationError",
    "ScheduleConfig",
    "SecretRedactionFilter",
    "Settings",
    "SmtpConfig",
    "load_config",
    "setup_logging_redaction",
]
