"""
Configuration loader for the booking mailer

Reads schedule and SMTP settings from YAML, validates them against a JSON
schema, and fetches SMTP credentials from the environment, a local secrets
file, or AWS Secrets Manager (with caching, exponential backoff, and log
redaction).
"""

import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import boto3
import jsonschema
import yaml
from botocore.exceptions import BotoCoreError, ClientError

from booking_mailer.utils.logger import add_shared_filter

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""

    pass


# NOTE: This is a secret NAME, not a secret VALUE.
SMTP_SECRET_ID = "booking-mailer/smtp-credentials"  # nosec B105

CONFIG_ENV_VAR = "BOOKING_MAILER_CONFIG"
CONFIG_DIR = Path(__file__).resolve().parent
DEFAULT_CONFIG_PATH = CONFIG_DIR / "app.yaml"
SCHEMA_PATH = CONFIG_DIR / "config.schema.json"
DEFAULT_TEMPLATES_PATH = CONFIG_DIR / "email_templates.yaml"
DEFAULT_REGION = "ap-northeast-2"
DEFAULT_LOCAL_SECRETS_FILE = ".local/secrets.json"


def _use_local_secrets() -> bool:
    return os.getenv("USE_LOCAL_SECRETS_FILE", "false").lower() == "true"


def _local_secrets_file() -> str:
    return os.getenv("LOCAL_SECRETS_FILE_PATH", DEFAULT_LOCAL_SECRETS_FILE)


@dataclass(frozen=True)
class SmtpConfig:
    """Static SMTP transport settings."""

    host: str
    port: str
    username: str
    password: str
    from_address: str
    timeout_seconds: Optional[float] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class ScheduleConfig:
    """Cron schedule for the daily dispatch cycle."""

    cron_expression: str
    timezone: str = "UTC"


@dataclass(frozen=True)
class AppConfig:
    """Top level application configuration."""

    smtp: SmtpConfig
    schedule: ScheduleConfig
    templates_path: Path = DEFAULT_TEMPLATES_PATH


class SecretRedactionFilter(logging.Filter):
    """
    Logging filter that redacts secret values from log records.
    Replaces secret substrings with ***REDACTED*** to prevent accidental leakage.
    """

    def __init__(self, secrets: Optional[Dict[str, Any]] = None):
        """
        Initialize filter with secrets to redact.

        Args:
            secrets: Dictionary of secrets to redact (values will be masked)
        """
        super().__init__()
        self.secrets = secrets or {}
        self.redacted_values: set[str] = set()
        if self.secrets:
            self._extract_secret_values(self.secrets)

    def _extract_secret_values(self, obj: Any, max_depth: int = 5) -> None:
        """Recursively extract all secret values from nested structures."""
        if max_depth <= 0:
            return

        if isinstance(obj, dict):
            for value in obj.values():
                self._extract_secret_values(value, max_depth - 1)
        elif isinstance(obj, (list, tuple)):
            for item in obj:
                self._extract_secret_values(item, max_depth - 1)
        elif isinstance(obj, str) and obj and len(obj) > 3:
            # Only redact strings with meaningful length
            self.redacted_values.add(obj)

    def filter(self, record: logging.LogRecord) -> bool:
        """Filter and redact log record."""
        record.msg = self._redact_string(str(record.msg))
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._redact_string(str(v)) for k, v in record.args.items()}
            elif isinstance(record.args, (list, tuple)):
                record.args = tuple(self._redact_string(str(arg)) for arg in record.args)
        return True

    def _redact_string(self, text: str) -> str:
        """Redact all secret values from string."""
        for secret in self.redacted_values:
            if secret in text:
                text = text.replace(secret, "***REDACTED***")
        return text


class Settings:
    """
    Configuration loader for schedule, SMTP settings and SMTP credentials.
    Credentials come from Secrets Manager with caching and exponential backoff.
    """

    def __init__(self, region_name: Optional[str] = None, secrets_client: Optional[Any] = None):
        """
        Initialize Settings loader.

        Args:
            region_name: AWS region for Secrets Manager (default: AWS_REGION or ap-northeast-2)
            secrets_client: Optional pre-built boto3 Secrets Manager client
        """
        self.region_name = region_name or os.getenv("AWS_REGION", DEFAULT_REGION)
        self.secrets_client = secrets_client
        self._smtp_credentials: Optional[Dict[str, str]] = None

    def _get_secrets_client(self):
        """Lazy initialize Secrets Manager client."""
        if self.secrets_client is None:
            self.secrets_client = boto3.client("secretsmanager", region_name=self.region_name)
        return self.secrets_client

    def _get_secret_value(
        self, secret_id: str, max_retries: int = 3, base_wait: float = 1.0
    ) -> Dict[str, Any]:
        """
        Fetch secret from Secrets Manager with exponential backoff.

        Args:
            secret_id: Secret identifier in Secrets Manager
            max_retries: Maximum number of retry attempts
            base_wait: Base wait time in seconds for exponential backoff

        Returns:
            Parsed secret JSON as dictionary

        Raises:
            ConfigurationError: If secret cannot be retrieved after retries
        """
        try:
            client = self._get_secrets_client()
        except BotoCoreError as e:
            raise ConfigurationError(f"Cannot create Secrets Manager client: {e}") from e

        for attempt in range(max_retries):
            try:
                response = client.get_secret_value(SecretId=secret_id)
                secret_string = response.get("SecretString")
                if not secret_string:
                    raise ConfigurationError(f"Secret '{secret_id}' has empty value")
                return json.loads(secret_string)
            except ClientError as e:
                error_code = e.response["Error"]["Code"]
                if error_code == "ResourceNotFoundException":
                    raise ConfigurationError(
                        f"Secret '{secret_id}' not found in Secrets Manager. "
                        f"Please verify the secret exists in region {self.region_name}"
                    ) from e
                elif error_code in ["AccessDeniedException", "UnauthorizedOperation"]:
                    raise ConfigurationError(
                        f"Access denied to secret '{secret_id}'. "
                        f"Verify the execution role has secretsmanager:GetSecretValue permission"
                    ) from e
                elif error_code == "DecryptionFailure":
                    raise ConfigurationError(
                        f"Failed to decrypt secret '{secret_id}'. Verify KMS key permissions"
                    ) from e
                elif attempt < max_retries - 1:
                    wait_time = base_wait * (2**attempt)
                    logger.warning(
                        f"Transient error fetching secret {secret_id}: {error_code}. "
                        f"Retrying in {wait_time}s (attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(wait_time)
                else:
                    raise ConfigurationError(
                        f"Failed to retrieve secret '{secret_id}' after {max_retries} attempts: {error_code}"
                    ) from e
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Secret '{secret_id}' contains invalid JSON: {e}") from e
            except BotoCoreError as e:
                # e.g. NoCredentialsError or EndpointConnectionError
                if attempt < max_retries - 1:
                    wait_time = base_wait * (2**attempt)
                    logger.warning(
                        f"Error reaching Secrets Manager for {secret_id}: {e}. "
                        f"Retrying in {wait_time}s (attempt {attempt + 1}/{max_retries})"
                    )
                    time.sleep(wait_time)
                else:
                    raise ConfigurationError(
                        f"Failed to retrieve secret '{secret_id}' after {max_retries} attempts: {e}"
                    ) from e

        raise ConfigurationError(
            f"Failed to retrieve secret '{secret_id}' - exhausted all retry attempts"
        )

    @staticmethod
    def _load_from_local_file(filepath: str) -> Dict[str, Any]:
        """
        Load secrets from local JSON file for development.

        Raises:
            ConfigurationError: If file cannot be read or contains invalid JSON
        """
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Local secrets file not found: {filepath}. "
                f"Use AWS Secrets Manager or provide USE_LOCAL_SECRETS_FILE=true and LOCAL_SECRETS_FILE_PATH"
            ) from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Local secrets file contains invalid JSON: {e}") from e

    def load_smtp_credentials(self) -> Dict[str, str]:
        """
        Load SMTP credentials.

        Priority:
        1. SMTP_USERNAME / SMTP_PASSWORD environment variables
        2. Local secrets file ("smtp" key) when USE_LOCAL_SECRETS_FILE=true
        3. Secrets Manager

        Returns:
            Dictionary with 'username' and 'password' keys

        Raises:
            ConfigurationError: If credentials cannot be loaded
        """
        if self._smtp_credentials is not None:
            return self._smtp_credentials

        env_user = os.getenv("SMTP_USERNAME")
        env_password = os.getenv("SMTP_PASSWORD")
        if env_user and env_password:
            credentials: Dict[str, Any] = {"username": env_user, "password": env_password}
        elif _use_local_secrets():
            credentials = self._load_from_local_file(_local_secrets_file()).get("smtp", {})
        else:
            credentials = self._get_secret_value(SMTP_SECRET_ID)

        if not credentials.get("username") or not credentials.get("password"):
            raise ConfigurationError(
                f"SMTP credentials missing required keys. "
                f"Expected: username, password. Got: {sorted(credentials.keys())}"
            )

        self._smtp_credentials = {
            "username": str(credentials["username"]),
            "password": str(credentials["password"]),
        }
        return self._smtp_credentials

    def load_app_config(self, path: Optional[Path] = None) -> AppConfig:
        """
        Load application configuration from YAML and validate it.

        Args:
            path: Optional explicit configuration path. Falls back to the
                BOOKING_MAILER_CONFIG environment variable, then the packaged
                app.yaml.

        Returns:
            Parsed AppConfig with SMTP credentials filled in

        Raises:
            ConfigurationError: If the file is missing, invalid, or credentials are unavailable
        """
        config_path = Path(path or os.getenv(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
        data = _read_yaml(config_path)

        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        try:
            jsonschema.validate(instance=data, schema=schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(
                f"Configuration {config_path} failed schema validation: {e.message}"
            ) from e

        schedule_raw = data["schedule"]
        timezone_name = str(schedule_raw.get("timezone", "UTC"))
        try:
            ZoneInfo(timezone_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown timezone: {timezone_name}") from e

        schedule = ScheduleConfig(
            cron_expression=str(schedule_raw["cron_expression"]),
            timezone=timezone_name,
        )

        templates_raw = data.get("templates", {})
        templates_path = DEFAULT_TEMPLATES_PATH
        if templates_raw.get("path"):
            templates_path = Path(templates_raw["path"])
            if not templates_path.is_absolute():
                templates_path = config_path.parent / templates_path

        credentials = self.load_smtp_credentials()
        smtp_raw = data["smtp"]
        timeout = smtp_raw.get("timeout_seconds")
        smtp = SmtpConfig(
            host=str(smtp_raw["host"]),
            port=str(smtp_raw["port"]),
            username=credentials["username"],
            password=credentials["password"],
            from_address=str(smtp_raw["from_address"]),
            timeout_seconds=float(timeout) if timeout is not None else None,
        )

        logger.info(f"Loaded configuration from {config_path}")
        return AppConfig(smtp=smtp, schedule=schedule, templates_path=templates_path)

    @staticmethod
    def setup_redaction_filter(
        logger_instance: logging.Logger, secrets: Optional[Dict[str, Any]] = None
    ) -> SecretRedactionFilter:
        """
        Configure logger with secret redaction filter.

        Args:
            logger_instance: Logger instance to configure
            secrets: Secret values to redact

        Returns:
            The installed filter
        """
        redaction_filter = SecretRedactionFilter(secrets)
        logger_instance.addFilter(redaction_filter)
        for handler in logger_instance.handlers:
            handler.addFilter(redaction_filter)
        return redaction_filter


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return data


# Module-level convenience functions
def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load and validate application configuration."""
    return Settings().load_app_config(path)


def setup_logging_redaction(config: AppConfig) -> SecretRedactionFilter:
    """
    Setup SMTP password redaction for the root logger and every package
    logger, including loggers created after this call.
    """
    secrets = {"smtp_password": config.smtp.password}
    redaction_filter = Settings.setup_redaction_filter(logging.getLogger(), secrets)
    add_shared_filter(redaction_filter)
    return redaction_filter
