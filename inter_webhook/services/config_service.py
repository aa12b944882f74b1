"""
Configuration service for loading and validating settings from the environment.
"""
import os
import logging
from typing import Optional, Mapping, Any
from urllib.parse import urlparse

from ..models.config import Config, ConfigValidationError, ConfigValidationResult


# Environment variable -> (Config field, type)
ENV_MAPPING = {
    "P12_BASE64": ("p12_base64", str),
    "P12_PASSWORD": ("p12_password", str),
    "INTER_CLIENT_ID": ("client_id", str),
    "INTER_CLIENT_SECRET": ("client_secret", str),
    "SCOPE": ("scope", str),
    "INTER_TOKEN_URL": ("token_url", str),
    "REQUEST_TIMEOUT_SECONDS": ("request_timeout_seconds", int),
    "TOKEN_CACHE_ENABLED": ("token_cache_enabled", bool),
    "TOKEN_CACHE_SKEW_SECONDS": ("token_cache_skew_seconds", int),
    "PORT": ("port", int),
    "STRICT_PAYLOAD_VALIDATION": ("strict_payload_validation", bool),
    "LOG_LEVEL": ("log_level", str),
    "LOG_FILE_PATH": ("log_file_path", str),
}


class ConfigService:
    """Service for loading and validating application configuration."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.logger = logging.getLogger(__name__)
        self._environ = environ
        self._config = None

    def get_config(self) -> Config:
        """
        Get the loaded configuration.

        Raises:
            ValueError: If no configuration has been loaded
        """
        if self._config is None:
            raise ValueError("No configuration loaded. Call load_from_env() first.")
        return self._config

    def load_from_env(self, environ: Optional[Mapping[str, str]] = None) -> Config:
        """
        Load configuration from environment variables.

        Missing credentials are reported as warnings only, so the process can
        still start and answer liveness checks.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            Config object with loaded settings

        Raises:
            ValueError: If a value cannot be converted to its field type
        """
        if environ is None:
            environ = self._environ if self._environ is not None else os.environ

        config = self._create_config_from_env(environ)

        validation_result = self.validate_config(config)
        if validation_result.has_errors() or validation_result.has_warnings():
            self.logger.warning(f"Configuration issues:\n{validation_result.get_error_summary()}")

        self._config = config
        return config

    def _create_config_from_env(self, environ: Mapping[str, str]) -> Config:
        config_kwargs = {}

        for env_key, (field_name, field_type) in ENV_MAPPING.items():
            raw_value = environ.get(env_key)
            if raw_value is None or raw_value.strip() == "":
                continue
            try:
                if field_type == bool:
                    value = self._parse_bool(raw_value)
                elif field_type == int:
                    value = int(raw_value.strip())
                elif field_name == "log_level":
                    value = raw_value.strip().upper()
                else:
                    value = raw_value
                config_kwargs[field_name] = value
            except (ValueError, TypeError) as e:
                # never echo the raw value, it may be a secret
                raise ValueError(f"Invalid value for {env_key} ({type(e).__name__})") from None

        return Config(**config_kwargs)

    def _parse_bool(self, value: Any) -> bool:
        """Parse boolean value from string."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1", "on", "enabled")
        return bool(value)

    def validate_config(self, config: Config) -> ConfigValidationResult:
        """
        Validate configuration settings.

        Args:
            config: Configuration object to validate

        Returns:
            ConfigValidationResult with validation results
        """
        errors = []
        warnings = []

        if not config.p12_base64:
            warnings.append(ConfigValidationError(
                "P12_BASE64",
                "P12 bundle is not set; mTLS token acquisition is unavailable",
                "warning"
            ))

        if not config.p12_password:
            warnings.append(ConfigValidationError(
                "P12_PASSWORD",
                "P12 password is not set; mTLS token acquisition is unavailable",
                "warning"
            ))

        for env_key, value in [
            ("INTER_CLIENT_ID", config.client_id),
            ("INTER_CLIENT_SECRET", config.client_secret),
            ("SCOPE", config.scope),
            ("INTER_TOKEN_URL", config.token_url),
        ]:
            if not value:
                warnings.append(ConfigValidationError(
                    env_key,
                    "OAuth setting is not set; token requests will be refused",
                    "warning"
                ))

        if config.token_url:
            parsed = urlparse(config.token_url)
            if not parsed.scheme or not parsed.netloc:
                errors.append(ConfigValidationError(
                    "INTER_TOKEN_URL",
                    "Token URL must be an absolute URL"
                ))
            elif parsed.scheme != "https":
                errors.append(ConfigValidationError(
                    "INTER_TOKEN_URL",
                    "Token URL must use https for mTLS"
                ))

        if config.request_timeout_seconds > 60:
            warnings.append(ConfigValidationError(
                "REQUEST_TIMEOUT_SECONDS",
                "Timeout over 60 seconds may exceed the webhook caller's own timeout",
                "warning"
            ))

        if config.log_file_path:
            log_dir = os.path.dirname(config.log_file_path)
            if log_dir and not os.path.exists(log_dir):
                warnings.append(ConfigValidationError(
                    "LOG_FILE_PATH",
                    f"Log directory does not exist and will be created: {log_dir}",
                    "warning"
                ))

        return ConfigValidationResult(errors=errors, warnings=warnings)
