"""
Configuration data models for the webhook receiver.
"""
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Config:
    """Process-wide settings, read once from the environment at startup."""

    # mTLS credential bundle
    p12_base64: Optional[str] = field(default=None, repr=False)
    p12_password: Optional[str] = field(default=None, repr=False)

    # OAuth2 client-credentials grant
    client_id: Optional[str] = None
    client_secret: Optional[str] = field(default=None, repr=False)
    scope: Optional[str] = None
    token_url: Optional[str] = None

    # Outbound behaviour
    request_timeout_seconds: int = 10
    token_cache_enabled: bool = False
    token_cache_skew_seconds: int = 30

    # HTTP server settings
    port: int = 8080
    strict_payload_validation: bool = False

    # Application settings
    log_level: str = "INFO"
    log_file_path: str = ""

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_types()

    def _validate_types(self):
        """Ensure all configuration values have correct types."""
        if not isinstance(self.port, int) or not (1 <= self.port <= 65535):
            raise ValueError("port must be an integer between 1 and 65535")

        if not isinstance(self.request_timeout_seconds, int) or self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be a positive integer")

        if not isinstance(self.token_cache_skew_seconds, int) or self.token_cache_skew_seconds < 0:
            raise ValueError("token_cache_skew_seconds must be a non-negative integer")

        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    @property
    def has_p12_credentials(self) -> bool:
        return bool(self.p12_base64 and self.p12_password)

    @property
    def has_oauth_credentials(self) -> bool:
        return all([self.client_id, self.client_secret, self.scope, self.token_url])

    def secret_values(self) -> list:
        """Configured secret values, for log redaction."""
        return [v for v in (self.p12_base64, self.p12_password, self.client_secret) if v]


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    severity: str = "error"  # error, warning

    def __str__(self):
        return f"{self.severity.upper()}: {self.field} - {self.message}"


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""
    errors: list[ConfigValidationError]
    warnings: list[ConfigValidationError]

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def has_errors(self) -> bool:
        """Check if there are any validation errors."""
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        """Check if there are any validation warnings."""
        return len(self.warnings) > 0

    def get_error_summary(self) -> str:
        """Get a formatted summary of all errors and warnings."""
        lines = []

        if self.errors:
            lines.append("Configuration Errors:")
            for error in self.errors:
                lines.append(f"  - {error}")

        if self.warnings:
            lines.append("Configuration Warnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines) if lines else "Configuration is valid"
