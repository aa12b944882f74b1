"""
Error taxonomy for the certificate-to-token pipeline.
"""
from typing import Any, Optional


class WebhookError(Exception):
    """Base class for every failure raised by the mTLS/token pipeline."""


class ConfigurationError(WebhookError):
    """A required setting is missing or invalid."""


class CertificateParseError(WebhookError):
    """The PKCS#12 bundle could not be decoded into a key/certificate pair."""


class IdentityConstructionError(WebhookError):
    """A decoded key/certificate pair was rejected while building the TLS identity."""


class TransportError(WebhookError):
    """The token endpoint could not be reached (TLS, DNS, connection or timeout)."""


class AuthenticationError(WebhookError):
    """The token endpoint answered with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class ProtocolError(WebhookError):
    """The token endpoint answered 2xx with a body we cannot use."""
