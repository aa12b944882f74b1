"""
Security service owning the lifecycle of the shared mTLS transport.
"""
import logging
import threading
from contextlib import nullcontext
from typing import Optional

from .bundle_decoder import decode_bundle
from .errors import ConfigurationError, WebhookError
from .identity import MTLSTransport, build_identity
from .models import CertificateInfo


class SecurityService:
    """
    Builds the mTLS transport once and hands the same instance to every request.

    The transport is rebuilt only on demand (rebuild_identity), e.g. after the
    P12 credential has been rotated.
    """

    def __init__(self, config, logging_service=None):
        """Initialize the security service with configuration."""
        self.config = config
        self.logging_service = logging_service
        self.logger = logging.getLogger(__name__)
        self._transport: Optional[MTLSTransport] = None
        self._lock = threading.Lock()
        self.last_error: Optional[str] = None

    def initialize(self) -> bool:
        """
        Build the identity at startup.

        Failures are logged and swallowed so the process can still serve
        liveness checks; requests will retry the build lazily.
        """
        if not self.config.has_p12_credentials:
            self.last_error = "P12_BASE64 or P12_PASSWORD is not configured"
            self.logger.error(
                "mTLS credentials missing: P12_BASE64 or P12_PASSWORD is not set. "
                "Token acquisition is unavailable until they are configured."
            )
            return False

        try:
            self.rebuild_identity()
            return True
        except WebhookError as e:
            self.logger.error(f"Failed to initialize mTLS identity: {e}")
            return False

    def get_transport(self) -> MTLSTransport:
        """
        Return the shared transport, building it on first use.

        Raises:
            ConfigurationError: If the P12 credentials are not configured
            CertificateParseError: If the bundle cannot be decoded
            IdentityConstructionError: If the TLS identity cannot be built
        """
        transport = self._transport
        if transport is not None:
            return transport

        with self._lock:
            if self._transport is None:
                self._transport = self._build_transport()
            return self._transport

    def rebuild_identity(self) -> MTLSTransport:
        """Decode the configured bundle again and swap in a new transport."""
        transport = self._build_transport()
        with self._lock:
            previous, self._transport = self._transport, transport
        if previous is not None:
            # only drops pooled connections; in-flight requests reopen on demand
            previous.close()
        self.logger.info("mTLS identity (re)built")
        return transport

    def _build_transport(self) -> MTLSTransport:
        if not self.config.has_p12_credentials:
            self.last_error = "P12_BASE64 or P12_PASSWORD is not configured"
            raise ConfigurationError("mTLS certificate not loaded: P12_BASE64 or P12_PASSWORD is not configured")

        try:
            with self._measure('decode_bundle'):
                bundle = decode_bundle(self.config.p12_base64, self.config.p12_password)
            with self._measure('build_identity'):
                transport = build_identity(bundle, timeout=self.config.request_timeout_seconds)
        except WebhookError as e:
            self.last_error = str(e)
            raise

        # key material is only referenced by the SSL context from here on
        del bundle
        self.last_error = None
        return transport

    def _measure(self, operation: str):
        if self.logging_service is None:
            return nullcontext()
        return self.logging_service.measure_performance(operation)

    def is_identity_loaded(self) -> bool:
        return self._transport is not None

    def get_certificate_info(self) -> Optional[CertificateInfo]:
        """Information about the loaded client certificate, if any."""
        transport = self._transport
        if transport is None:
            return None
        return transport.describe()

    def close(self):
        with self._lock:
            if self._transport is not None:
                self._transport.close()
                self._transport = None
