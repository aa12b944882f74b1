"""
Main application entry point for the webhook receiver.
Handles configuration loading, service wiring, identity rotation and shutdown.
"""

import sys
import signal
import logging
from typing import Optional, Mapping
from datetime import datetime

from .services.config_service import ConfigService
from .services.logging_service import LoggingService
from .security.security_service import SecurityService
from .security.errors import WebhookError
from .app import WebhookFlaskApp


class WebhookApplication:
    """Main application class for the webhook receiver."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the application.

        Args:
            environ: Environment mapping to read instead of os.environ
        """
        self.environ = environ
        self.logger = logging.getLogger(__name__)
        self.config_service = None
        self.config = None
        self.validation_result = None
        self.logging_service = None
        self.security_service = None
        self.flask_app = None
        self._is_running = False
        self._started_at = None

    def initialize(self) -> bool:
        """
        Initialize all application components.

        A missing or broken P12 credential does not fail initialization: the
        liveness route must keep answering.

        Returns:
            True if initialization successful, False otherwise
        """
        try:
            self.config_service = ConfigService()
            self.config = self.config_service.load_from_env(self.environ)
        except ValueError as e:
            logging.basicConfig(level=logging.INFO)
            self.logger.error(f"Failed to load configuration: {e}")
            return False

        self.logging_service = LoggingService(self.config)
        self.logger.info("Starting webhook receiver initialization...")
        self.validation_result = self.config_service.validate_config(self.config)

        self.security_service = SecurityService(self.config, self.logging_service)
        if self.security_service.initialize():
            info = self.security_service.get_certificate_info()
            self.logger.info(f"Client certificate {info.subject} valid until {info.not_after.isoformat()}")
            if not info.is_valid:
                self.logger.warning("Client certificate is outside its validity period")

        try:
            self.flask_app = WebhookFlaskApp(
                self.config_service,
                logging_service=self.logging_service,
                security_service=self.security_service
            )
        except Exception as e:
            self.logger.error(f"Failed to initialize Flask application: {e}")
            return False

        self._is_running = True
        self._started_at = datetime.now()
        self.logger.info("Webhook receiver initialized successfully")
        return True

    def _setup_signal_handlers(self):
        """SIGTERM stops the server, SIGHUP reloads the mTLS identity."""
        def terminate_handler(signum, frame):
            self.logger.info(f"Received {signal.Signals(signum).name} signal, initiating graceful shutdown...")
            raise SystemExit(0)

        signal.signal(signal.SIGTERM, terminate_handler)

        if hasattr(signal, 'SIGHUP'):
            def reload_handler(signum, frame):
                self.logger.info("Received SIGHUP signal, rebuilding mTLS identity...")
                self.reload_identity()

            signal.signal(signal.SIGHUP, reload_handler)

    def reload_identity(self) -> bool:
        """Rebuild the mTLS transport, keeping the previous one on failure."""
        try:
            self.security_service.rebuild_identity()
            return True
        except WebhookError as e:
            self.logger.error(f"Failed to rebuild mTLS identity: {e}")
            return False

    def run(self, host: str = '0.0.0.0', port: Optional[int] = None, debug: bool = False):
        """
        Run the application.

        Args:
            host: Host to bind to
            port: Port to bind to (uses PORT if not specified)
            debug: Enable debug mode
        """
        if not self.is_running():
            self.logger.error("Application not initialized. Call initialize() first.")
            return

        self._setup_signal_handlers()
        try:
            self.flask_app.run(host=host, port=port, debug=debug)
        except KeyboardInterrupt:
            self.logger.info("Received keyboard interrupt")
        finally:
            self.shutdown()

    def shutdown(self):
        """Release the shared transport."""
        if not self.is_running():
            return

        self.logger.info("Initiating graceful shutdown...")
        self._is_running = False
        if self.security_service:
            self.security_service.close()
        self.logger.info("Graceful shutdown completed")

    def is_running(self) -> bool:
        """Check if the application is running."""
        return self._is_running

    def get_status(self) -> dict:
        """Get application status information, without secret values."""
        status = {
            'running': self._is_running,
            'port': self.config.port if self.config else None,
            'mtls_configured': self.config.has_p12_credentials if self.config else False,
            'mtls_identity_loaded': self.security_service.is_identity_loaded() if self.security_service else False,
            'mtls_error': self.security_service.last_error if self.security_service else None,
            'oauth_configured': self.config.has_oauth_credentials if self.config else False,
            'token_url': self.config.token_url if self.config else None,
            'token_cache_enabled': self.config.token_cache_enabled if self.config else False,
            'started_at': self._started_at.isoformat() if self._started_at else None
        }

        if self.security_service:
            info = self.security_service.get_certificate_info()
            status['client_certificate'] = info.to_dict() if info else None

        return status


def main(argv=None):
    """Main entry point for the application."""
    import argparse

    parser = argparse.ArgumentParser(description='Bling/Inter mTLS webhook receiver')
    parser.add_argument('--host', default='0.0.0.0', help='Host to bind to (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, help='Port to bind to (uses PORT if not specified)')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    parser.add_argument('--check-config', action='store_true',
                        help='Check configuration and the mTLS identity, then exit')

    args = parser.parse_args(argv)

    app = WebhookApplication()

    if not app.initialize():
        print("Failed to initialize application")
        sys.exit(1)

    if args.check_config:
        status = app.get_status()
        print(app.validation_result.get_error_summary())
        print(f"mTLS configured: {status['mtls_configured']}")
        print(f"mTLS identity loaded: {status['mtls_identity_loaded']}")
        if status['mtls_error']:
            print(f"mTLS error: {status['mtls_error']}")
        print(f"OAuth configured: {status['oauth_configured']}")
        ok = not app.validation_result.has_errors() and status['mtls_identity_loaded']
        sys.exit(0 if ok else 1)

    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == '__main__':
    main()
