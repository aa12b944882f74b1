"""
Flask application receiving order-management webhooks.
"""
from flask import Flask, request, jsonify, Response
import logging
from typing import Optional, Mapping
from datetime import datetime

from .models.token import TokenCache
from .security import SecurityService
from .security.errors import (
    AuthenticationError, CertificateParseError, ConfigurationError,
    IdentityConstructionError
)
from .services.config_service import ConfigService
from .services.logging_service import LoggingService
from .services.token_service import TokenService
from .services.webhook_service import WebhookService


LIVENESS_MESSAGE = "Bling/Inter webhook is active and ready to receive POST notifications."

SETUP_ERRORS = (ConfigurationError, CertificateParseError, IdentityConstructionError)


class WebhookFlaskApp:
    """Flask application exposing the webhook and liveness routes."""

    def __init__(self, config_service: ConfigService,
                 logging_service: Optional[LoggingService] = None,
                 security_service: Optional[SecurityService] = None,
                 token_service: Optional[TokenService] = None):
        """Initialize the webhook Flask application."""
        self.app = Flask(__name__)
        self.config_service = config_service
        self.config = config_service.get_config()
        self.logging_service = logging_service
        self.logger = logging.getLogger(__name__)

        self.security_service = security_service or SecurityService(self.config, logging_service)
        if token_service is None:
            cache = TokenCache(self.config.token_cache_skew_seconds) if self.config.token_cache_enabled else None
            token_service = TokenService(cache=cache)
        self.token_service = token_service
        self.webhook_service = WebhookService(
            self.config,
            self.security_service,
            self.token_service,
            self.logging_service
        )

        self._setup_routes()
        self._setup_error_handlers()
        self._setup_security_headers()

    def _setup_routes(self):
        """Set up webhook routes."""

        @self.app.route('/', methods=['GET'])
        def liveness():
            """Static liveness indicator."""
            self.logger.info("GET on root. Server is alive.")
            return Response(LIVENESS_MESSAGE, status=200, mimetype='text/plain')

        @self.app.route('/health', methods=['GET'])
        def health_check():
            """Health check with identity and logging status."""
            health_status = {
                'status': 'healthy',
                'service': 'inter-webhook',
                'mtls_configured': self.config.has_p12_credentials,
                'mtls_identity_loaded': self.security_service.is_identity_loaded(),
                'oauth_configured': self.config.has_oauth_credentials,
                'timestamp': datetime.now().isoformat()
            }

            if self.logging_service:
                health_status['logging'] = self.logging_service.get_health_status()
                health_status['performance'] = self.logging_service.get_performance_stats()

            return jsonify(health_status)

        @self.app.route('/', methods=['POST'])
        def receive_webhook():
            """Receive a notification and obtain a Banco Inter token for it."""
            self.logger.info("Webhook POST received. Processing...")
            payload = self._read_payload()

            if self.webhook_service.is_empty_payload(payload):
                self.logger.warning("POST body is empty. Is the sender configured to send data?")
                if self.config.strict_payload_validation:
                    return jsonify({
                        'error': 'Empty payload',
                        'message': 'The notification body is empty'
                    }), 400
                return jsonify({
                    'status': 'ok',
                    'message': 'POST received, but the body was empty. Check the sender configuration.'
                }), 200

            try:
                token = self.webhook_service.process_notification(payload)

            except SETUP_ERRORS as e:
                self.logger.error(f"mTLS/authentication setup failure ({type(e).__name__}): {e}")
                return jsonify({
                    'error': 'Authentication setup failed',
                    'details': str(e)
                }), 403

            except AuthenticationError as e:
                self.logger.error(f"Banco Inter rejected the token request: {e}")
                return jsonify({
                    'error': 'Authentication with Banco Inter failed',
                    'details': e.details
                }), 401

            except Exception as e:
                if self.logging_service:
                    self.logging_service.track_error(e, {'route': 'POST /'})
                else:
                    self.logger.error(f"Unexpected error processing webhook: {type(e).__name__}: {e}")
                return jsonify({
                    'error': 'Internal server error',
                    'message': 'Failed to process the webhook'
                }), 500

            envelope = {
                'status': 'ok',
                'message': 'OAuth token obtained successfully.',
                'received': self.webhook_service.describe_payload(payload)
            }
            envelope.update(token.to_public_dict())
            return jsonify(envelope), 200

    def _read_payload(self):
        """JSON body, or the form fields of a URL-encoded body."""
        payload = request.get_json(silent=True)
        if payload is None and request.form:
            payload = request.form.to_dict()
        return payload

    def _setup_error_handlers(self):
        """Set up error handlers."""

        @self.app.errorhandler(404)
        def not_found(error):
            return jsonify({
                'error': 'Not found',
                'message': 'The requested endpoint does not exist'
            }), 404

        @self.app.errorhandler(405)
        def method_not_allowed(error):
            return jsonify({
                'error': 'Method not allowed',
                'message': 'The requested method is not allowed for this endpoint'
            }), 405

        @self.app.errorhandler(500)
        def internal_error(error):
            self.logger.error(f"Internal server error: {error}")
            return jsonify({
                'error': 'Internal server error',
                'message': 'An unexpected error occurred'
            }), 500

    def _setup_security_headers(self):
        """Set up security headers for all responses."""

        @self.app.after_request
        def add_security_headers(response):
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
            response.headers['X-Content-Type-Options'] = 'nosniff'
            response.headers['X-Frame-Options'] = 'DENY'
            response.headers['Cache-Control'] = 'no-store'
            response.headers.pop('Server', None)
            return response

    def run(self, host: str = '0.0.0.0', port: Optional[int] = None, debug: bool = False):
        """Run the Flask development server, one thread per request."""
        if port is None:
            port = self.config.port

        self.logger.info(f"Starting webhook server on http://{host}:{port}")
        self.app.run(host=host, port=port, debug=debug, threaded=True)

    def get_app(self) -> Flask:
        """Get the Flask application instance."""
        return self.app


def create_app(environ: Optional[Mapping[str, str]] = None) -> Flask:
    """
    WSGI factory: load configuration, build the identity and return the Flask app.

    Suitable for production WSGI servers, e.g. ``inter_webhook.app:create_app()``.
    """
    config_service = ConfigService()
    config = config_service.load_from_env(environ)
    logging_service = LoggingService(config)

    security_service = SecurityService(config, logging_service)
    security_service.initialize()

    return WebhookFlaskApp(
        config_service,
        logging_service=logging_service,
        security_service=security_service
    ).get_app()
