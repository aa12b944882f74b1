"""
Webhook processing: runs the certificate-to-token pipeline for one notification.
"""
import logging
from contextlib import nullcontext
from typing import Any, Dict, Optional

from ..models.token import AccessToken
from ..security.security_service import SecurityService
from .token_service import TokenService


class WebhookService:
    """Processes order-management notifications that require a Banco Inter token."""

    def __init__(self, config, security_service: SecurityService,
                 token_service: TokenService, logging_service=None):
        self.config = config
        self.security_service = security_service
        self.token_service = token_service
        self.logging_service = logging_service
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def is_empty_payload(payload: Any) -> bool:
        """True for absent payloads and empty objects/lists/strings."""
        if payload is None:
            return True
        if isinstance(payload, (dict, list, str, bytes)):
            return len(payload) == 0
        return False

    @staticmethod
    def describe_payload(payload: Any) -> Dict[str, Optional[str]]:
        """Event type and return id of a notification, when present."""
        if not isinstance(payload, dict):
            return {'event': None, 'returnId': None}
        event = payload.get('evento')
        return_id = payload.get('idRetorno')
        return {
            'event': str(event) if event is not None else None,
            'returnId': str(return_id) if return_id is not None else None,
        }

    def process_notification(self, payload: Any) -> AccessToken:
        """
        Run decode -> identity -> token for a notification.

        Returns:
            The access token obtained for downstream calls

        Raises:
            WebhookError subclasses from the security and token layers
        """
        summary = self.describe_payload(payload)
        self.logger.info(f"Notification received. Event: {summary['event']} | ID: {summary['returnId']}")

        transport = self.security_service.get_transport()

        with self._measure('acquire_token'):
            token = self.token_service.acquire_token(
                transport,
                self.config.token_url,
                self.config.client_id,
                self.config.client_secret,
                self.config.scope
            )

        # boleto issuance would use token.access_token here
        return token

    def _measure(self, operation: str):
        if self.logging_service is None:
            return nullcontext()
        return self.logging_service.measure_performance(operation)
