"""
Services package for the webhook receiver.
"""

from .config_service import ConfigService
from .token_service import TokenService
from .webhook_service import WebhookService

__all__ = [
    'ConfigService',
    'TokenService',
    'WebhookService'
]
