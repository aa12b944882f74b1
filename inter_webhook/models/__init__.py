"""
Models package for the webhook receiver.
"""

from .config import Config, ConfigValidationError, ConfigValidationResult
from .token import AccessToken, TokenCache

__all__ = [
    'Config',
    'ConfigValidationError',
    'ConfigValidationResult',
    'AccessToken',
    'TokenCache'
]
