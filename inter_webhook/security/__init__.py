"""
Security package: PKCS#12 decoding and the mTLS client identity.
"""
from .errors import (
    WebhookError,
    ConfigurationError,
    CertificateParseError,
    IdentityConstructionError,
    TransportError,
    AuthenticationError,
    ProtocolError,
)
from .models import CredentialBundle, CertificateInfo
from .bundle_decoder import decode_bundle, get_certificate_info
from .identity import MTLSTransport, build_identity
from .security_service import SecurityService

__all__ = [
    'WebhookError',
    'ConfigurationError',
    'CertificateParseError',
    'IdentityConstructionError',
    'TransportError',
    'AuthenticationError',
    'ProtocolError',
    'CredentialBundle',
    'CertificateInfo',
    'decode_bundle',
    'get_certificate_info',
    'MTLSTransport',
    'build_identity',
    'SecurityService'
]
