"""
mTLS identity provider: binds a CredentialBundle to a reusable HTTPS transport.
"""
import os
import ssl
import logging
import secrets
import tempfile
from http.cookiejar import DefaultCookiePolicy
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from .bundle_decoder import get_certificate_info
from .errors import ConfigurationError, IdentityConstructionError
from .models import CredentialBundle, CertificateInfo


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10


class MTLSAdapter(HTTPAdapter):
    """HTTPS adapter that hands a prepared SSLContext to every connection pool."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs):
        # HTTPAdapter.__init__ builds the pool manager, so the context must exist first
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        pool_kwargs['ssl_context'] = self.ssl_context
        return super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        proxy_kwargs['ssl_context'] = self.ssl_context
        return super().proxy_manager_for(proxy, **proxy_kwargs)


class MTLSTransport:
    """
    HTTPS client presenting a fixed client certificate.

    Holds no per-request state once built, so a single instance can serve
    concurrent requests.
    """

    def __init__(self, ssl_context: ssl.SSLContext, certificate_pem: bytes,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.ssl_context = ssl_context
        self.timeout = timeout
        self._certificate_pem = certificate_pem
        self.session = requests.Session()
        self.session.mount('https://', MTLSAdapter(ssl_context))
        # shared by concurrent requests, so upstream cookies are never stored
        self.session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))

    def post(self, url: str, **kwargs) -> requests.Response:
        """POST over the mTLS session with the default timeout and without following redirects."""
        if not url or not url.lower().startswith('https://'):
            raise ConfigurationError("Token URL must use https for mTLS")
        kwargs.setdefault('timeout', self.timeout)
        # 3xx answers go back to the caller; credentials are never resent elsewhere
        kwargs.setdefault('allow_redirects', False)
        return self.session.post(url, **kwargs)

    def describe(self) -> CertificateInfo:
        """Information about the client certificate presented by this transport."""
        return get_certificate_info(self._certificate_pem)

    def close(self):
        self.session.close()


def create_client_context() -> ssl.SSLContext:
    """TLS 1.2 client context validating servers against the system trust store."""
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.maximum_version = ssl.TLSVersion.TLSv1_2
    return context


def build_identity(bundle: CredentialBundle,
                   timeout: float = DEFAULT_TIMEOUT_SECONDS,
                   context: Optional[ssl.SSLContext] = None) -> MTLSTransport:
    """
    Build an MTLSTransport presenting the bundle's certificate and key.

    Args:
        bundle: Decoded key/certificate pair
        timeout: Default timeout for outbound requests, in seconds
        context: Client context to load the identity into (a fresh TLS 1.2
            context when omitted)

    Raises:
        IdentityConstructionError: If the key and certificate do not match or
            the key/certificate format is rejected
    """
    try:
        private_key = serialization.load_pem_private_key(bundle.private_key_pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm):
        raise IdentityConstructionError("Private key could not be loaded") from None

    try:
        certificate = x509.load_pem_x509_certificate(bundle.certificate_pem)
    except ValueError:
        raise IdentityConstructionError("Client certificate could not be loaded") from None

    if not _public_keys_match(private_key, certificate):
        raise IdentityConstructionError("Private key does not match the client certificate")

    if context is None:
        context = create_client_context()

    # ssl only loads identities from files; the key is written encrypted with a throwaway passphrase
    passphrase = secrets.token_hex(32).encode('ascii')
    try:
        encrypted_key = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(passphrase)
        )
    except (ValueError, TypeError):
        raise IdentityConstructionError("Private key type cannot be used for TLS") from None

    with tempfile.TemporaryDirectory(prefix='inter-mtls-') as workdir:
        cert_path = os.path.join(workdir, 'client.crt')
        key_path = os.path.join(workdir, 'client.key')
        _write_private_file(cert_path, bundle.full_chain_pem())
        _write_private_file(key_path, encrypted_key)
        try:
            context.load_cert_chain(certfile=cert_path, keyfile=key_path, password=passphrase)
        except (ssl.SSLError, OSError, ValueError) as e:
            reason = getattr(e, 'reason', None) or type(e).__name__
            raise IdentityConstructionError(f"TLS stack rejected the client identity: {reason}") from None

    logger.info(f"mTLS identity ready for {certificate.subject.rfc4514_string()} (TLS 1.2)")
    return MTLSTransport(context, bundle.certificate_pem, timeout=timeout)


def _public_keys_match(private_key, certificate: x509.Certificate) -> bool:
    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    try:
        key_public = private_key.public_key().public_bytes(serialization.Encoding.DER, spki)
        cert_public = certificate.public_key().public_bytes(serialization.Encoding.DER, spki)
    except (ValueError, TypeError, UnsupportedAlgorithm):
        return False
    return key_public == cert_public


def _write_private_file(path: str, data: bytes):
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, 'wb') as f:
        f.write(data)
