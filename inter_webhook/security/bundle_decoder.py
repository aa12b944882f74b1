"""
Decoder turning a base64 PKCS#12 bundle into a PEM key/certificate pair.
"""
import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from .errors import CertificateParseError, ConfigurationError
from .models import CredentialBundle, CertificateInfo


logger = logging.getLogger(__name__)


def decode_bundle(base64_bundle: Optional[str], password: Optional[str]) -> CredentialBundle:
    """
    Decode a base64 PKCS#12 container into a CredentialBundle.

    Args:
        base64_bundle: Base64 text of the PKCS#12 container (whitespace is ignored)
        password: Passphrase protecting the container

    Returns:
        CredentialBundle with the first private key and first certificate as PEM

    Raises:
        ConfigurationError: If either input is missing or empty
        CertificateParseError: If the data is not valid base64, the password is
            wrong, or the container has no usable key/certificate pair
    """
    if not base64_bundle or not base64_bundle.strip():
        raise ConfigurationError("P12_BASE64 is not configured")
    if not password:
        raise ConfigurationError("P12_PASSWORD is not configured")

    try:
        container = base64.b64decode("".join(base64_bundle.split()), validate=True)
    except (binascii.Error, ValueError):
        raise CertificateParseError("P12 bundle is not valid base64") from None

    if not container:
        raise CertificateParseError("P12 bundle is empty after base64 decoding")

    logger.debug(f"Decoded P12 container ({len(container)} bytes)")

    try:
        private_key, certificate, additional = pkcs12.load_key_and_certificates(
            container, password.encode('utf-8')
        )
    except (ValueError, TypeError):
        # cryptography reports wrong passwords and corrupt containers alike
        raise CertificateParseError(
            "Could not open P12 bundle: invalid container or wrong password"
        ) from None

    additional = list(additional or [])
    if certificate is None and additional:
        certificate = additional.pop(0)

    if private_key is None:
        raise CertificateParseError("P12 bundle does not contain a private key")
    if certificate is None:
        raise CertificateParseError("P12 bundle does not contain a certificate")

    bundle = CredentialBundle(
        private_key_pem=private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        ),
        certificate_pem=certificate.public_bytes(serialization.Encoding.PEM),
        chain_pem=tuple(c.public_bytes(serialization.Encoding.PEM) for c in additional)
    )

    logger.info(
        f"Loaded client certificate {certificate.subject.rfc4514_string()} "
        f"with {len(bundle.chain_pem)} chain certificate(s)"
    )
    return bundle


def get_certificate_info(cert_pem: bytes) -> CertificateInfo:
    """Extract descriptive information from a PEM certificate."""
    cert = x509.load_pem_x509_certificate(cert_pem)
    now = datetime.now(timezone.utc)

    not_before = cert.not_valid_before_utc
    not_after = cert.not_valid_after_utc

    return CertificateInfo(
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        serial_number=str(cert.serial_number),
        not_before=not_before,
        not_after=not_after,
        is_valid=not_before <= now <= not_after,
        fingerprint=cert.fingerprint(hashes.SHA256()).hex()
    )
