"""
Security models for the mTLS client identity.
"""
from dataclasses import dataclass, field
from typing import Tuple
from datetime import datetime


@dataclass(frozen=True)
class CredentialBundle:
    """Private key and certificates extracted from a PKCS#12 container, as PEM."""
    private_key_pem: bytes = field(repr=False)
    certificate_pem: bytes
    chain_pem: Tuple[bytes, ...] = ()

    def full_chain_pem(self) -> bytes:
        """Leaf certificate followed by any additional certificates."""
        return self.certificate_pem + b"".join(self.chain_pem)


@dataclass
class CertificateInfo:
    """Information about a certificate."""
    subject: str
    issuer: str
    serial_number: str
    not_before: datetime
    not_after: datetime
    is_valid: bool
    fingerprint: str

    def to_dict(self) -> dict:
        return {
            'subject': self.subject,
            'issuer': self.issuer,
            'serial_number': self.serial_number,
            'not_before': self.not_before.isoformat(),
            'not_after': self.not_after.isoformat(),
            'is_valid': self.is_valid,
            'fingerprint': self.fingerprint,
        }
