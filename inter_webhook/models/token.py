"""
Access token model and an optional in-memory token cache.
"""
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class AccessToken:
    """Result of one client-credentials grant."""
    access_token: str = field(repr=False)
    token_type: str
    expires_in: int
    obtained_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def expires_at(self) -> datetime:
        return self.obtained_at + timedelta(seconds=self.expires_in)

    def is_expired(self, skew_seconds: int = 0, now: Optional[datetime] = None) -> bool:
        """True once the token is within skew_seconds of its expiry."""
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at - timedelta(seconds=skew_seconds)

    def to_public_dict(self) -> dict:
        """Token metadata safe to return to callers (no bearer value)."""
        return {
            'tokenType': self.token_type,
            'expiresIn': self.expires_in,
        }


CacheKey = Tuple[str, str, str]


class TokenCache:
    """Thread-safe token cache keyed by (token_url, client_id, scope)."""

    def __init__(self, skew_seconds: int = 30):
        self.skew_seconds = skew_seconds
        self._tokens: Dict[CacheKey, AccessToken] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key_for(token_url: str, client_id: str, scope: str) -> CacheKey:
        return (token_url, client_id, scope)

    def get(self, key: CacheKey) -> Optional[AccessToken]:
        with self._lock:
            token = self._tokens.get(key)
            if token is None:
                return None
            if token.is_expired(self.skew_seconds):
                del self._tokens[key]
                return None
            return token

    def put(self, key: CacheKey, token: AccessToken):
        with self._lock:
            self._tokens[key] = token

    def invalidate(self, key: Optional[CacheKey] = None):
        """Drop one cached token, or every token when key is None."""
        with self._lock:
            if key is None:
                self._tokens.clear()
            else:
                self._tokens.pop(key, None)

    def __len__(self):
        with self._lock:
            return len(self._tokens)
