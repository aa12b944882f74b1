"""
OAuth2 client-credentials token acquisition over an mTLS transport.
"""
import base64
import logging
from typing import Any, Optional

import requests

from ..models.token import AccessToken, TokenCache
from ..security.errors import (
    AuthenticationError, ConfigurationError, ProtocolError, TransportError
)
from ..security.identity import MTLSTransport


MAX_ERROR_BODY_CHARS = 2000


class TokenService:
    """Executes the client-credentials grant against the token endpoint."""

    def __init__(self, cache: Optional[TokenCache] = None):
        """
        Initialize the token service.

        Args:
            cache: Optional token cache; when omitted every call hits the endpoint
        """
        self.cache = cache
        self.logger = logging.getLogger(__name__)

    def acquire_token(self, transport: MTLSTransport, token_url: str, client_id: str,
                      client_secret: str, scope: str) -> AccessToken:
        """
        Obtain an access token using the client-credentials grant.

        Args:
            transport: mTLS transport presenting the client certificate
            token_url: OAuth2 token endpoint
            client_id: OAuth2 client identifier
            client_secret: OAuth2 client secret
            scope: Space separated scopes to request

        Returns:
            AccessToken parsed from the endpoint's response

        Raises:
            ConfigurationError: If any argument is missing (no request is sent)
            TransportError: If the endpoint cannot be reached
            AuthenticationError: If the endpoint answers with a non-2xx status
            ProtocolError: If a 2xx answer has an unusable body
        """
        missing = [name for name, value in [
            ("transport", transport),
            ("INTER_TOKEN_URL", token_url),
            ("INTER_CLIENT_ID", client_id),
            ("INTER_CLIENT_SECRET", client_secret),
            ("SCOPE", scope),
        ] if not value]
        if missing:
            raise ConfigurationError(f"Missing OAuth configuration: {', '.join(missing)}")

        cache_key = TokenCache.key_for(token_url, client_id, scope)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                self.logger.debug("Using cached access token")
                return cached

        credentials = base64.b64encode(f"{client_id}:{client_secret}".encode('utf-8')).decode('ascii')
        headers = {
            'Content-Type': 'application/x-www-form-urlencoded',
            'Authorization': f'Basic {credentials}',
            'Accept': 'application/json',
        }
        body = {'grant_type': 'client_credentials', 'scope': scope}

        self.logger.info(f"Requesting access token from {token_url}")

        try:
            response = transport.post(token_url, headers=headers, data=body)
        except requests.exceptions.SSLError as e:
            raise TransportError(f"TLS handshake with token endpoint failed: {e}") from e
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Token endpoint timed out: {e}") from e
        except requests.exceptions.ConnectionError as e:
            raise TransportError(f"Could not connect to token endpoint: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Token request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            details = self._error_details(response)
            self.logger.error(f"Token endpoint rejected credentials (HTTP {response.status_code}): {details}")
            if self.cache is not None:
                self.cache.invalidate(cache_key)
            raise AuthenticationError(
                f"Token endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
                details=details
            )

        token = self._parse_token(response)

        if self.cache is not None:
            self.cache.put(cache_key, token)

        self.logger.info(f"Access token obtained ({token.token_type}, expires in {token.expires_in}s)")
        return token

    def _parse_token(self, response: requests.Response) -> AccessToken:
        try:
            data = response.json()
        except ValueError:
            raise ProtocolError("Token endpoint returned a body that is not JSON") from None

        if not isinstance(data, dict):
            raise ProtocolError("Token endpoint returned JSON that is not an object")

        access_token = data.get('access_token')
        if not isinstance(access_token, str) or not access_token:
            raise ProtocolError("Token response is missing access_token")

        token_type = data.get('token_type')
        if not isinstance(token_type, str) or not token_type:
            raise ProtocolError("Token response is missing token_type")

        expires_in = self._parse_expires_in(data.get('expires_in'))
        if expires_in is None:
            raise ProtocolError("Token response has a missing or invalid expires_in")

        return AccessToken(access_token=access_token, token_type=token_type, expires_in=expires_in)

    def _parse_expires_in(self, value: Any) -> Optional[int]:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value if value >= 0 else None
        if isinstance(value, float) and value.is_integer() and value >= 0:
            return int(value)
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return None

    def _error_details(self, response: requests.Response) -> Any:
        """Upstream error body for diagnostics: parsed JSON when possible."""
        try:
            return response.json()
        except ValueError:
            text = response.text or ''
            return text[:MAX_ERROR_BODY_CHARS]
