"""
Spotify OAuth service for authorization code flow.
Builds the consent URL and exchanges authorization codes for tokens.
"""

import logging
import secrets
import time
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict, Field

from spotify_gateway.core.errors import ExchangeError, RandomnessFailure
from spotify_gateway.infra.metrics import observe_provider_request
from spotify_gateway.settings import ProviderCredentials

logger = logging.getLogger(__name__)

STATE_BYTES = 32


def generate_state() -> str:
    """
    Generate a secure random state token (32 bytes, URL-safe base64).

    Raises:
        RandomnessFailure: If the OS randomness source is unavailable
    """
    try:
        return secrets.token_urlsafe(STATE_BYTES)
    except (NotImplementedError, OSError) as e:
        logger.critical(f"Secure randomness source unavailable: {e}")
        raise RandomnessFailure(f"secure randomness source unavailable: {e}") from e


class AccessToken(BaseModel):
    """Token obtained from a successful exchange. Never persisted."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "Bearer"
    expiry: Optional[float] = Field(default=None, description="Unix time the token expires")
    refresh_token: Optional[str] = None
    scope: Optional[str] = None

    @classmethod
    def from_token_response(cls, data: Dict[str, Any], now: Optional[float] = None) -> "AccessToken":
        expires_in = data.get("expires_in")
        expiry = None
        if expires_in is not None:
            expiry = (now if now is not None else time.time()) + int(expires_in)
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type") or "Bearer",
            expiry=expiry,
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
        )

    def authorization_header(self) -> str:
        return f"Bearer {self.access_token}"

    def __repr__(self) -> str:
        return f"AccessToken(token_type={self.token_type!r}, expiry={self.expiry!r}, scope={self.scope!r})"


def _provider_error_message(response: httpx.Response) -> str:
    """Pull 'error' / 'error_description' out of an OAuth error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(data, dict):
        error = data.get("error")
        description = data.get("error_description")
        if error and description:
            return f"{error}: {description}"
        if error:
            return str(error)
    return response.text[:200]


class SpotifyOAuthClient:
    """OAuth2 authorization code client bound to one set of credentials."""

    def __init__(
        self,
        credentials: ProviderCredentials,
        auth_url: str,
        token_url: str,
        scopes: str = "",
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            credentials: Client ID, secret and redirect URL
            auth_url: Spotify consent page
            token_url: Spotify token endpoint
            scopes: Space-separated scopes requested on the consent page
            timeout_seconds: Read/write timeout for the token request
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.credentials = credentials
        self.auth_url = auth_url
        self.token_url = token_url
        self.scopes = " ".join(scopes.split())
        self.timeout = httpx.Timeout(connect=5.0, read=timeout_seconds, write=timeout_seconds, pool=None)
        self._transport = transport

    def build_auth_url(self, state: str) -> str:
        """
        Build the consent page URL. Same state, same URL.

        Args:
            state: State token the provider must echo back

        Returns:
            Authorization URL
        """
        params = [
            ("client_id", self.credentials.client_id),
            ("response_type", "code"),
            ("redirect_uri", self.credentials.redirect_url),
        ]
        if self.scopes:
            params.append(("scope", self.scopes))
        params.append(("state", state))
        return f"{self.auth_url}?{urlencode(params)}"

    async def exchange(self, code: str) -> AccessToken:
        """
        Exchange authorization code for an access token.

        Args:
            code: Authorization code from callback

        Returns:
            AccessToken

        Raises:
            ExchangeError: On network failure, non-2xx status or malformed payload
        """
        if not code:
            raise ExchangeError("authorization code missing from callback")

        data = {
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': self.credentials.redirect_url,
        }
        auth = httpx.BasicAuth(self.credentials.client_id, self.credentials.client_secret)

        try:
            with observe_provider_request("exchange"):
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.post(
                        self.token_url,
                        data=data,  # httpx will encode as form-urlencoded
                        auth=auth,
                        headers={'Accept': 'application/json'},
                    )
        except httpx.HTTPError as e:
            logger.error(f"Token exchange failed: {type(e).__name__}")
            raise ExchangeError(f"token request failed: {type(e).__name__}: {e}") from e

        if response.is_error:
            message = _provider_error_message(response)
            # Log error without secrets
            logger.error(
                f"Token exchange failed: HTTP {response.status_code}",
                extra={'status_code': response.status_code, 'error_detail': message},
            )
            raise ExchangeError(
                f"token exchange failed (HTTP {response.status_code}): {message}",
                status_code=response.status_code,
            )

        try:
            token_data = response.json()
        except ValueError as e:
            raise ExchangeError("token response is not valid JSON") from e

        if not isinstance(token_data, dict) or not token_data.get('access_token'):
            raise ExchangeError("token response missing access_token")

        try:
            token = AccessToken.from_token_response(token_data)
        except (TypeError, ValueError) as e:
            raise ExchangeError(f"token response is malformed: {e}") from e

        # Log success (without secrets)
        logger.info(
            "Successfully exchanged authorization code for tokens",
            extra={
                'has_refresh_token': token.refresh_token is not None,
                'expires_in': token_data.get('expires_in'),
            }
        )
        return token
