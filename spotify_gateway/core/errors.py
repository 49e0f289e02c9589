"""
Error taxonomy for the Spotify gateway.

Fatal errors (startup only): ConfigError, RandomnessFailure.
Recoverable errors (rendered as 400 with the message): CookieReadError,
ExchangeError, APIRequestError, DecodeError.
"""

from typing import Optional


class GatewayError(Exception):
    """Base class for all gateway errors."""


class ConfigError(GatewayError):
    """Configuration could not be loaded or is incomplete."""


class RandomnessFailure(GatewayError):
    """The OS randomness source is unavailable."""


class CookieReadError(GatewayError):
    """The state cookie is present but cannot be used."""


class ExchangeError(GatewayError):
    """Authorization code could not be exchanged for an access token."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class APIRequestError(GatewayError):
    """Spotify Web API answered with a non-2xx status or was unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        if self.status_code is None:
            return self.args[0]
        return f"HTTP {self.status_code}: {self.args[0]}"


class DecodeError(GatewayError):
    """Provider response body is not the JSON we expect."""
