"""
OAuth state storage for CSRF protection.

The pending state lives in a single short-lived cookie in the browser, so the
server keeps no session table. A new login overwrites the previous cookie.
"""

import logging
import secrets
from typing import Mapping, Optional

from starlette.responses import Response

from spotify_gateway.core.errors import CookieReadError

logger = logging.getLogger(__name__)

STATE_COOKIE_NAME = "oauthState"
STATE_COOKIE_PATH = "/"
STATE_TTL_SECONDS = 300  # 5 minutes


class StateCookieStore:
    """Issues, reads and clears the oauthState cookie."""

    def __init__(
        self,
        max_age: int = STATE_TTL_SECONDS,
        secure: Optional[bool] = None,
        name: str = STATE_COOKIE_NAME,
    ):
        """
        Args:
            max_age: Cookie lifetime in seconds
            secure: Force the Secure flag; None means "only over HTTPS"
            name: Cookie name
        """
        self.max_age = max_age
        self.secure = secure
        self.name = name

    def issue(self, response: Response, state: str, https: bool = False) -> None:
        """
        Attach a Set-Cookie header carrying the state.

        Args:
            response: Response the cookie is set on
            state: State token to store
            https: Whether the request arrived over TLS
        """
        secure = self.secure if self.secure is not None else https
        response.set_cookie(
            key=self.name,
            value=state,
            max_age=self.max_age,
            path=STATE_COOKIE_PATH,
            secure=secure,
            httponly=True,
            samesite="lax",
        )
        logger.debug(f"Issued {self.name} cookie (max_age={self.max_age}s, secure={secure})")

    def read(self, cookies: Mapping[str, str]) -> Optional[str]:
        """
        Read the pending state.

        Args:
            cookies: Request cookies

        Returns:
            The stored state, or None if no cookie was sent

        Raises:
            CookieReadError: If the cookie is present but empty
        """
        if self.name not in cookies:
            logger.info(f"No {self.name} cookie in request (first visit or expired)")
            return None

        value = cookies[self.name]
        if not value:
            raise CookieReadError(f"{self.name} cookie is empty")
        return value

    def clear(self, response: Response) -> None:
        """Expire the cookie in the browser."""
        response.delete_cookie(key=self.name, path=STATE_COOKIE_PATH, httponly=True, samesite="lax")


def states_match(expected: str, received: Optional[str]) -> bool:
    """Exact, case-sensitive comparison in constant time."""
    if received is None:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))
