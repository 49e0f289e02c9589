"""
Minimal Spotify Web API client for the signed-in user.

Only GET requests: they are idempotent, but nothing here retries on its own.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from spotify_gateway.api.schemas.spotify import SavedTracksPage, SavedTracksQuery, UserProfile
from spotify_gateway.core.errors import APIRequestError, DecodeError
from spotify_gateway.infra.metrics import observe_provider_request
from spotify_gateway.services.spotify_oauth import AccessToken

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _api_error_message(response: httpx.Response) -> str:
    """
    Spotify wraps API errors as {"error": {"status": 401, "message": "..."}}.
    """
    try:
        data = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return response.text[:200] or response.reason_phrase


class SpotifyAPIClient:
    """Read-only calls against the Spotify Web API with a bearer token."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(connect=5.0, read=timeout_seconds, write=timeout_seconds, pool=None)
        self._transport = transport

    async def _get(
        self,
        operation: str,
        token: AccessToken,
        path: str,
        model: Type[ModelT],
        params: Optional[Dict[str, str]] = None,
    ) -> ModelT:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {
            "Authorization": token.authorization_header(),
            "Accept": "application/json",
        }

        try:
            with observe_provider_request(operation):
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.get(url, headers=headers, params=params or {})
        except httpx.HTTPError as e:
            logger.error(f"Spotify {operation} request failed: {type(e).__name__}")
            raise APIRequestError(f"{operation} request failed: {type(e).__name__}: {e}") from e

        if response.is_error:
            message = _api_error_message(response)
            logger.error(f"Spotify {operation} request failed: HTTP {response.status_code} ({message})")
            raise APIRequestError(message, status_code=response.status_code, body=response.text)

        try:
            data: Any = response.json()
        except ValueError as e:
            raise DecodeError(f"{operation} response is not valid JSON") from e

        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise DecodeError(
                f"{operation} response does not match {model.__name__}: {e.error_count()} error(s)"
            ) from e

    async def fetch_user_profile(self, token: AccessToken) -> UserProfile:
        """GET /me."""
        profile = await self._get("profile", token, "me", UserProfile)
        logger.info(f"Fetched Spotify profile for user '{profile.id}'")
        return profile

    async def fetch_saved_tracks(self, token: AccessToken, query: SavedTracksQuery) -> SavedTracksPage:
        """
        GET /me/tracks for one page of the user's saved tracks.

        Args:
            token: Access token from the exchange
            query: Paging and market parameters

        Returns:
            SavedTracksPage
        """
        page = await self._get("saved_tracks", token, "me/tracks", SavedTracksPage, params=query.to_params())
        logger.info(f"Fetched {len(page.items)} saved tracks (offset={page.offset}, total={page.total})")
        return page
