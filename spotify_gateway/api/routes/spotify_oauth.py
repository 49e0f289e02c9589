"""
Spotify OAuth routes for authorization code flow.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from spotify_gateway.api.deps import get_callback_flow, get_oauth_client, get_state_store
from spotify_gateway.api.schemas.spotify import CallbackResponse
from spotify_gateway.infra.metrics import login_redirects_total
from spotify_gateway.infra.oauth_state import StateCookieStore
from spotify_gateway.services.callback_flow import (
    CallbackFlow,
    CallbackOutcome,
    CallbackRequest,
    CallbackState,
)
from spotify_gateway.services.spotify_oauth import SpotifyOAuthClient, generate_state

logger = logging.getLogger(__name__)

router = APIRouter()

HOME_URL = "/"


def _unauthorized_redirect() -> Response:
    """401 carrying a Location header back to the home page."""
    return PlainTextResponse(
        "unauthorized",
        status_code=status.HTTP_401_UNAUTHORIZED,
        headers={"Location": HOME_URL},
    )


def outcome_to_response(outcome: CallbackOutcome) -> Response:
    """
    Map a terminal callback state to an HTTP response.

    Args:
        outcome: Result of the callback flow

    Returns:
        Redirect, client error or JSON payload
    """
    state = outcome.state
    if state is CallbackState.PROVIDER_DENIED:
        return RedirectResponse(HOME_URL, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    if state in (CallbackState.STATE_MISSING, CallbackState.STATE_MISMATCH):
        return _unauthorized_redirect()
    if state is CallbackState.TRACKS_FETCHED:
        body = CallbackResponse(
            state=state.value,
            profile=outcome.profile,
            saved_tracks=outcome.saved_tracks,
            album_artists=outcome.saved_tracks.album_artist_names(),
        )
        return JSONResponse(body.model_dump(mode="json"))
    # CookieUnreadable, ExchangeFailed, ProfileFetchFailed, TracksFetchFailed
    return PlainTextResponse(outcome.error or "bad request", status_code=status.HTTP_400_BAD_REQUEST)


@router.get("/auth")
async def auth_start(
    request: Request,
    oauth_client: SpotifyOAuthClient = Depends(get_oauth_client),
    state_store: StateCookieStore = Depends(get_state_store),
):
    """
    Start OAuth flow: set the state cookie and redirect to Spotify.
    """
    request_id = getattr(request.state, "request_id", "unknown")

    if state_store.name in request.cookies:
        logger.info(f"[{request_id}] Replacing pending OAuth state cookie")

    state = generate_state()
    auth_url = oauth_client.build_auth_url(state)

    response = RedirectResponse(auth_url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    state_store.issue(response, state, https=request.url.scheme == "https")
    login_redirects_total.inc()

    logger.info(f"[{request_id}] Generated OAuth state, redirecting to Spotify consent page")
    return response


@router.get("/auth/callback")
async def auth_callback(
    request: Request,
    flow: CallbackFlow = Depends(get_callback_flow),
    state_store: StateCookieStore = Depends(get_state_store),
):
    """
    OAuth callback endpoint for Spotify.

    Validates state, exchanges the code and fetches profile + saved tracks.

    Returns:
        JSON with profile and saved tracks, a redirect home, or a 400
    """
    request_id = getattr(request.state, "request_id", "unknown")
    outcome = await flow.run(
        CallbackRequest(
            query_params=request.query_params,
            cookies=request.cookies,
            request_id=request_id,
        )
    )

    response = outcome_to_response(outcome)
    if outcome.cookie_consumed:
        state_store.clear(response)
    return response


@router.get("/logout/{provider}")
async def logout(
    provider: str,
    request: Request,
    state_store: StateCookieStore = Depends(get_state_store),
):
    """Clear the pending login and go home."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"[{request_id}] Logout requested for provider '{provider}'")
    response = RedirectResponse(HOME_URL, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    state_store.clear(response)
    return response
