"""
FastAPI dependency injection for services built during lifespan startup.
"""

from fastapi import Request

from spotify_gateway.infra.oauth_state import StateCookieStore
from spotify_gateway.services.callback_flow import CallbackFlow
from spotify_gateway.services.spotify_oauth import SpotifyOAuthClient


def get_oauth_client(request: Request) -> SpotifyOAuthClient:
    return request.app.state.oauth_client


def get_state_store(request: Request) -> StateCookieStore:
    return request.app.state.state_store


def get_callback_flow(request: Request) -> CallbackFlow:
    """
    Get the callback state machine from app.state.

    Args:
        request: FastAPI request

    Returns:
        CallbackFlow instance
    """
    return request.app.state.callback_flow
