"""
Liveness and health check endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import PlainTextResponse

router = APIRouter()


@router.get("/ping", response_class=PlainTextResponse)
async def ping():
    """Liveness check."""
    return "pong"


@router.get("/health")
async def health_check(
    request: Request,
    x_debug: Optional[str] = Header(None, alias="X-Debug")
):
    """
    Health check endpoint for monitoring.

    Returns:
        JSON with application status and OAuth client readiness.
        Includes diagnostics if ENV != "production" or X-Debug: 1 header is present.
    """
    oauth_client = getattr(request.app.state, "oauth_client", None)

    response = {
        "status": "ok" if oauth_client is not None else "degraded",
        "oauth_ready": oauth_client is not None,
    }

    settings = getattr(request.app.state, "settings", None)
    if settings:
        env = settings.ENV
        debug_header = x_debug == "1"

        if env != "production" or debug_header:
            # Client secret is never included
            response["diagnostics"] = {
                "env": env,
                "log_level": settings.LOG_LEVEL,
                "spotify": {
                    "client_id_set": bool(settings.SPOTIFY_CLIENT_ID),
                    "redirect_url": settings.SPOTIFY_REDIRECT_URL,
                    "scopes": settings.SPOTIFY_SCOPES,
                    "api_base_url": settings.SPOTIFY_API_BASE_URL,
                },
                "http_timeout_seconds": settings.HTTP_TIMEOUT_SECONDS,
                "state_cookie_max_age_seconds": settings.STATE_COOKIE_MAX_AGE_SECONDS,
            }

    return response
