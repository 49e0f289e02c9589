"""
FastAPI application for the Spotify OAuth gateway.

The app factory wires settings, the OAuth and Web API clients and the
callback state machine into app.state during lifespan startup. Nothing is read
from module-level globals at request time.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles

from spotify_gateway.api.routes import health, metrics, spotify_oauth
from spotify_gateway.core.errors import RandomnessFailure
from spotify_gateway.infra.oauth_state import StateCookieStore
from spotify_gateway.infra.spotify_api import SpotifyAPIClient
from spotify_gateway.services.callback_flow import CallbackFlow
from spotify_gateway.services.spotify_oauth import SpotifyOAuthClient, generate_state
from spotify_gateway.settings import Settings, get_settings

# Configure logging (will be updated after settings load)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Apply LOG_LEVEL from settings to the root logger."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.getLogger().setLevel(log_level)
    logger.info(f"Logging configured: level={settings.LOG_LEVEL}, mode={settings.ENV}")


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment if None
        transport: Optional httpx transport for all provider calls

    Returns:
        FastAPI application
    """
    app_settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Executed on startup:
        - Checks provider credentials (ConfigError aborts startup)
        - Checks the randomness source (RandomnessFailure aborts startup)
        - Creates the OAuth client, API client, state store and callback flow

        Executed on shutdown:
        - Releases app state
        """
        logger.info("=" * 60)
        logger.info("STARTING SPOTIFY GATEWAY")
        logger.info("=" * 60)

        configure_logging(app_settings)

        credentials = app_settings.provider_credentials()
        generate_state()

        oauth_client = SpotifyOAuthClient(
            credentials=credentials,
            auth_url=app_settings.SPOTIFY_AUTH_URL,
            token_url=app_settings.SPOTIFY_TOKEN_URL,
            scopes=app_settings.SPOTIFY_SCOPES,
            timeout_seconds=app_settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )
        api_client = SpotifyAPIClient(
            base_url=app_settings.SPOTIFY_API_BASE_URL,
            timeout_seconds=app_settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )
        state_store = StateCookieStore(
            max_age=app_settings.STATE_COOKIE_MAX_AGE_SECONDS,
            secure=app_settings.COOKIE_SECURE,
        )

        app.state.settings = app_settings
        app.state.oauth_client = oauth_client
        app.state.api_client = api_client
        app.state.state_store = state_store
        app.state.callback_flow = CallbackFlow(oauth_client, api_client, state_store)

        logger.info(f"Spotify OAuth client ready (client_id={credentials.client_id})")
        logger.info("=" * 60)

        yield

        logger.info("Stopping application...")
        app.state.callback_flow = None
        app.state.state_store = None
        app.state.api_client = None
        app.state.oauth_client = None
        app.state.settings = None

    app = FastAPI(
        title="Spotify OAuth Gateway",
        description="OAuth2 authorization code flow against Spotify plus read-only Web API calls",
        version="1.0.0",
        lifespan=lifespan,
        redirect_slashes=False,
    )

    @app.middleware("http")
    async def strip_slashes_middleware(request: Request, call_next):
        """Serves /ping/ as /ping instead of redirecting."""
        path = request.scope["path"]
        if len(path) > 1 and path.endswith("/"):
            request.scope["path"] = path.rstrip("/") or "/"
        return await call_next(request)

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        """Adds correlation ID to each request."""
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    @app.exception_handler(RandomnessFailure)
    async def randomness_failure_handler(request: Request, exc: RandomnessFailure):
        request_id = getattr(request.state, "request_id", "unknown")
        logger.critical(f"[{request_id}] Cannot generate OAuth state: {exc}")
        return PlainTextResponse("internal server error", status_code=500)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token", "X-Request-Id"],
        max_age=300,
    )

    @app.get("/")
    async def root():
        """Root endpoint to check API status."""
        return {
            "message": "Spotify OAuth Gateway",
            "status": "running",
            "login": "/auth",
        }

    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(spotify_oauth.router)

    static_dir = Path(app_settings.STATIC_DIR)
    if static_dir.is_dir():
        app.mount("/templates", StaticFiles(directory=static_dir), name="templates")
    else:
        logger.info(f"Static directory '{static_dir}' not found, /templates disabled")

    return app


app = create_app()


if __name__ == "__main__":
    """
    Running application via uvicorn.

    Usage:
        python -m spotify_gateway

    Or via uvicorn directly:
        uvicorn spotify_gateway.api.main:app --reload --port 8080
    """
    from spotify_gateway.__main__ import main

    main()
