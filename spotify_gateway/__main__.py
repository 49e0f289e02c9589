"""
Process entry point.

Usage:
    python -m spotify_gateway

Exits with status 1 when configuration is missing or invalid. uvicorn exits
on its own when the listen socket cannot be bound, and on SIGINT/SIGTERM it
stops accepting connections and waits for in-flight requests.
"""

import logging
import sys

import uvicorn

from spotify_gateway.api.main import configure_logging, create_app
from spotify_gateway.core.errors import ConfigError
from spotify_gateway.settings import load_settings

logger = logging.getLogger("spotify_gateway")


def main() -> None:
    try:
        settings = load_settings()
        settings.provider_credentials()
    except ConfigError as e:
        logger.critical(f"Cannot start: {e}")
        sys.exit(1)

    configure_logging(settings)
    logger.info(f"Server listening on {settings.HOST}:{settings.PORT}")

    uvicorn.run(
        create_app(settings),
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_graceful_shutdown=settings.SHUTDOWN_TIMEOUT_SECONDS,
    )
    logger.info("Server closed")


if __name__ == "__main__":
    main()
