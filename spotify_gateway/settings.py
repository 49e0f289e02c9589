"""
Centralized application settings using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
Spotify credentials are optional at the model level and checked when the
provider credentials are built, so a missing credential surfaces as ConfigError.
"""

import logging
import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from spotify_gateway.core.errors import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_SCOPES = "user-read-private user-read-email user-library-read"

# Levels uvicorn accepts for its own loggers
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "TRACE")


class ProviderCredentials(BaseModel):
    """OAuth client registration, immutable for the lifetime of the process."""

    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: str
    redirect_url: str

    def __repr__(self) -> str:
        return f"ProviderCredentials(client_id={self.client_id!r}, redirect_url={self.redirect_url!r})"


class Settings(BaseSettings):
    """Centralized application settings."""

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE"),  # Only load .env if ENV_FILE is explicitly set
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    ENV: Literal["development", "production"] = Field(default="production", description="Environment mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # Server
    HOST: str = Field(default="0.0.0.0", description="Listen address")
    PORT: int = Field(default=8080, description="Listen port")
    SHUTDOWN_TIMEOUT_SECONDS: int = Field(
        default=10,
        description="Time allowed for in-flight requests to finish on shutdown"
    )
    STATIC_DIR: str = Field(default="data", description="Directory served under /templates")
    CORS_ORIGINS: Optional[str] = Field(
        default=None,
        description="Comma-separated list of allowed CORS origins"
    )

    # Spotify OAuth
    SPOTIFY_CLIENT_ID: Optional[str] = Field(default=None, description="Spotify client ID")
    SPOTIFY_CLIENT_SECRET: Optional[str] = Field(default=None, description="Spotify client secret")
    SPOTIFY_REDIRECT_URL: Optional[str] = Field(
        default=None,
        description="OAuth redirect URL registered with Spotify"
    )
    SPOTIFY_SCOPES: str = Field(default=DEFAULT_SCOPES, description="Space-separated OAuth scopes")
    SPOTIFY_AUTH_URL: str = Field(
        default="https://accounts.spotify.com/authorize",
        description="Spotify consent page"
    )
    SPOTIFY_TOKEN_URL: str = Field(
        default="https://accounts.spotify.com/api/token",
        description="Spotify token endpoint"
    )
    SPOTIFY_API_BASE_URL: str = Field(
        default="https://api.spotify.com/v1",
        description="Spotify Web API base URL"
    )

    # Provider calls
    HTTP_TIMEOUT_SECONDS: float = Field(default=10.0, description="Read/write timeout for provider calls")

    # State cookie
    STATE_COOKIE_MAX_AGE_SECONDS: int = Field(default=300, description="Lifetime of the oauthState cookie")
    COOKIE_SECURE: Optional[bool] = Field(
        default=None,
        description="Force the Secure cookie flag (default: set when the request is HTTPS)"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize to upper case and reject names uvicorn does not know."""
        level = v.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {v!r}")
        return level

    @field_validator("HTTP_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout is positive."""
        return max(1.0, v)

    @field_validator("STATE_COOKIE_MAX_AGE_SECONDS", "SHUTDOWN_TIMEOUT_SECONDS")
    @classmethod
    def validate_seconds(cls, v: int) -> int:
        """Validate lifetime is positive."""
        return max(1, v)

    @field_validator("PORT")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Reject ports outside the TCP range."""
        if not 0 < v < 65536:
            raise ValueError(f"PORT must be between 1 and 65535, got {v}")
        return v

    @field_validator("SPOTIFY_AUTH_URL", "SPOTIFY_TOKEN_URL", "SPOTIFY_API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Provider URLs are joined with paths, keep them slash-free."""
        return v.rstrip("/")

    def provider_credentials(self) -> ProviderCredentials:
        """
        Build the immutable Spotify credentials.

        Raises:
            ConfigError: If any of client ID, secret or redirect URL is missing
        """
        missing = [
            name
            for name in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "SPOTIFY_REDIRECT_URL")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError(f"Spotify OAuth not configured ({', '.join(missing)} missing)")
        return ProviderCredentials(
            client_id=self.SPOTIFY_CLIENT_ID,
            client_secret=self.SPOTIFY_CLIENT_SECRET,
            redirect_url=self.SPOTIFY_REDIRECT_URL,
        )

    def get_cors_origins(self) -> list[str]:
        """Get list of CORS origins; '*' only in development when unset."""
        if self.CORS_ORIGINS:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
        return ["*"] if self.ENV == "development" else []


def load_settings() -> Settings:
    """
    Load settings from the environment.

    Raises:
        ConfigError: If the environment holds invalid values
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Returns:
        Settings instance
    """
    try:
        settings = load_settings()
        logger.info("Settings loaded successfully")
        return settings
    except ConfigError as e:
        logger.error(f"Failed to load settings: {e}")
        raise
