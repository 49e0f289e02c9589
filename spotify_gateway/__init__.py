"""Spotify OAuth2 gateway: authorization code flow plus read-only Web API calls."""

__version__ = "1.0.0"
