"""
Pytest configuration for gateway tests.

Ensures repo root is on sys.path so `import spotify_gateway...` works reliably
when running pytest from repo root.
"""

import sys
from pathlib import Path

import pytest

# parents[0] = tests/, parents[1] = repo root
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from spotify_gateway.settings import Settings  # noqa: E402
from tests._spotify_fixtures import FakeSpotify  # noqa: E402


@pytest.fixture
def fake_spotify() -> FakeSpotify:
    return FakeSpotify()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        SPOTIFY_CLIENT_ID="client-abc",
        SPOTIFY_CLIENT_SECRET="secret-xyz",
        SPOTIFY_REDIRECT_URL="http://localhost:8080/auth/callback",
        STATIC_DIR=str(REPO_ROOT / "tests" / "missing-static-dir"),
        ENV="production",
    )
