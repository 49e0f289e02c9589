"""
HTTP-level tests for the gateway routes, with Spotify replaced by a MockTransport.
"""

import os
from unittest.mock import patch
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient

from spotify_gateway.api.main import create_app
from spotify_gateway.core.errors import ConfigError, RandomnessFailure
from spotify_gateway.infra.oauth_state import STATE_COOKIE_NAME
from spotify_gateway.settings import Settings, get_settings


@pytest.fixture
def client(settings, fake_spotify):
    app = create_app(settings, transport=fake_spotify.transport)
    with TestClient(app, follow_redirects=False) as test_client:
        yield test_client


def test_root(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "running"


def test_ping(client):
    resp = client.get("/ping")
    assert resp.status_code == 200
    assert resp.text == "pong"


def test_trailing_slash_is_served_directly(client):
    resp = client.get("/ping/")
    assert resp.status_code == 200
    assert resp.text == "pong"

    with patch("spotify_gateway.api.routes.spotify_oauth.generate_state", return_value="ABC123"):
        resp = client.get("/auth/")
    assert resp.status_code == 307
    assert urlsplit(resp.headers["location"]).netloc == "accounts.spotify.com"


def test_trailing_slash_callback_runs_flow(client):
    client.cookies.set(STATE_COOKIE_NAME, "ABC123")
    resp = client.get("/auth/callback/", params={"state": "ABC123", "code": "XYZ"})
    assert resp.status_code == 200
    assert resp.json()["state"] == "TracksFetched"


def test_request_id_echoed(client):
    resp = client.get("/ping", headers={"X-Request-Id": "req-42"})
    assert resp.headers["X-Request-Id"] == "req-42"
    assert client.get("/ping").headers["X-Request-Id"]


def test_health_hides_diagnostics_in_production(client):
    data = client.get("/health").json()
    assert data["status"] == "ok"
    assert "diagnostics" not in data

    data = client.get("/health", headers={"X-Debug": "1"}).json()
    assert data["diagnostics"]["spotify"]["client_id_set"] is True
    assert "secret-xyz" not in str(data)


def test_auth_sets_cookie_and_redirects(client):
    with patch("spotify_gateway.api.routes.spotify_oauth.generate_state", return_value="ABC123"):
        resp = client.get("/auth")

    assert resp.status_code == 307
    location = urlsplit(resp.headers["location"])
    assert location.netloc == "accounts.spotify.com"
    assert parse_qs(location.query)["state"] == ["ABC123"]

    set_cookie = resp.headers["set-cookie"]
    assert set_cookie.startswith(f"{STATE_COOKIE_NAME}=ABC123")
    assert "HttpOnly" in set_cookie
    assert "Path=/" in set_cookie
    assert client.cookies.get(STATE_COOKIE_NAME) == "ABC123"


def test_auth_overwrites_previous_state(client):
    client.cookies.set(STATE_COOKIE_NAME, "OLD")
    with patch("spotify_gateway.api.routes.spotify_oauth.generate_state", return_value="NEW"):
        resp = client.get("/auth")
    assert resp.headers["set-cookie"].startswith(f"{STATE_COOKIE_NAME}=NEW")


def test_login_then_callback_fetches_profile_and_tracks(client, fake_spotify):
    with patch("spotify_gateway.api.routes.spotify_oauth.generate_state", return_value="ABC123"):
        client.get("/auth")

    resp = client.get("/auth/callback", params={"state": "ABC123", "code": "XYZ"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["state"] == "TracksFetched"
    assert data["profile"]["id"] == "wizzler"
    assert data["saved_tracks"]["total"] == 2
    assert data["album_artists"] == ["Artist One", "Artist Two"]

    # exchange, then profile, then tracks
    assert fake_spotify.calls == [
        ("POST", "/api/token"),
        ("GET", "/v1/me"),
        ("GET", "/v1/me/tracks"),
    ]
    assert dict(fake_spotify.requests[2].url.params) == {"limit": "50", "offset": "0", "market": "us"}
    assert "Max-Age=0" in resp.headers["set-cookie"]


def test_callback_provider_denied(client, fake_spotify):
    client.cookies.set(STATE_COOKIE_NAME, "ABC123")
    resp = client.get("/auth/callback", params={"error": "access_denied", "state": "ABC123"})

    assert resp.status_code == 307
    assert resp.headers["location"] == "/"
    assert fake_spotify.calls == []


def test_callback_state_mismatch(client, fake_spotify):
    client.cookies.set(STATE_COOKIE_NAME, "ABC123")
    resp = client.get("/auth/callback", params={"state": "WRONG", "code": "XYZ"})

    assert resp.status_code == 401
    assert resp.headers["location"] == "/"
    assert fake_spotify.calls == []


def test_callback_state_mismatch_keeps_pending_login(client, fake_spotify):
    client.cookies.set(STATE_COOKIE_NAME, "ABC123")
    resp = client.get("/auth/callback", params={"state": "ATTACKER"})

    assert resp.status_code == 401
    assert "set-cookie" not in resp.headers

    resp = client.get("/auth/callback", params={"state": "ABC123", "code": "XYZ"})
    assert resp.status_code == 200
    assert resp.json()["state"] == "TracksFetched"


def test_callback_without_cookie(client, fake_spotify):
    resp = client.get("/auth/callback", params={"state": "ABC123", "code": "XYZ"})

    assert resp.status_code == 401
    assert resp.headers["location"] == "/"
    assert fake_spotify.calls == []


def test_callback_exchange_failure_is_400(client, fake_spotify):
    fake_spotify.responses["token"] = (400, {"error": "invalid_grant", "error_description": "Invalid authorization code"})
    client.cookies.set(STATE_COOKIE_NAME, "ABC123")

    resp = client.get("/auth/callback", params={"state": "ABC123", "code": "XYZ"})

    assert resp.status_code == 400
    assert "invalid_grant: Invalid authorization code" in resp.text
    assert fake_spotify.count("profile") == 0


def test_callback_profile_failure_is_400(client, fake_spotify):
    fake_spotify.responses["profile"] = (401, {"error": {"status": 401, "message": "Invalid access token"}})
    client.cookies.set(STATE_COOKIE_NAME, "ABC123")

    resp = client.get("/auth/callback", params={"state": "ABC123", "code": "XYZ"})

    assert resp.status_code == 400
    assert resp.text == "HTTP 401: Invalid access token"
    assert fake_spotify.count("tracks") == 0


def test_callback_tracks_failure_is_400(client, fake_spotify):
    fake_spotify.responses["tracks"] = (200, b"<html>oops</html>")
    client.cookies.set(STATE_COOKIE_NAME, "ABC123")

    resp = client.get("/auth/callback", params={"state": "ABC123", "code": "XYZ"})

    assert resp.status_code == 400
    assert "not valid JSON" in resp.text


def test_logout_redirects_home(client):
    client.cookies.set(STATE_COOKIE_NAME, "ABC123")
    resp = client.get("/logout/spotify")

    assert resp.status_code == 307
    assert resp.headers["location"] == "/"
    assert "Max-Age=0" in resp.headers["set-cookie"]


def test_metrics_endpoint(client):
    client.cookies.set(STATE_COOKIE_NAME, "ABC123")
    client.get("/auth/callback", params={"state": "WRONG"})

    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert 'spotify_callback_outcomes_total{state="StateMismatch"}' in resp.text


def test_startup_fails_without_credentials(fake_spotify):
    settings = Settings(SPOTIFY_CLIENT_ID="client-abc", SPOTIFY_CLIENT_SECRET=None, SPOTIFY_REDIRECT_URL=None)
    app = create_app(settings, transport=fake_spotify.transport)
    with pytest.raises(ConfigError, match="SPOTIFY_CLIENT_SECRET"):
        with TestClient(app):
            pass


def test_static_files_served(tmp_path, settings, fake_spotify):
    (tmp_path / "index.html").write_text("<h1>hello</h1>")
    app = create_app(settings.model_copy(update={"STATIC_DIR": str(tmp_path)}), transport=fake_spotify.transport)
    with TestClient(app) as test_client:
        resp = test_client.get("/templates/index.html")
    assert resp.status_code == 200
    assert "hello" in resp.text


def test_randomness_failure_is_500(client):
    with patch(
        "spotify_gateway.api.routes.spotify_oauth.generate_state",
        side_effect=RandomnessFailure("secure randomness source unavailable"),
    ):
        resp = client.get("/auth")

    assert resp.status_code == 500
    assert resp.text == "internal server error"
    assert "set-cookie" not in resp.headers


def test_cors_origins_come_from_environment_settings(fake_spotify):
    env = {
        "SPOTIFY_CLIENT_ID": "client-abc",
        "SPOTIFY_CLIENT_SECRET": "secret-xyz",
        "SPOTIFY_REDIRECT_URL": "http://localhost:8080/auth/callback",
        "CORS_ORIGINS": "http://app.example",
        "ENV": "production",
    }
    with patch.dict(os.environ, env):
        get_settings.cache_clear()
        try:
            app = create_app(transport=fake_spotify.transport)
        finally:
            get_settings.cache_clear()

    preflight = {"Access-Control-Request-Method": "GET"}
    test_client = TestClient(app)
    allowed = test_client.options("/ping", headers=dict(preflight, Origin="http://app.example"))
    assert allowed.headers["access-control-allow-origin"] == "http://app.example"

    denied = test_client.options("/ping", headers=dict(preflight, Origin="http://evil.example"))
    assert denied.status_code == 400
