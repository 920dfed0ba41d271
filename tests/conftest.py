"""Shared fixtures: credential files in tmp_path and a scripted consent channel."""

import json

import pytest

from gtasks_mcp.config import ServerConfig

GRANTED_TOKEN = {
    "access_token": "consent-access-token",
    "refresh_token": "r1",
    "token_type": "Bearer",
    "expires_in": 3599,
    "scope": "https://www.googleapis.com/auth/tasks",
}


class FakeConsent:
    """Consent channel that answers immediately with a canned token response."""

    def __init__(self, token=None, error=None):
        self.token = dict(GRANTED_TOKEN) if token is None else token
        self.error = error
        self.requests = []

    def obtain(self, app, scopes):
        self.requests.append((app, tuple(scopes)))
        if self.error is not None:
            raise self.error
        return dict(self.token)

    @property
    def calls(self) -> int:
        return len(self.requests)


class NoConsent:
    """Consent channel for paths that must never prompt."""

    def obtain(self, app, scopes):
        raise AssertionError("consent flow must not run")


@pytest.fixture
def credentials_file(tmp_path):
    """Create a mock installed-app credentials file."""
    creds = {
        "installed": {
            "client_id": "abc",
            "client_secret": "xyz",
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": ["http://localhost"],
        }
    }
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps(creds))
    return path


@pytest.fixture
def token_file(tmp_path):
    """Create a saved authorized_user token."""
    token = {
        "type": "authorized_user",
        "client_id": "abc",
        "client_secret": "xyz",
        "refresh_token": "saved-refresh-token",
    }
    path = tmp_path / "token.json"
    path.write_text(json.dumps(token))
    return path


@pytest.fixture
def config(tmp_path):
    """Config pointing at tmp_path; files are created by other fixtures."""
    return ServerConfig(
        token_path=tmp_path / "token.json",
        credentials_path=tmp_path / "credentials.json",
        open_browser=False,
    )


@pytest.fixture
def fake_consent():
    return FakeConsent()
