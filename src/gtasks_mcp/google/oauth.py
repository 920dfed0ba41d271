"""Google OAuth management using Authlib.

This module provides OAuth 2.0 authorization for the Google Tasks API with:
- A fast path that reuses the saved refresh token without any prompt
- An interactive consent flow (see :mod:`gtasks_mcp.google.consent`) when no
  usable grant exists
- In-memory access tokens minted on demand and refreshed before expiry
- Persistence of refresh tokens rotated by the provider

Only the refresh token is written to disk (``token.json``); see
:mod:`gtasks_mcp.google.store`.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

import requests
from authlib.integrations.requests_client import OAuth2Session
from authlib.oauth2 import OAuth2Error
from google.oauth2.credentials import Credentials as GoogleCredentials
from googleapiclient.discovery import build

from gtasks_mcp.config import ServerConfig
from gtasks_mcp.google.consent import ConsentChannel, InstalledAppConsent
from gtasks_mcp.google.exceptions import (
    CredentialStoreError,
    ProviderError,
    TokenError,
)
from gtasks_mcp.google.store import (
    GOOGLE_TOKEN_URI,
    AppCredentials,
    CredentialRecord,
    CredentialStore,
)

logger = logging.getLogger(__name__)

REVOKE_URL = "https://oauth2.googleapis.com/revoke"

# Refresh this many seconds before the access token expires
REFRESH_LEEWAY = 300
# Used when the token endpoint omits expires_in
DEFAULT_TOKEN_LIFETIME = 3600


class AuthorizedClient:
    """A usable grant: the stored record plus a cached short-lived access token.

    Access tokens are minted lazily from the refresh token, so building a
    client performs no network traffic. Google API credentials produced by
    :meth:`credentials` call back into this object whenever google-auth needs
    a new token (before expiry, or after a 401 from the API).
    """

    def __init__(
        self,
        record: CredentialRecord,
        scopes: Sequence[str],
        token_uri: str = GOOGLE_TOKEN_URI,
        token: dict[str, Any] | None = None,
        on_rotate: Callable[[CredentialRecord], None] | None = None,
        leeway: int = REFRESH_LEEWAY,
    ):
        self.record = record
        self.scopes = list(scopes)
        self.token_uri = token_uri
        self.leeway = leeway
        self._on_rotate = on_rotate

        self.session = OAuth2Session(
            client_id=record.client_id,
            client_secret=record.client_secret,
            scope=" ".join(self.scopes),
            token=token,
            token_endpoint=token_uri,
            token_endpoint_auth_method="client_secret_post",
        )
        if token is not None:
            self._ensure_expiry()

        self.last_refresh: datetime | None = None
        self.refresh_count = 0

    def _ensure_expiry(self) -> None:
        token = self.session.token
        if token and not token.get("expires_at"):
            token["expires_at"] = int(time.time()) + DEFAULT_TOKEN_LIFETIME

    def _token_is_fresh(self) -> bool:
        token = self.session.token
        if not token or not token.get("access_token"):
            return False
        return token.get("expires_at", 0) - self.leeway > time.time()

    def _expiry(self) -> datetime:
        # google-auth compares against naive UTC datetimes
        expires_at = self.session.token["expires_at"]
        return datetime.fromtimestamp(expires_at, tz=timezone.utc).replace(tzinfo=None)

    def refresh(self) -> None:
        """Mint a new access token from the refresh token.

        Raises:
            TokenError: If the token endpoint rejects the grant or is unreachable.
        """
        logger.info("Refreshing access token")
        try:
            token = self.session.refresh_token(
                self.token_uri,
                refresh_token=self.record.refresh_token,
            )
        except OAuth2Error as e:
            raise TokenError(f"Failed to refresh token: {e}") from e
        except requests.RequestException as e:
            raise TokenError(f"Failed to reach token endpoint: {e}") from e

        self.session.token = token
        if not self.session.token.get("access_token"):
            raise TokenError("Token endpoint returned no access token")
        self._ensure_expiry()

        self.last_refresh = datetime.now()
        self.refresh_count += 1

        rotated = token.get("refresh_token")
        if rotated and rotated != self.record.refresh_token:
            logger.info("Provider issued a new refresh token")
            self.record = replace(self.record, refresh_token=rotated)
            if self._on_rotate is not None:
                self._on_rotate(self.record)

    def get_access_token(self) -> tuple[str, datetime]:
        """Return a valid access token and its expiry, refreshing if needed."""
        if not self._token_is_fresh():
            self.refresh()
        return self.session.token["access_token"], self._expiry()

    def _refresh_handler(self, request: Any, scopes: Sequence[str] | None = None):
        # google-auth only asks when its copy is stale or was rejected
        self.refresh()
        return self.session.token["access_token"], self._expiry()

    def credentials(self) -> GoogleCredentials:
        """Get Google Credentials object for API client libraries."""
        token = expiry = None
        if self._token_is_fresh():
            token = self.session.token["access_token"]
            expiry = self._expiry()

        return GoogleCredentials(
            token=token,
            expiry=expiry,
            scopes=self.scopes,
            refresh_handler=self._refresh_handler,
        )

    def build_service(self, service_name: str = "tasks", version: str = "v1"):
        """Build a Google API service with current credentials.

        Args:
            service_name: Name of the service.
            version: API version.

        Returns:
            Google API service object.
        """
        return build(service_name, version, credentials=self.credentials(), cache_discovery=False)

    def revoke(self) -> bool:
        """Revoke the refresh token at Google. Returns True if Google accepted it."""
        try:
            response = self.session.post(
                REVOKE_URL,
                params={"token": self.record.refresh_token},
                withhold_token=True,
            )
        except requests.RequestException as e:
            logger.warning(f"Failed to revoke token remotely: {e}")
            return False

        if response.status_code != 200:
            logger.warning(f"Token revocation returned HTTP {response.status_code}")
            return False
        return True

    def get_token_info(self) -> dict[str, Any]:
        """Get information about the current token.

        Returns:
            Dictionary with token status, scopes, expiry, etc.
        """
        token = self.session.token
        if token and token.get("expires_at"):
            expires_in = token["expires_at"] - time.time()
            expires_str = str(timedelta(seconds=int(max(0, expires_in))))
            status = "valid" if expires_in > 0 else "expired"
        else:
            expires_str = "unknown"
            status = "not_minted"

        return {
            "status": status,
            "scopes": self.scopes,
            "expires_in": expires_str,
            "has_refresh_token": bool(self.record.refresh_token),
            "refresh_count": self.refresh_count,
            "last_refresh": self.last_refresh.isoformat() if self.last_refresh else None,
        }


class GoogleAuthorizer:
    """Produces an AuthorizedClient for every operation, prompting at most once.

    Example:
        >>> authorizer = GoogleAuthorizer(ServerConfig.from_env())
        >>> client = authorizer.authorize()  # prompts only without a saved grant
        >>> service = client.build_service()
    """

    def __init__(
        self,
        config: ServerConfig,
        store: CredentialStore | None = None,
        consent: ConsentChannel | None = None,
    ):
        self.config = config
        self.store = store or CredentialStore(config.token_path, config.credentials_path)
        self.consent = consent or InstalledAppConsent(
            host=config.consent_host,
            port=config.consent_port,
            open_browser=config.open_browser,
            timeout=config.consent_timeout,
        )
        self._client: AuthorizedClient | None = None

    @property
    def is_ready(self) -> bool:
        return self._client is not None

    def authorize(self) -> AuthorizedClient:
        """Return a usable client, running interactive consent only if needed.

        Raises:
            ConsentDeniedError: If the user declines.
            ProviderError: If consent cannot be completed.
        """
        if self._client is not None:
            return self._client

        record = self.store.load()
        if record is not None and record.is_usable:
            logger.info("Using saved Google authorization")
            self._client = self._make_client(record)
            return self._client

        if record is not None:
            logger.warning(f"Saved token at {self.store.token_path} is incomplete, re-authorizing")

        self._client = self._run_consent()
        return self._client

    def _make_client(
        self,
        record: CredentialRecord,
        token: dict[str, Any] | None = None,
        token_uri: str = GOOGLE_TOKEN_URI,
    ) -> AuthorizedClient:
        return AuthorizedClient(
            record,
            scopes=self.config.scopes,
            token_uri=token_uri,
            token=token,
            on_rotate=self._persist,
        )

    def _persist(self, record: CredentialRecord) -> None:
        try:
            self.store.save(record)
        except CredentialStoreError as e:
            logger.error(
                f"Could not save Google authorization ({e}); "
                "the next start will have to ask for consent again"
            )

    def _run_consent(self) -> AuthorizedClient:
        try:
            app = AppCredentials.from_file(self.config.credentials_path)
        except CredentialStoreError as e:
            raise ProviderError(f"Unusable OAuth client credentials: {e}") from e

        logger.info("No saved authorization, starting Google consent flow")
        token = self.consent.obtain(app, self.config.scopes)

        refresh_token = token.get("refresh_token")
        if not refresh_token:
            raise ProviderError(
                "Google returned no refresh token. Remove this app's access at "
                "https://myaccount.google.com/permissions and authorize again."
            )

        record = CredentialRecord(
            client_id=app.client_id,
            client_secret=app.client_secret,
            refresh_token=refresh_token,
        )
        self._persist(record)
        logger.info("Google authorization granted")
        return self._make_client(record, token=dict(token), token_uri=app.token_uri)

    def forget(self) -> None:
        """Drop the in-process client so the next authorize() starts over."""
        self._client = None
