"""Interactive consent for installed applications.

Consent is delegated to google-auth-oauthlib's ``InstalledAppFlow``, which
listens on a loopback address, opens the authorization URL and exchanges the
returned code (with PKCE) for tokens. The result is handed back as a token
dict that Authlib can keep refreshing.
"""

from __future__ import annotations

import contextlib
import logging
import sys
from collections.abc import Sequence
from datetime import timezone
from typing import Any, Protocol

import requests
from google.oauth2.credentials import Credentials as GoogleCredentials
from google_auth_oauthlib.flow import InstalledAppFlow
from oauthlib.oauth2.rfc6749.errors import AccessDeniedError
from oauthlib.oauth2.rfc6749.errors import OAuth2Error as OAuthlibError

from gtasks_mcp.google.exceptions import ConsentDeniedError, ProviderError
from gtasks_mcp.google.store import AppCredentials

logger = logging.getLogger(__name__)

AUTHORIZATION_PROMPT = "Authorize Google Tasks access by visiting:\n{url}\n"
SUCCESS_MESSAGE = "Google Tasks authorization received. You may close this window."


class ConsentChannel(Protocol):
    """Asks the user for a grant and returns the provider's token response."""

    def obtain(self, app: AppCredentials, scopes: Sequence[str]) -> dict[str, Any]:
        """Block until the user answers.

        Raises:
            ConsentDeniedError: If the user declines.
            ProviderError: If the flow cannot be completed.
        """
        ...


def token_from_credentials(creds: GoogleCredentials) -> dict[str, Any]:
    """Convert google-auth credentials into an OAuth2 token dict."""
    token: dict[str, Any] = {
        "access_token": creds.token,
        "refresh_token": creds.refresh_token,
        "token_type": "Bearer",
    }
    if creds.expiry is not None:
        # google-auth keeps expiry as naive UTC
        token["expires_at"] = int(creds.expiry.replace(tzinfo=timezone.utc).timestamp())
    return token


class InstalledAppConsent:
    """Loopback consent through ``InstalledAppFlow.run_local_server``.

    Example:
        >>> consent = InstalledAppConsent(open_browser=False)
        >>> token = consent.obtain(AppCredentials.from_file("credentials.json"), scopes)
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 0,
        open_browser: bool = True,
        timeout: float | None = None,
    ):
        self.host = host
        self.port = port
        self.open_browser = open_browser
        self.timeout = timeout

    def obtain(self, app: AppCredentials, scopes: Sequence[str]) -> dict[str, Any]:
        flow = InstalledAppFlow.from_client_config(app.client_config(), scopes=list(scopes))

        try:
            # stdout belongs to the MCP stream, so the prompt goes to stderr
            with contextlib.redirect_stdout(sys.stderr):
                creds = flow.run_local_server(
                    host=self.host,
                    port=self.port,
                    open_browser=self.open_browser,
                    timeout_seconds=self.timeout,
                    authorization_prompt_message=AUTHORIZATION_PROMPT,
                    success_message=SUCCESS_MESSAGE,
                    access_type="offline",
                    prompt="consent",
                )
        except AccessDeniedError as e:
            raise ConsentDeniedError(e.error) from e
        except OAuthlibError as e:
            raise ProviderError(f"Authorization failed: {e.error}") from e
        except requests.RequestException as e:
            raise ProviderError(f"Failed to reach token endpoint: {e}") from e
        except OSError as e:
            raise ProviderError(f"Cannot listen for consent redirect on {self.host}: {e}") from e
        except AttributeError as e:
            # run_local_server gives up without a redirect once timeout_seconds passes
            if self.timeout is None:
                raise
            raise ProviderError(f"No consent response within {self.timeout:g} seconds") from e

        return token_from_credentials(creds)
