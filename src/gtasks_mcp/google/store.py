"""Persisted Google credentials.

Two files are involved:

    credentials.json - OAuth client credentials downloaded from Google Cloud
                       Console ("installed" or "web" application). Read only.
    token.json       - the user's grant, written in the ``authorized_user``
                       format understood by google-auth.

Only the refresh token is stored durably. Access tokens live in memory.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from gtasks_mcp.google.exceptions import CredentialsNotFoundError, CredentialStoreError

logger = logging.getLogger(__name__)

AUTHORIZED_USER_TYPE = "authorized_user"
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class CredentialRecord:
    """A long-lived delegated grant: app identity plus the user's refresh token."""

    client_id: str
    client_secret: str
    refresh_token: str

    @property
    def is_usable(self) -> bool:
        """A record can mint access tokens only if every field is non-empty."""
        return bool(self.client_id and self.client_secret and self.refresh_token)

    def to_json(self) -> dict[str, str]:
        return {
            "type": AUTHORIZED_USER_TYPE,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
        }


@dataclass(frozen=True)
class AppCredentials:
    """The application's registered OAuth client."""

    client_id: str
    client_secret: str
    type: str = "installed"
    auth_uri: str = GOOGLE_AUTH_URI
    token_uri: str = GOOGLE_TOKEN_URI
    redirect_uris: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_file(cls, path: str | Path) -> AppCredentials:
        """Load OAuth client credentials from file.

        Raises:
            CredentialsNotFoundError: If the file does not exist.
            CredentialStoreError: If the file cannot be read or has the wrong shape.
        """
        path = Path(path)
        if not path.exists():
            raise CredentialsNotFoundError(str(path))

        try:
            with open(path, encoding="utf-8") as f:
                creds = json.load(f)
        except (OSError, ValueError) as e:
            raise CredentialStoreError(str(path), str(e)) from e

        return cls.from_dict(creds, source=str(path))

    @classmethod
    def from_dict(cls, creds: object, source: str = "<credentials>") -> AppCredentials:
        if not isinstance(creds, dict):
            raise CredentialStoreError(source, "expected a JSON object")

        # Handle both web and installed app credential formats
        if "installed" in creds:
            app_type = "installed"
        elif "web" in creds:
            app_type = "web"
        else:
            raise CredentialStoreError(
                source, "invalid credentials format, expected 'installed' or 'web' key"
            )

        app_creds = creds[app_type]
        if not isinstance(app_creds, dict):
            raise CredentialStoreError(source, f"'{app_type}' must be a JSON object")

        client_id = app_creds.get("client_id")
        client_secret = app_creds.get("client_secret")
        if not client_id or not client_secret:
            raise CredentialStoreError(source, "client_id and client_secret are required")

        return cls(
            client_id=client_id,
            client_secret=client_secret,
            type=app_type,
            auth_uri=app_creds.get("auth_uri") or GOOGLE_AUTH_URI,
            token_uri=app_creds.get("token_uri") or GOOGLE_TOKEN_URI,
            redirect_uris=tuple(app_creds.get("redirect_uris") or ()),
        )

    def client_config(self) -> dict[str, dict]:
        """Client secrets in the layout google-auth-oauthlib flows expect."""
        return {
            self.type: {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "auth_uri": self.auth_uri,
                "token_uri": self.token_uri,
                "redirect_uris": list(self.redirect_uris),
            }
        }


class CredentialStore:
    """Reads and writes the single persisted CredentialRecord.

    Example:
        >>> store = CredentialStore("token.json", "credentials.json")
        >>> record = store.load()
        >>> if record is None or not record.is_usable:
        ...     ...  # run consent, then store.save(new_record)
    """

    def __init__(self, token_path: str | Path, credentials_path: str | Path):
        self.token_path = Path(token_path)
        self.credentials_path = Path(credentials_path)

    def load(self) -> CredentialRecord | None:
        """Load the persisted record.

        Returns:
            The parsed record (which may still fail ``is_usable``), or None
            when there is no readable, parseable token file.
        """
        if not self.token_path.exists():
            logger.info("No existing token found")
            return None

        # ValueError covers both JSONDecodeError and UnicodeDecodeError
        try:
            with open(self.token_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load token from {self.token_path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Ignoring token file {self.token_path}: not a JSON object")
            return None

        return CredentialRecord(
            client_id=str(data.get("client_id") or ""),
            client_secret=str(data.get("client_secret") or ""),
            refresh_token=str(data.get("refresh_token") or ""),
        )

    def save(self, record: CredentialRecord) -> CredentialRecord:
        """Persist a record in ``authorized_user`` format.

        The client id and secret are taken from the credentials file so the
        token file is self-describing; the refresh token comes from ``record``.
        The file is replaced atomically.

        Returns:
            The record as written.

        Raises:
            CredentialStoreError: If either file is inaccessible.
        """
        try:
            app = AppCredentials.from_file(self.credentials_path)
        except CredentialsNotFoundError as e:
            raise CredentialStoreError(str(self.credentials_path), "file not found") from e

        stored = CredentialRecord(
            client_id=app.client_id,
            client_secret=app.client_secret,
            refresh_token=record.refresh_token,
        )

        try:
            self._atomic_write(stored.to_json())
        except OSError as e:
            raise CredentialStoreError(str(self.token_path), str(e)) from e

        logger.info(f"Token saved to {self.token_path}")
        return stored

    def delete(self) -> bool:
        """Delete the token file. Returns True if a file was removed."""
        if not self.token_path.exists():
            return False
        try:
            self.token_path.unlink()
        except OSError as e:
            raise CredentialStoreError(str(self.token_path), str(e)) from e
        logger.info(f"Deleted token {self.token_path}")
        return True

    def _atomic_write(self, data: dict) -> None:
        directory = self.token_path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            dir=directory, prefix=f".{self.token_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_name, self.token_path)  # atomic on POSIX
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
