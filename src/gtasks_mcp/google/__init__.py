"""Google OAuth for the Tasks API: credential storage, consent and authorization."""

from gtasks_mcp.google.exceptions import (
    AuthorizationError,
    ConsentDeniedError,
    CredentialsNotFoundError,
    CredentialStoreError,
    GoogleAuthError,
    ProviderError,
    TokenError,
)
from gtasks_mcp.google.oauth import AuthorizedClient, GoogleAuthorizer
from gtasks_mcp.google.store import AppCredentials, CredentialRecord, CredentialStore

__all__ = [
    "GoogleAuthorizer",
    "AuthorizedClient",
    "CredentialStore",
    "CredentialRecord",
    "AppCredentials",
    "GoogleAuthError",
    "AuthorizationError",
    "ConsentDeniedError",
    "ProviderError",
    "CredentialsNotFoundError",
    "CredentialStoreError",
    "TokenError",
]
