"""Google authentication exceptions."""


class GoogleAuthError(Exception):
    """Base exception for Google authentication errors."""

    pass


class AuthorizationError(GoogleAuthError):
    """Raised when an authorize() attempt could not produce a client."""

    pass


class ConsentDeniedError(AuthorizationError):
    """Raised when the user declines the consent request."""

    def __init__(self, reason: str = "access_denied"):
        self.reason = reason
        super().__init__(f"User declined authorization ({reason})")


class ProviderError(AuthorizationError):
    """Raised when the consent provider or the network fails during consent."""

    pass


class CredentialsNotFoundError(ProviderError):
    """Raised when OAuth credentials file is not found."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Credentials file not found at {path}. "
            "Please download OAuth credentials from Google Cloud Console."
        )


class TokenError(GoogleAuthError):
    """Raised when there's an issue with the OAuth token."""

    pass


class CredentialStoreError(GoogleAuthError):
    """Raised when the token file or the credentials file cannot be read or written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot access {path}: {reason}")
