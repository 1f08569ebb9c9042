"""Exception hierarchy for the authorization code handler.

Configuration errors are raised while the handler is being built or wired
into routes. Request errors carry an HTTP status so the web layer can turn
them into responses without inspecting the failure further.
"""

from __future__ import annotations


class OAuth2Error(Exception):
    """Base exception for all OAuth 2.0 related errors."""

    pass


class ConfigurationError(OAuth2Error):
    """Raised when the handler is set up incorrectly."""

    pass


class ProviderFlowError(ConfigurationError):
    """Raised when an OAuth2 provider is not configured for the auth code flow."""

    pass


class CallbackURLError(ConfigurationError):
    """Raised when the configured callback URL cannot be parsed."""

    pass


class CallbackNotConfiguredError(ConfigurationError):
    """Raised when a redirect is needed but no callback route was bound.

    This indicates a setup bug in the application, not a client error.
    """

    def __init__(self, message: str = "callback route is not configured.") -> None:
        super().__init__(message)


class HTTPStatusError(OAuth2Error):
    """Raised when a request must be failed with a specific HTTP status."""

    def __init__(self, status_code: int, detail: str | None = None) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail or f"HTTP {status_code}")


class AuthorizationRedirect(HTTPStatusError):
    """Raised when the user agent must be sent to the authorization server.

    The request is failed with a 302 whose target is the authorization URI.
    """

    def __init__(self, location: str) -> None:
        self.location = location
        super().__init__(302, location)


class TokenError(OAuth2Error):
    """Raised when token operations fail."""

    pass


class TokenValidationError(TokenError):
    """Raised when an inline bearer token is invalid, expired or inactive."""

    pass


class TokenExchangeError(TokenError):
    """Raised when authorization code to token exchange fails."""

    pass
