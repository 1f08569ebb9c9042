"""Credential provider abstractions.

Providers are described by capability queries rather than concrete types,
so any object implementing the protocol (including test doubles) can back
the handler.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol, TypeVar

from codegate.auth.models.errors import ProviderFlowError
from codegate.auth.models.tokens import User

logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    """Protocol for anything that can turn credentials into a User."""

    async def authenticate(self, credentials: dict[str, Any]) -> User:
        """Authenticate a credential set and return the resulting user.

        Raises:
            Exception: Any provider failure; callers propagate it as-is
        """
        ...

    def supports_inline_token_validation(self) -> bool:
        """Whether bearer tokens can be validated without a redirect."""
        ...

    async def decode_token(self, token: str) -> User:
        """Validate a bearer token and return its user.

        Raises:
            TokenValidationError: If the token is invalid or expired
        """
        ...


class OAuth2Provider(AuthProvider, Protocol):
    """Protocol for providers able to drive the authorization code flow."""

    def supports_authorization_code_flow(self) -> bool:
        """Whether the provider is configured for the auth code flow."""
        ...

    def authorize_url(self, params: Mapping[str, Any]) -> str:
        """Build the authorization server URL for the given parameters.

        Recognized keys are ``state``, ``redirect_uri`` and ``scopes`` (a
        list); any other key is passed through to the authorization server.
        """
        ...


P = TypeVar("P")


def verify_provider(provider: P) -> P:
    """Check that an OAuth2-capable provider uses the auth code flow.

    Providers that do not expose ``supports_authorization_code_flow`` are
    not OAuth2 providers (e.g. plain JWT validators) and pass through.

    Raises:
        ProviderFlowError: If an OAuth2 provider uses any other flow
    """
    supports_auth_code = getattr(provider, "supports_authorization_code_flow", None)

    if supports_auth_code is not None and not supports_auth_code():
        raise ProviderFlowError(
            "OAuth2 + Bearer auth requires the OAuth2 authorization code flow"
        )

    return provider


def supports_inline_tokens(provider: Any) -> bool:
    """Capability query with a False default for providers lacking it."""
    query = getattr(provider, "supports_inline_token_validation", None)
    return bool(query()) if query is not None else False
