"""Authorization code flow models.

Contains the per-request parameter sets handed to the provider and the
results produced by the credential and callback handling steps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from codegate.auth.models.errors import HTTPStatusError
from codegate.auth.models.tokens import User


class FlowType(str, Enum):
    """OAuth2 flows a provider can be configured for."""

    AUTH_CODE = "authorization_code"
    CLIENT_CREDENTIALS = "client_credentials"
    PASSWORD = "password"
    AUTH_JWT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


@dataclass(frozen=True)
class AuthorizationRequestParams:
    """Parameters for building the authorization server redirect."""

    state: str
    redirect_uri: str | None = None
    extra_params: Mapping[str, Any] | None = None
    scopes: tuple[str, ...] = ()

    def to_provider_config(self) -> dict[str, Any]:
        """Assemble the key-value configuration passed to the provider.

        Extra parameters are merged over ``state`` and ``redirect_uri``.
        Scopes are passed as a list because the provider knows how to
        encode them on the wire.
        """
        config: dict[str, Any] = {"state": self.state}

        if self.redirect_uri is not None:
            config["redirect_uri"] = self.redirect_uri

        if self.extra_params is not None:
            config.update(self.extra_params)

        if self.scopes:
            config["scopes"] = list(self.scopes)

        return config


@dataclass(frozen=True)
class CallbackRequestParams:
    """Query parameters received on the authorization callback."""

    code: str | None = None
    state: str | None = None

    @classmethod
    def from_query(cls, query_params: Mapping[str, str]) -> CallbackRequestParams:
        return cls(code=query_params.get("code"), state=query_params.get("state"))

    def to_exchange_config(
        self,
        redirect_uri: str | None = None,
        extra_params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Assemble the token exchange input.

        ``state`` is deliberately left out: it only tells us where to send
        the user agent afterwards.
        """
        config: dict[str, Any] = {"code": self.code}

        if redirect_uri is not None:
            config["redirect_uri"] = redirect_uri

        if extra_params is not None:
            config.update(extra_params)

        return config


class InlineTokenStatus(str, Enum):
    NOT_ATTEMPTED = "not_attempted"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


@dataclass(frozen=True)
class InlineTokenResult:
    """Outcome of trying to authenticate a request with its bearer token."""

    status: InlineTokenStatus
    user: User | None = None
    error: HTTPStatusError | None = None

    @classmethod
    def not_attempted(cls) -> InlineTokenResult:
        return cls(InlineTokenStatus.NOT_ATTEMPTED)

    @classmethod
    def authenticated(cls, user: User) -> InlineTokenResult:
        return cls(InlineTokenStatus.AUTHENTICATED, user=user)

    @classmethod
    def rejected(cls, error: HTTPStatusError) -> InlineTokenResult:
        return cls(InlineTokenStatus.REJECTED, error=error)


@dataclass(frozen=True)
class CallbackResponse:
    """A complete HTTP response produced by the callback handler."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""

    @property
    def location(self) -> str | None:
        return self.headers.get("Location")


@dataclass(frozen=True)
class Reroute:
    """Instruction to dispatch the request internally to another path."""

    path: str
