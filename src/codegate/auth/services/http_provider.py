"""HTTP-backed OAuth2 provider.

Talks to a standard authorization server: builds authorization URLs,
exchanges authorization codes at the token endpoint (RFC 6749 Section
4.1.3) and validates bearer tokens through token introspection (RFC 7662).
"""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ValidationError

from codegate.auth.models.errors import TokenExchangeError, TokenValidationError
from codegate.auth.models.flow import FlowType
from codegate.auth.models.tokens import TokenResponse, User

logger = logging.getLogger(__name__)


def _param_value(key: str, value: Any) -> str:
    """Encode a request parameter for a query string or form body.

    Strings pass through unchanged and numbers use their decimal form.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise TypeError(
        f"Parameter {key!r} must be a string or a number, "
        f"got {type(value).__name__}"
    )


class OAuth2ProviderConfig(BaseModel):
    """Authorization server endpoints and client credentials."""

    authorization_endpoint: str
    token_endpoint: str
    client_id: str
    client_secret: str | None = None
    introspection_endpoint: str | None = None
    flow_type: FlowType = FlowType.AUTH_CODE
    scope_separator: str = " "
    timeout: float = 30.0

    @classmethod
    def from_env(cls, prefix: str = "OAUTH2_") -> OAuth2ProviderConfig:
        """Load the configuration from environment variables.

        Reads ``<prefix>AUTHORIZATION_ENDPOINT``, ``<prefix>TOKEN_ENDPOINT``,
        ``<prefix>CLIENT_ID`` and optionally ``<prefix>CLIENT_SECRET``,
        ``<prefix>INTROSPECTION_ENDPOINT``, ``<prefix>FLOW_TYPE``,
        ``<prefix>SCOPE_SEPARATOR`` and ``<prefix>TIMEOUT``.

        Raises:
            ValidationError: If a required variable is missing
        """
        values = {
            name: os.getenv(f"{prefix}{name.upper()}")
            for name in cls.model_fields
        }
        return cls.model_validate({k: v for k, v in values.items() if v is not None})


class HttpOAuth2Provider:
    """OAuth2 provider for a remote authorization server.

    Inline bearer tokens can only be validated when an introspection
    endpoint is configured.
    """

    def __init__(self, config: OAuth2ProviderConfig):
        self.config = config
        self._http_client = httpx.AsyncClient(timeout=config.timeout)

    # ================================
    # Capabilities
    # ================================

    def supports_authorization_code_flow(self) -> bool:
        return self.config.flow_type is FlowType.AUTH_CODE

    def supports_inline_token_validation(self) -> bool:
        return self.config.introspection_endpoint is not None

    # ================================
    # Authorization URL
    # ================================

    def authorize_url(self, params: Mapping[str, Any]) -> str:
        """Build the authorization endpoint URL.

        The ``scopes`` list is encoded as a single ``scope`` parameter
        joined with the configured separator. Other values must be strings
        or numbers.

        Raises:
            TypeError: If a parameter value is neither a string nor a number
        """
        query: dict[str, str] = {
            "response_type": "code",
            "client_id": self.config.client_id,
        }

        for key, value in params.items():
            if key == "scopes":
                query["scope"] = self.config.scope_separator.join(value)
            else:
                query[key] = _param_value(key, value)

        endpoint = self.config.authorization_endpoint
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(query)}"

    # ================================
    # Token exchange
    # ================================

    async def authenticate(self, credentials: dict[str, Any]) -> User:
        """Exchange an authorization code for an access token.

        Raises:
            TokenExchangeError: If the exchange fails or is refused
            TypeError: If a credential value is neither a string nor a number
        """
        form_data = {"grant_type": "authorization_code", **self._client_auth()}
        form_data.update({k: _param_value(k, v) for k, v in credentials.items()})

        logger.debug(f"Exchanging authorization code at {self.config.token_endpoint}")

        try:
            response = await self._http_client.post(
                self.config.token_endpoint,
                data=form_data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise TokenExchangeError(f"HTTP error during token exchange: {e}") from e

        token_response = self._parse_token_response(response)

        if not token_response.is_success():
            logger.warning(
                f"Token exchange failed with {response.status_code}: "
                f"{token_response.error} - {token_response.error_description}"
            )
            raise TokenExchangeError(
                f"Token exchange failed: {token_response.error or 'unknown_error'}"
            )

        logger.info("Token exchange successful")
        return token_response.to_user()

    @staticmethod
    def _parse_token_response(response: httpx.Response) -> TokenResponse:
        try:
            return TokenResponse(**response.json())
        except (ValueError, TypeError, ValidationError) as e:
            raise TokenExchangeError(f"Invalid token response format: {e}") from e

    # ================================
    # Token validation
    # ================================

    async def decode_token(self, token: str) -> User:
        """Validate a bearer token through the introspection endpoint.

        Raises:
            TokenValidationError: If the token is inactive or cannot be checked
        """
        if self.config.introspection_endpoint is None:
            raise TokenValidationError("Token introspection is not configured")

        try:
            response = await self._http_client.post(
                self.config.introspection_endpoint,
                data={"token": token, **self._client_auth()},
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise TokenValidationError(f"Token introspection failed: {e}") from e
        except ValueError as e:
            raise TokenValidationError(f"Invalid introspection response: {e}") from e

        if not payload.get("active"):
            raise TokenValidationError("Token is not active")

        user = User.from_introspection(token, payload)
        if user.is_expired():
            raise TokenValidationError("Token has expired")

        return user

    def _client_auth(self) -> dict[str, str]:
        auth = {"client_id": self.config.client_id}
        if self.config.client_secret:
            auth["client_secret"] = self.config.client_secret
        return auth

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
