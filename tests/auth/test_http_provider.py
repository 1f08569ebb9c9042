"""Tests for the HTTP-backed OAuth2 provider.

- Authorization URL encoding (scopes, extra keys, existing query)
- Authorization code exchange and error responses
- Token introspection for inline bearer tokens
- Environment configuration
"""

import time
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from pydantic import ValidationError

from codegate.auth.handler import OAuth2AuthHandler
from codegate.auth.models.errors import (
    ProviderFlowError,
    TokenExchangeError,
    TokenValidationError,
)
from codegate.auth.models.flow import FlowType
from codegate.auth.services.http_provider import (
    HttpOAuth2Provider,
    OAuth2ProviderConfig,
)


def json_response(status_code, payload):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


class TestAuthorizeUrl:
    def setup_method(self):
        self.provider = HttpOAuth2Provider(
            OAuth2ProviderConfig(
                authorization_endpoint="https://auth.example.com/authorize",
                token_endpoint="https://auth.example.com/token",
                client_id="client-456",
            )
        )

    def test_scopes_are_joined_into_scope_parameter(self):
        # Act
        url = self.provider.authorize_url(
            {
                "state": "/dashboard",
                "redirect_uri": "https://myapp.com/callback",
                "scopes": ["read", "write"],
                "prompt": "consent",
            }
        )

        # Assert
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        assert parsed.netloc == "auth.example.com"
        assert parsed.path == "/authorize"
        assert query["response_type"] == ["code"]
        assert query["client_id"] == ["client-456"]
        assert query["state"] == ["/dashboard"]
        assert query["redirect_uri"] == ["https://myapp.com/callback"]
        assert query["scope"] == ["read write"]
        assert query["prompt"] == ["consent"]
        assert "scopes" not in query

    def test_custom_scope_separator(self):
        # Arrange
        provider = HttpOAuth2Provider(
            OAuth2ProviderConfig(
                authorization_endpoint="https://auth.example.com/authorize",
                token_endpoint="https://auth.example.com/token",
                client_id="client-456",
                scope_separator=",",
            )
        )

        # Act
        url = provider.authorize_url({"state": "/", "scopes": ["user", "repo"]})

        # Assert
        assert parse_qs(urlparse(url).query)["scope"] == ["user,repo"]

    def test_endpoint_with_existing_query_is_extended(self):
        # Arrange
        provider = HttpOAuth2Provider(
            OAuth2ProviderConfig(
                authorization_endpoint="https://auth.example.com/authorize?tenant=t1",
                token_endpoint="https://auth.example.com/token",
                client_id="client-456",
            )
        )

        # Act
        url = provider.authorize_url({"state": "/"})

        # Assert
        query = parse_qs(urlparse(url).query)
        assert query["tenant"] == ["t1"]
        assert query["state"] == ["/"]

    def test_string_and_number_params_are_sent_as_given(self):
        # Act
        url = self.provider.authorize_url(
            {"state": "/", "access_type": "offline", "max_age": 300}
        )

        # Assert
        query = parse_qs(urlparse(url).query)
        assert query["access_type"] == ["offline"]
        assert query["max_age"] == ["300"]

    @pytest.mark.parametrize("value", [["a", "b"], True, None, {"k": "v"}])
    def test_non_scalar_param_is_rejected(self, value):
        # Act & Assert
        with pytest.raises(TypeError, match="prompt"):
            self.provider.authorize_url({"state": "/", "prompt": value})


class TestCapabilities:
    def test_default_config_supports_auth_code_but_not_inline_tokens(self):
        # Arrange
        provider = HttpOAuth2Provider(
            OAuth2ProviderConfig(
                authorization_endpoint="https://auth.example.com/authorize",
                token_endpoint="https://auth.example.com/token",
                client_id="client-456",
            )
        )

        # Act & Assert
        assert provider.supports_authorization_code_flow()
        assert not provider.supports_inline_token_validation()

    def test_handler_rejects_provider_configured_for_other_flow(self):
        # Arrange
        provider = HttpOAuth2Provider(
            OAuth2ProviderConfig(
                authorization_endpoint="https://auth.example.com/authorize",
                token_endpoint="https://auth.example.com/token",
                client_id="client-456",
                flow_type=FlowType.CLIENT_CREDENTIALS,
            )
        )

        # Act & Assert
        with pytest.raises(ProviderFlowError):
            OAuth2AuthHandler(provider)


class TestAuthenticate:
    def setup_method(self):
        self.provider = HttpOAuth2Provider(
            OAuth2ProviderConfig(
                authorization_endpoint="https://auth.example.com/authorize",
                token_endpoint="https://auth.example.com/token",
                client_id="client-456",
                client_secret="s3cret",
            )
        )
        self.provider._http_client = AsyncMock()

    async def test_successful_exchange_returns_user(self):
        # Arrange
        self.provider._http_client.post.return_value = json_response(
            200,
            {
                "access_token": "access-token-xyz",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "refresh-token-abc",
                "scope": "read write",
            },
        )

        # Act
        user = await self.provider.authenticate(
            {"code": "abc123", "redirect_uri": "https://myapp.com/callback"}
        )

        # Assert
        assert user.access_token == "access-token-xyz"
        assert user.refresh_token == "refresh-token-abc"
        assert user.scope == "read write"
        assert user.expires_at > time.time()
        assert "access_token" not in user.claims

        call_args = self.provider._http_client.post.call_args
        assert call_args[0][0] == "https://auth.example.com/token"
        form_data = call_args[1]["data"]
        assert form_data == {
            "grant_type": "authorization_code",
            "client_id": "client-456",
            "client_secret": "s3cret",
            "code": "abc123",
            "redirect_uri": "https://myapp.com/callback",
        }

    async def test_non_scalar_credential_is_rejected_before_request(self):
        # Act & Assert
        with pytest.raises(TypeError, match="audience"):
            await self.provider.authenticate(
                {"code": "abc123", "audience": ["api-1", "api-2"]}
            )
        self.provider._http_client.post.assert_not_called()

    async def test_oauth_error_response_raises_exchange_error(self):
        # Arrange
        self.provider._http_client.post.return_value = json_response(
            400,
            {"error": "invalid_grant", "error_description": "Code expired"},
        )

        # Act & Assert
        with pytest.raises(TokenExchangeError, match="invalid_grant"):
            await self.provider.authenticate({"code": "stale"})

    async def test_network_error_raises_exchange_error(self):
        # Arrange
        self.provider._http_client.post.side_effect = httpx.ConnectError("refused")

        # Act & Assert
        with pytest.raises(TokenExchangeError, match="HTTP error"):
            await self.provider.authenticate({"code": "abc123"})

    async def test_non_json_response_raises_exchange_error(self):
        # Arrange
        response = MagicMock()
        response.status_code = 502
        response.json.side_effect = ValueError("Expecting value")
        self.provider._http_client.post.return_value = response

        # Act & Assert
        with pytest.raises(TokenExchangeError, match="Invalid token response"):
            await self.provider.authenticate({"code": "abc123"})


class TestDecodeToken:
    def setup_method(self):
        self.provider = HttpOAuth2Provider(
            OAuth2ProviderConfig(
                authorization_endpoint="https://auth.example.com/authorize",
                token_endpoint="https://auth.example.com/token",
                introspection_endpoint="https://auth.example.com/introspect",
                client_id="client-456",
            )
        )
        self.provider._http_client = AsyncMock()

    async def test_active_token_returns_user(self):
        # Arrange
        self.provider._http_client.post.return_value = json_response(
            200,
            {
                "active": True,
                "sub": "alice",
                "scope": "read",
                "exp": time.time() + 600,
            },
        )

        # Act
        user = await self.provider.decode_token("good-token")

        # Assert
        assert self.provider.supports_inline_token_validation()
        assert user.subject == "alice"
        assert user.access_token == "good-token"
        assert user.scope == "read"
        form_data = self.provider._http_client.post.call_args[1]["data"]
        assert form_data == {"token": "good-token", "client_id": "client-456"}

    async def test_inactive_token_is_rejected(self):
        # Arrange
        self.provider._http_client.post.return_value = json_response(
            200, {"active": False}
        )

        # Act & Assert
        with pytest.raises(TokenValidationError, match="not active"):
            await self.provider.decode_token("revoked-token")

    async def test_expired_token_is_rejected(self):
        # Arrange
        self.provider._http_client.post.return_value = json_response(
            200, {"active": True, "sub": "alice", "exp": time.time() - 60}
        )

        # Act & Assert
        with pytest.raises(TokenValidationError, match="expired"):
            await self.provider.decode_token("old-token")

    async def test_introspection_http_error_is_rejected(self):
        # Arrange
        self.provider._http_client.post.side_effect = httpx.ReadTimeout("slow")

        # Act & Assert
        with pytest.raises(TokenValidationError, match="introspection failed"):
            await self.provider.decode_token("good-token")

    async def test_without_introspection_endpoint_tokens_are_rejected(self):
        # Arrange
        provider = HttpOAuth2Provider(
            OAuth2ProviderConfig(
                authorization_endpoint="https://auth.example.com/authorize",
                token_endpoint="https://auth.example.com/token",
                client_id="client-456",
            )
        )

        # Act & Assert
        with pytest.raises(TokenValidationError, match="not configured"):
            await provider.decode_token("any-token")


class TestProviderConfigFromEnv:
    def test_loads_values_with_prefix(self, monkeypatch):
        # Arrange
        monkeypatch.setenv("IDP_AUTHORIZATION_ENDPOINT", "https://idp/authorize")
        monkeypatch.setenv("IDP_TOKEN_ENDPOINT", "https://idp/token")
        monkeypatch.setenv("IDP_CLIENT_ID", "app")
        monkeypatch.setenv("IDP_TIMEOUT", "5")

        # Act
        config = OAuth2ProviderConfig.from_env(prefix="IDP_")

        # Assert
        assert config.authorization_endpoint == "https://idp/authorize"
        assert config.token_endpoint == "https://idp/token"
        assert config.client_id == "app"
        assert config.client_secret is None
        assert config.timeout == 5.0
        assert config.flow_type is FlowType.AUTH_CODE

    def test_missing_required_value_raises(self, monkeypatch):
        # Arrange
        monkeypatch.setenv("IDP_CLIENT_ID", "app")
        monkeypatch.delenv("IDP_AUTHORIZATION_ENDPOINT", raising=False)
        monkeypatch.delenv("IDP_TOKEN_ENDPOINT", raising=False)

        # Act & Assert
        with pytest.raises(ValidationError):
            OAuth2ProviderConfig.from_env(prefix="IDP_")
