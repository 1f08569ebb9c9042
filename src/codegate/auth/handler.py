"""OAuth2 authorization code handler for protecting HTTP routes.

Decides, per request, whether a bearer token authenticates the caller or
whether the user agent must be redirected to the authorization server and
resumed later through the callback route.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from codegate.auth.models.config import HandlerConfig, HandlerConfigBuilder, RouteHandle
from codegate.auth.models.errors import (
    AuthorizationRedirect,
    CallbackNotConfiguredError,
)
from codegate.auth.models.flow import CallbackResponse, InlineTokenStatus, Reroute
from codegate.auth.models.tokens import User
from codegate.auth.primitives.callback_target import resolve_callback_target
from codegate.auth.services.authorize import AuthorizationURLBuilder
from codegate.auth.services.callback import CallbackExchangeHandler
from codegate.auth.services.credentials import CredentialExtractor
from codegate.auth.services.provider import (
    OAuth2Provider,
    supports_inline_tokens,
    verify_provider,
)
from codegate.auth.services.session import SessionUpgradeManager
from codegate.web.context import RequestContext

logger = logging.getLogger(__name__)


class OAuth2AuthHandler:
    """Protects routes with the OAuth2 authorization code flow.

    Setup calls (``add_authority``, ``add_authorities``, ``extra_params``,
    ``setup_callback``) belong to route registration and must happen before
    traffic starts. Each one publishes a new configuration snapshot; a
    request reads a single snapshot from start to finish.
    """

    def __init__(self, provider: OAuth2Provider, callback_url: str | None = None):
        """Build the handler.

        Args:
            provider: OAuth2 provider configured for the auth code flow
            callback_url: Absolute URL of the callback route, or None to
                rely on the provider's default redirect URI

        Raises:
            ProviderFlowError: If the provider uses another OAuth2 flow
            CallbackURLError: If the callback URL is malformed
        """
        self._provider = verify_provider(provider)
        target = resolve_callback_target(callback_url)

        self._builder = HandlerConfigBuilder.from_target(
            target, supports_inline_token=supports_inline_tokens(provider)
        )
        self._config = self._builder.build()

        self._authorization = AuthorizationURLBuilder(provider)
        self._credentials = CredentialExtractor(provider)
        self._callback = CallbackExchangeHandler(provider, SessionUpgradeManager())

    @property
    def config(self) -> HandlerConfig:
        return self._config

    @property
    def callback_route(self) -> RouteHandle | None:
        return self._config.callback_route

    # ================================
    # Setup
    # ================================

    def add_authority(self, authority: str) -> OAuth2AuthHandler:
        return self.add_authorities([authority])

    def add_authorities(self, authorities: Iterable[str]) -> OAuth2AuthHandler:
        self._builder.add_scopes(authorities)
        self._config = self._builder.build()
        return self

    def extra_params(self, extra_params: Mapping[str, Any] | None) -> OAuth2AuthHandler:
        """Replace the extra parameters sent to the provider.

        Extra parameters are merged into both the authorization request and
        the token exchange, and may override the computed keys.
        """
        self._builder.set_extra_params(extra_params)
        self._config = self._builder.build()
        return self

    def setup_callback(self, route: RouteHandle) -> OAuth2AuthHandler:
        """Bind the route that receives authorization server callbacks.

        The route's path is forced to the callback URL's path when one was
        configured, and its method to GET. Binding again replaces the
        previous route.
        """
        if self._config.callback_route is not None:
            logger.warning(
                f"Rebinding callback route from {self._config.callback_route.path}"
            )

        if self._config.callback_path:
            route = route.with_path(self._config.callback_path)
        route = route.with_methods("GET")

        self._builder.set_callback_route(route)
        self._config = self._builder.build()

        logger.info(f"Callback route bound to {route.path}")
        return self

    # ================================
    # Request handling
    # ================================

    async def handle(self, context: RequestContext) -> User | None:
        """Authenticate a protected request.

        A user already attached to the context (e.g. restored from the
        session) is accepted as-is; otherwise credentials are parsed.
        """
        if context.user is not None:
            return context.user
        return await self.parse_credentials(context)

    async def parse_credentials(self, context: RequestContext) -> User | None:
        """Authenticate the request or fail it with a redirect.

        Returns:
            The authenticated user, or None if the request was aborted

        Raises:
            CallbackNotConfiguredError: If no callback route is bound
            HTTPStatusError: 401 if an inline token was presented and rejected
            AuthorizationRedirect: If the user agent must visit the
                authorization server
        """
        config = self._config

        if config.callback_route is None:
            raise CallbackNotConfiguredError()

        result = await self._credentials.try_inline_token(config, context)

        if result.status is InlineTokenStatus.AUTHENTICATED:
            return result.user

        if result.status is InlineTokenStatus.REJECTED:
            # A rejected token never falls back to the redirect
            raise result.error

        if context.aborted:
            return None

        raise AuthorizationRedirect(
            self._authorization.build_authorization_uri(config, context.uri)
        )

    async def handle_callback(
        self, context: RequestContext
    ) -> CallbackResponse | Reroute | None:
        """Handle a request on the bound callback route."""
        return await self._callback.handle(self._config, context)
