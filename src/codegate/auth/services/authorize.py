"""Authorization server redirect construction."""

from __future__ import annotations

import logging

from codegate.auth.models.config import HandlerConfig
from codegate.auth.models.errors import CallbackNotConfiguredError
from codegate.auth.models.flow import AuthorizationRequestParams
from codegate.auth.services.provider import OAuth2Provider

logger = logging.getLogger(__name__)


class AuthorizationURLBuilder:
    """Builds the URL the user agent is redirected to for authorization.

    The original request URI travels as ``state`` so the user lands back
    where they started once the round trip completes.
    """

    def __init__(self, provider: OAuth2Provider):
        self._provider = provider

    def build_params(
        self, config: HandlerConfig, original_uri: str
    ) -> AuthorizationRequestParams:
        """Assemble the authorization request parameters.

        Raises:
            CallbackNotConfiguredError: If no callback route is bound
        """
        if config.callback_route is None:
            raise CallbackNotConfiguredError()

        return AuthorizationRequestParams(
            state=original_uri,
            redirect_uri=config.redirect_uri(),
            extra_params=config.extra_params,
            scopes=config.scopes,
        )

    def build_authorization_uri(self, config: HandlerConfig, original_uri: str) -> str:
        """Build the authorization URI for a request.

        Args:
            config: Handler configuration snapshot for this request
            original_uri: Path and query of the request being protected

        Returns:
            The provider's authorization URL, unmodified

        Raises:
            CallbackNotConfiguredError: If no callback route is bound
        """
        params = self.build_params(config, original_uri)
        authorization_uri = self._provider.authorize_url(params.to_provider_config())

        logger.debug(f"Redirecting {original_uri} to the authorization server")
        return authorization_uri
