"""Authorization callback handling.

The authorization server sends the user agent back to the callback route
with a one-time ``code``. The code is exchanged with the provider in a
single attempt; on success the caller's session is upgraded.

    AWAITING_CODE -> EXCHANGING -> AUTHENTICATED | FAILED
"""

from __future__ import annotations

import logging

from codegate.auth.models.config import HandlerConfig
from codegate.auth.models.errors import HTTPStatusError
from codegate.auth.models.flow import CallbackRequestParams, CallbackResponse, Reroute
from codegate.auth.services.provider import AuthProvider
from codegate.auth.services.session import SessionUpgradeManager
from codegate.web.context import RequestContext

logger = logging.getLogger(__name__)


class CallbackExchangeHandler:
    """Exchanges the callback's authorization code for an authenticated user."""

    def __init__(
        self,
        provider: AuthProvider,
        session_manager: SessionUpgradeManager | None = None,
    ):
        self._provider = provider
        self._session_manager = session_manager or SessionUpgradeManager()

    async def handle(
        self, config: HandlerConfig, context: RequestContext
    ) -> CallbackResponse | Reroute | None:
        """Handle a callback request.

        Args:
            config: Handler configuration snapshot for this request
            context: The callback request

        Returns:
            The response to send, a reroute instruction, or None if the
            request was aborted while the exchange was in flight

        Raises:
            HTTPStatusError: 400 if the ``code`` parameter is missing
            Exception: Provider failures propagate unchanged
        """
        params = CallbackRequestParams.from_query(context.query_params)

        if params.code is None:
            logger.warning(f"Callback {context.uri} is missing the code parameter")
            raise HTTPStatusError(400, "Missing code parameter")

        exchange_config = params.to_exchange_config(
            redirect_uri=config.redirect_uri(),
            extra_params=config.extra_params,
        )

        logger.debug("Exchanging authorization code with the provider")
        try:
            user = await self._provider.authenticate(exchange_config)
        except Exception as e:
            logger.warning(f"Authorization code exchange failed: {e}")
            raise

        if not context.set_user(user):
            return None

        logger.info("Authorization code exchange succeeded")
        return await self._session_manager.complete_upgrade(
            context.session, params.state
        )
