"""Inline bearer token authentication.

Requests carrying ``Authorization: Bearer <token>`` are validated directly
against the provider, without the authorization server round trip.
"""

from __future__ import annotations

import logging

from codegate.auth.models.config import HandlerConfig
from codegate.auth.models.errors import HTTPStatusError
from codegate.auth.models.flow import InlineTokenResult
from codegate.auth.primitives.bearer import parse_authorization
from codegate.auth.services.provider import AuthProvider
from codegate.web.context import RequestContext

logger = logging.getLogger(__name__)


class CredentialExtractor:
    """Tries to authenticate a request with its inline bearer token."""

    def __init__(self, provider: AuthProvider):
        self._provider = provider

    async def try_inline_token(
        self, config: HandlerConfig, context: RequestContext
    ) -> InlineTokenResult:
        """Attempt inline token authentication.

        A missing Authorization header is not an error: the result is
        NOT_ATTEMPTED and the caller falls through to the redirect. A header
        that is present but malformed, or a token the provider refuses,
        yields REJECTED with a 401.

        Returns:
            InlineTokenResult describing what happened
        """
        if not config.supports_inline_token:
            return InlineTokenResult.not_attempted()

        try:
            token = parse_authorization(context.headers, optional=True)
        except HTTPStatusError as e:
            logger.warning(f"Rejected Authorization header on {context.uri}: {e}")
            return InlineTokenResult.rejected(e)

        if token is None:
            return InlineTokenResult.not_attempted()

        try:
            user = await self._provider.decode_token(token)
        except Exception as e:
            logger.warning(f"Inline token rejected on {context.uri}: {e}")
            return InlineTokenResult.rejected(HTTPStatusError(401, str(e)))

        if not context.set_user(user):
            return InlineTokenResult.not_attempted()

        logger.debug(f"Authenticated {context.uri} with inline token")
        return InlineTokenResult.authenticated(user)
