"""Session upgrade after a successful authorization callback."""

from __future__ import annotations

import logging

from codegate.auth.models.flow import CallbackResponse, Reroute
from codegate.web.context import Session

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class SessionUpgradeManager:
    """Completes the callback once the user has been authenticated.

    With a session, the identifier is regenerated (OWASP session fixation
    guidance) and the user agent is redirected so the one-time callback URL
    drops out of the address bar and history. Without a session there is
    nothing to regenerate, so the request is rerouted internally instead.
    """

    async def complete_upgrade(
        self, session: Session | None, state: str | None
    ) -> CallbackResponse | Reroute:
        destination = state if state is not None else "/"

        if session is None:
            logger.debug(f"No session available, rerouting to {destination}")
            return Reroute(destination)

        old_id = session.id
        await session.regenerate_id()
        if session.id == old_id:
            raise RuntimeError("Session identifier was not regenerated")

        logger.info(
            f"Session upgraded after authentication, redirecting to {destination}"
        )
        return CallbackResponse(
            status_code=302,
            headers={**NO_CACHE_HEADERS, "Location": destination},
            body=f"Redirecting to {destination}.",
        )
