"""Per-request context shared between the web layer and the handler."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, MutableMapping, Protocol

from codegate.auth.models.tokens import User

logger = logging.getLogger(__name__)


class Session(Protocol):
    """Protocol for a server-side session."""

    id: str
    data: MutableMapping[str, Any]

    async def regenerate_id(self) -> str:
        """Move the session to a fresh identifier and return it.

        The previous identifier must stop resolving to this session.
        """
        ...


@dataclass
class RequestContext:
    """Request state the handler reads and the web layer translates.

    ``uri`` is the path plus query string of the incoming request.
    """

    uri: str
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    query_params: Mapping[str, str] = field(default_factory=dict)
    session: Session | None = None
    user: User | None = None
    aborted: bool = False

    def get_param(self, name: str) -> str | None:
        return self.query_params.get(name)

    def set_user(self, user: User) -> bool:
        """Attach the authenticated user.

        Returns False without touching the context if the request was
        aborted while the provider call was pending.
        """
        if self.aborted:
            logger.debug(f"Discarding late authentication result for {self.uri}")
            return False

        self.user = user
        return True

    def abort(self) -> None:
        self.aborted = True
