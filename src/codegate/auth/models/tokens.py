"""Token and identity models.

Contains the token endpoint response and the authenticated user that is
attached to a request once a token or authorization code checks out.
"""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field


class User(BaseModel):
    """Authenticated principal attached to a request.

    Built from a token endpoint response or a token introspection result.
    """

    subject: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expires_at: float | None = None  # Unix timestamp
    scope: str | None = None
    claims: dict[str, Any] = Field(default_factory=dict)

    def is_expired(self, buffer_seconds: float = 0.0) -> bool:
        """Check if the user's access token has expired.

        Args:
            buffer_seconds: Treat the token as expired this many seconds early
        """
        if self.expires_at is None:
            return False  # No expiry means token doesn't expire

        return time.time() >= (self.expires_at - buffer_seconds)

    @classmethod
    def from_introspection(cls, token: str, payload: dict[str, Any]) -> User:
        """Build a user from an RFC 7662 introspection response."""
        exp = payload.get("exp")
        return cls(
            subject=payload.get("sub") or payload.get("username"),
            access_token=token,
            token_type=payload.get("token_type", "Bearer"),
            expires_at=float(exp) if exp is not None else None,
            scope=payload.get("scope"),
            claims=payload,
        )


class TokenResponse(BaseModel):
    """OAuth 2.0 token response (RFC 6749 Section 5).

    Represents the response from a token endpoint, including both
    successful responses (Section 5.1) and error responses (Section 5.2).
    """

    # Success response fields (RFC 6749 Section 5.1)
    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    scope: str | None = None
    id_token: str | None = None

    # Error response fields (RFC 6749 Section 5.2)
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    model_config = {"extra": "allow"}

    def is_success(self) -> bool:
        """Check if token response indicates success."""
        return self.error is None and self.access_token is not None

    def is_error(self) -> bool:
        """Check if token response indicates an error."""
        return self.error is not None

    def calculate_expires_at(self) -> float | None:
        """Calculate absolute expiry timestamp from expires_in.

        Returns:
            Unix timestamp when token expires, or None if no expiry
        """
        if self.expires_in is None:
            return None
        return time.time() + self.expires_in

    def to_user(self) -> User:
        """Convert successful token response to an authenticated User.

        Raises:
            ValueError: If response is not successful
        """
        if not self.is_success():
            raise ValueError("Cannot convert error response to User")

        return User(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            token_type=self.token_type,
            expires_at=self.calculate_expires_at(),
            scope=self.scope,
            claims=self.model_dump(
                exclude_none=True, exclude={"access_token", "refresh_token"}
            ),
        )
