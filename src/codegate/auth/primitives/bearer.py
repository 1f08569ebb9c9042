"""Authorization header parsing."""

from __future__ import annotations

from typing import Mapping

from codegate.auth.models.errors import HTTPStatusError

BEARER = "Bearer"


def parse_authorization(
    headers: Mapping[str, str],
    scheme: str = BEARER,
    optional: bool = True,
) -> str | None:
    """Extract the credential from an ``Authorization: <scheme> <value>`` header.

    Args:
        headers: Request headers (case-insensitive mapping, or lower-case keys)
        scheme: Expected authorization scheme, compared case-insensitively
        optional: Whether a missing header is acceptable

    Returns:
        The credential, or None if the header is absent and optional

    Raises:
        HTTPStatusError: 401 if the header is missing (and required),
            malformed, or uses a different scheme
    """
    authorization = headers.get("authorization")
    if authorization is None:
        authorization = headers.get("Authorization")

    if authorization is None:
        if optional:
            return None
        raise HTTPStatusError(401, "Missing Authorization header")

    kind, sep, credential = authorization.strip().partition(" ")
    if not sep or not kind or not credential.strip():
        raise HTTPStatusError(401, "Malformed Authorization header")

    if kind.lower() != scheme.lower():
        raise HTTPStatusError(401, f"Unsupported authorization scheme: {kind}")

    return credential.strip()
