"""Callback URL resolution.

Parses the configured callback URL once into the origin used to build
absolute ``redirect_uri`` values and the path the callback route serves.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from codegate.auth.models.config import CallbackTarget
from codegate.auth.models.errors import CallbackURLError

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


def resolve_callback_target(callback_url: str | None) -> CallbackTarget | None:
    """Resolve a callback URL into host and path.

    Args:
        callback_url: Absolute callback URL, or None to rely on the
            provider's default redirect URI

    Returns:
        CallbackTarget, or None when no callback URL is configured

    Raises:
        CallbackURLError: If the URL is malformed
    """
    if callback_url is None:
        return None

    try:
        parsed = urlsplit(callback_url)
        port = parsed.port
    except ValueError as e:
        raise CallbackURLError(f"Invalid callback URL {callback_url!r}: {e}") from e

    if not parsed.scheme or not parsed.hostname:
        raise CallbackURLError(
            f"Invalid callback URL {callback_url!r}: scheme and host are required"
        )

    hostname = parsed.hostname
    if ":" in hostname:
        hostname = f"[{hostname}]"  # IPv6 literal

    host = f"{parsed.scheme}://{hostname}"
    if port is not None and port != DEFAULT_PORTS.get(parsed.scheme):
        host = f"{host}:{port}"

    logger.debug(f"Resolved callback URL to host={host} path={parsed.path!r}")
    return CallbackTarget(host=host, callback_path=parsed.path)
