"""Handler configuration models.

The handler is configured through a builder during route registration.
Every setup call publishes a new frozen ``HandlerConfig`` snapshot, and a
request reads exactly one snapshot for its whole lifetime. Configure the
handler before serving traffic, not during.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Iterable, Mapping


@dataclass(frozen=True)
class CallbackTarget:
    """Origin and path parsed out of the configured callback URL."""

    host: str
    callback_path: str


@dataclass(frozen=True)
class RouteHandle:
    """Lightweight reference to a route owned by the routing layer.

    The handler only reads the path and methods; the routing layer owns
    the route's lifecycle.
    """

    name: str
    path: str
    methods: tuple[str, ...] = ("GET",)

    def with_path(self, path: str) -> RouteHandle:
        return replace(self, path=path)

    def with_methods(self, *methods: str) -> RouteHandle:
        return replace(self, methods=tuple(m.upper() for m in methods))


@dataclass(frozen=True)
class HandlerConfig:
    """Immutable snapshot of the handler configuration."""

    host: str | None = None
    callback_path: str | None = None
    supports_inline_token: bool = False
    scopes: tuple[str, ...] = ()
    extra_params: Mapping[str, Any] | None = None
    callback_route: RouteHandle | None = None

    def redirect_uri(self) -> str | None:
        """Absolute ``redirect_uri`` for the bound callback route.

        None when no callback host was configured, so the provider's own
        default is used.
        """
        if self.host is None or self.callback_route is None:
            return None
        return self.host + self.callback_route.path


@dataclass
class HandlerConfigBuilder:
    """Collects setup calls and produces ``HandlerConfig`` snapshots."""

    host: str | None = None
    callback_path: str | None = None
    supports_inline_token: bool = False
    scopes: dict[str, None] = field(default_factory=dict)  # ordered set
    extra_params: dict[str, Any] | None = None
    callback_route: RouteHandle | None = None

    @classmethod
    def from_target(
        cls, target: CallbackTarget | None, supports_inline_token: bool
    ) -> HandlerConfigBuilder:
        if target is None:
            return cls(supports_inline_token=supports_inline_token)
        return cls(
            host=target.host,
            callback_path=target.callback_path,
            supports_inline_token=supports_inline_token,
        )

    def add_scopes(self, scopes: Iterable[str]) -> HandlerConfigBuilder:
        for scope in scopes:
            self.scopes[scope] = None
        return self

    def set_extra_params(
        self, extra_params: Mapping[str, Any] | None
    ) -> HandlerConfigBuilder:
        self.extra_params = dict(extra_params) if extra_params is not None else None
        return self

    def set_callback_route(self, route: RouteHandle) -> HandlerConfigBuilder:
        self.callback_route = route
        return self

    def build(self) -> HandlerConfig:
        extra = (
            MappingProxyType(dict(self.extra_params))
            if self.extra_params is not None
            else None
        )
        return HandlerConfig(
            host=self.host,
            callback_path=self.callback_path,
            supports_inline_token=self.supports_inline_token,
            scopes=tuple(self.scopes),
            extra_params=extra,
            callback_route=self.callback_route,
        )
