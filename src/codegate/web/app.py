"""Starlette integration for the OAuth2 authorization code handler.

Usage:

    handler = OAuth2AuthHandler(provider, "https://myapp.com/oauth2/callback")
    integration = OAuth2Integration(handler, SessionStore())

    app = Starlette(
        routes=[
            integration.callback_route(),
            Route("/dashboard", integration.protect(dashboard)),
        ]
    )
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Awaitable, Callable, TypeVar
from urllib.parse import unquote, urlsplit

from starlette.requests import ClientDisconnect, Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response
from starlette.routing import Route
from starlette.types import Message, Receive, Scope, Send

from codegate.auth.handler import OAuth2AuthHandler
from codegate.auth.models.config import RouteHandle
from codegate.auth.models.errors import (
    AuthorizationRedirect,
    ConfigurationError,
    HTTPStatusError,
)
from codegate.auth.models.flow import CallbackResponse, Reroute
from codegate.auth.models.tokens import User
from codegate.web.context import RequestContext
from codegate.web.sessions import MemorySession, SessionStore

logger = logging.getLogger(__name__)

DEFAULT_CALLBACK_PATH = "/callback"
SESSION_COOKIE = "codegate_session"
SESSION_USER_KEY = "user"
CLIENT_CLOSED_REQUEST = 499

Endpoint = Callable[[Request], Awaitable[Response]]
T = TypeVar("T")


class RerouteResponse(Response):
    """Dispatches the current request to another path of the same app.

    The rerouted request is a GET with an empty body.
    """

    def __init__(self, target: str) -> None:
        super().__init__()
        self.target = target

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        parsed = urlsplit(self.target)
        raw_path = parsed.path or "/"
        path = unquote(raw_path)

        rerouted = dict(scope)
        rerouted.update(
            method="GET",
            path=path,
            raw_path=raw_path.encode(),
            query_string=parsed.query.encode(),
        )

        body_sent = False

        async def rerouted_receive() -> Message:
            nonlocal body_sent
            if not body_sent:
                body_sent = True
                return {"type": "http.request", "body": b"", "more_body": False}
            return await receive()

        logger.debug(f"Rerouting {scope['path']} to {path}")
        await scope["app"](rerouted, rerouted_receive, send)


class OAuth2Integration:
    """Wires an ``OAuth2AuthHandler`` into Starlette routes.

    Translates handler outcomes into responses:
    - AuthorizationRedirect -> 302 to the authorization server
    - HTTPStatusError -> plain text response with the error status
    - ConfigurationError -> 500
    - Client gone before the provider answered -> 499

    Sessions are only created for the redirect and the callback. Requests
    authenticated by a bearer token never touch the session.
    """

    def __init__(
        self,
        handler: OAuth2AuthHandler,
        session_store: SessionStore | None = None,
        cookie_name: str = SESSION_COOKIE,
        secure_cookies: bool = False,
    ) -> None:
        self.handler = handler
        self.session_store = session_store
        self.cookie_name = cookie_name
        self.secure_cookies = secure_cookies

    # ================================
    # Routes
    # ================================

    def callback_route(self, route: RouteHandle | None = None) -> Route:
        """Bind the callback on the handler and return its Starlette route."""
        route = route or RouteHandle(name="oauth2_callback", path=DEFAULT_CALLBACK_PATH)
        self.handler.setup_callback(route)

        bound = self.handler.callback_route
        return Route(
            bound.path,
            self._handle_callback,
            methods=list(bound.methods),
            name=bound.name,
        )

    def protect(self, endpoint: Endpoint) -> Endpoint:
        """Wrap an endpoint so it only runs for authenticated requests.

        The user is available to the endpoint as ``request.state.user``.
        """

        @functools.wraps(endpoint)
        async def protected(request: Request) -> Response:
            session = self._find_session(request)
            context = self._build_context(request, session)

            try:
                user = await self._until_disconnect(
                    request, context, self.handler.handle
                )
            except AuthorizationRedirect as e:
                session = session or self._create_session()
                return self._with_cookie(RedirectResponse(e.location, 302), session)
            except HTTPStatusError as e:
                return PlainTextResponse(e.detail or "", status_code=e.status_code)
            except ConfigurationError as e:
                logger.error(f"OAuth2 handler misconfigured: {e}")
                return PlainTextResponse("Internal server error", status_code=500)

            if user is None:
                return Response(status_code=CLIENT_CLOSED_REQUEST)

            request.state.user = user
            return await endpoint(request)

        return protected

    # ================================
    # Callback
    # ================================

    async def _handle_callback(self, request: Request) -> Response:
        session = self._load_session(request)
        context = self._build_context(request, session)

        try:
            result = await self._until_disconnect(
                request, context, self.handler.handle_callback
            )
        except HTTPStatusError as e:
            return PlainTextResponse(e.detail or "", status_code=e.status_code)
        except Exception as e:
            logger.error(f"Error handling OAuth2 callback: {e}")
            return PlainTextResponse(str(e), status_code=500)

        if result is None:
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        self._store_user(session, context.user)

        if isinstance(result, Reroute):
            request.state.user = context.user
            return RerouteResponse(result.path)

        return self._with_cookie(self._to_response(result), session)

    @staticmethod
    def _to_response(result: CallbackResponse) -> Response:
        return PlainTextResponse(
            result.body, status_code=result.status_code, headers=result.headers
        )

    # ================================
    # Disconnect handling
    # ================================

    async def _until_disconnect(
        self,
        request: Request,
        context: RequestContext,
        call: Callable[[RequestContext], Awaitable[T]],
    ) -> T:
        """Run a handler call, aborting the context if the client leaves.

        The request body is read up front so that watching the receive
        channel cannot take it away from the endpoint.
        """
        try:
            await request.body()
        except ClientDisconnect:
            context.abort()
            return await call(context)

        watcher = asyncio.create_task(self._watch_disconnect(request, context))
        try:
            return await call(context)
        finally:
            watcher.cancel()
            try:
                await watcher
            except asyncio.CancelledError:
                pass

    @staticmethod
    async def _watch_disconnect(request: Request, context: RequestContext) -> None:
        while True:
            message = await request.receive()
            if message["type"] == "http.disconnect":
                logger.debug(f"Client disconnected during {context.uri}")
                context.abort()
                return

    # ================================
    # Helpers
    # ================================

    def _build_context(
        self, request: Request, session: MemorySession | None
    ) -> RequestContext:
        uri = request.url.path
        if request.url.query:
            uri = f"{uri}?{request.url.query}"

        return RequestContext(
            uri=uri,
            method=request.method,
            headers=request.headers,
            query_params=request.query_params,
            session=session,
            user=self._restore_user(request, session),
        )

    def _find_session(self, request: Request) -> MemorySession | None:
        if self.session_store is None:
            return None
        return self.session_store.get(request.cookies.get(self.cookie_name))

    def _create_session(self) -> MemorySession | None:
        if self.session_store is None:
            return None
        return self.session_store.create()

    def _load_session(self, request: Request) -> MemorySession | None:
        return self._find_session(request) or self._create_session()

    @staticmethod
    def _restore_user(request: Request, session: MemorySession | None) -> User | None:
        user = getattr(request.state, "user", None)
        if user is not None:
            return user

        if session is not None and SESSION_USER_KEY in session.data:
            user = User.model_validate(session.data[SESSION_USER_KEY])
            if not user.is_expired():
                return user
        return None

    @staticmethod
    def _store_user(session: MemorySession | None, user: User | None) -> None:
        if session is not None and user is not None:
            session.data[SESSION_USER_KEY] = user.model_dump()

    def _with_cookie(
        self, response: Response, session: MemorySession | None
    ) -> Response:
        if session is not None:
            response.set_cookie(
                self.cookie_name,
                session.id,
                httponly=True,
                samesite="lax",
                secure=self.secure_cookies,
            )
        return response
