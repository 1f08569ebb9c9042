"""
Starlette app with a page protected by the OAuth2 authorization code flow.

Set the OAUTH2_AUTHORIZATION_ENDPOINT, OAUTH2_TOKEN_ENDPOINT,
OAUTH2_CLIENT_ID and OAUTH2_CLIENT_SECRET environment variables (or put
them in a .env file). OAUTH2_INTROSPECTION_ENDPOINT enables bearer tokens.
OAUTH2_CALLBACK_URL defaults to http://localhost:8000/oauth2/callback.
"""

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route

from codegate.auth.handler import OAuth2AuthHandler
from codegate.auth.services.http_provider import (
    HttpOAuth2Provider,
    OAuth2ProviderConfig,
)
from codegate.web.app import OAuth2Integration
from codegate.web.sessions import SessionStore


async def home(request: Request) -> PlainTextResponse:
    return PlainTextResponse("Visit /profile to sign in.")


async def profile(request: Request) -> JSONResponse:
    user = request.state.user
    return JSONResponse({"subject": user.subject, "scope": user.scope})


def build_app() -> Starlette:
    provider = HttpOAuth2Provider(OAuth2ProviderConfig.from_env())
    handler = OAuth2AuthHandler(
        provider,
        os.getenv("OAUTH2_CALLBACK_URL", "http://localhost:8000/oauth2/callback"),
    )
    handler.add_authorities(os.getenv("OAUTH2_SCOPES", "openid profile").split())

    integration = OAuth2Integration(handler, SessionStore())

    @asynccontextmanager
    async def lifespan(app: Starlette):
        yield
        await provider.close()

    return Starlette(
        routes=[
            Route("/", home),
            Route("/profile", integration.protect(profile)),
            integration.callback_route(),
        ],
        lifespan=lifespan,
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    load_dotenv()
    uvicorn.run(build_app(), host="127.0.0.1", port=8000, log_level="info")
