from typing import Any, Mapping
from unittest.mock import AsyncMock, Mock
from urllib.parse import urlencode

import pytest

from codegate.auth.models.config import RouteHandle
from codegate.auth.models.flow import FlowType
from codegate.auth.models.tokens import User
from codegate.web.context import RequestContext
from codegate.web.sessions import SessionStore

AUTHORIZE_ENDPOINT = "https://auth.example.com/authorize"


class FakeOAuth2Provider:
    """In-memory OAuth2 provider with recorded calls."""

    def __init__(self, flow_type: FlowType = FlowType.AUTH_CODE, inline: bool = True):
        self.flow_type = flow_type
        self.inline = inline
        self.authenticate = AsyncMock(
            return_value=User(subject="alice", access_token="exchanged-token")
        )
        self.decode_token = AsyncMock(
            return_value=User(subject="alice", access_token="inline-token")
        )
        self.authorize_url = Mock(side_effect=self._build_url)

    def supports_authorization_code_flow(self) -> bool:
        return self.flow_type is FlowType.AUTH_CODE

    def supports_inline_token_validation(self) -> bool:
        return self.inline

    @staticmethod
    def _build_url(params: Mapping[str, Any]) -> str:
        query = {
            key: " ".join(value) if key == "scopes" else value
            for key, value in params.items()
        }
        return f"{AUTHORIZE_ENDPOINT}?{urlencode(query)}"


@pytest.fixture
def provider():
    return FakeOAuth2Provider()


@pytest.fixture
def make_provider():
    return FakeOAuth2Provider


@pytest.fixture
def callback_route():
    return RouteHandle(name="callback", path="/placeholder", methods=("POST",))


@pytest.fixture
def session_store():
    return SessionStore()


@pytest.fixture
def make_context():
    def _make(
        uri: str = "/dashboard",
        headers: dict[str, str] | None = None,
        query_params: dict[str, str] | None = None,
        session=None,
    ) -> RequestContext:
        return RequestContext(
            uri=uri,
            headers=headers or {},
            query_params=query_params or {},
            session=session,
        )

    return _make
