"""
AuthClient unit tests.
"""

import json
from typing import Any

import pytest
from unittest.mock import MagicMock

from idm_client.auth import AuthClient
from idm_client.errors import HttpStatusError, ValidationError
from idm_client.http import RequestPipeline
from idm_client.tokens import TokenStore
from idm_client.types import User


class MockResponse:
    """Mock aiohttp response."""

    def __init__(self, data: Any, status: int = 200) -> None:
        self._data = data
        self.status = status
        self.ok = status < 400
        self.content_type = "application/json"
        self.reason = "OK" if status < 400 else "Error"

    async def json(self) -> Any:
        return self._data

    async def __aenter__(self) -> "MockResponse":
        return self

    async def __aexit__(self, *args: object) -> None:
        pass


@pytest.fixture
def auth_client(pipeline: RequestPipeline) -> AuthClient:
    """Create AuthClient on the mock-backed pipeline."""
    return AuthClient(pipeline)


def login_payload() -> dict:
    return {
        "data": {
            "accessToken": "access-token",
            "refreshToken": "refresh-token",
            "expiresAt": 1700000000,
            "tokenId": "tid",
            "user": {"id": "123", "email": "test@example.com", "role": "admin"},
        }
    }


def test_sign_up_requires_credentials(auth_client: AuthClient, mock_session: MagicMock) -> None:
    """Missing credentials fail at call time, before any request."""
    with pytest.raises(ValidationError):
        auth_client.sign_up(email="test@example.com", password="")
    with pytest.raises(ValidationError):
        auth_client.sign_up(password="secret")

    mock_session.request.assert_not_called()


@pytest.mark.asyncio
async def test_sign_up_defaults_role(auth_client: AuthClient, mock_session: MagicMock) -> None:
    mock_session.request.return_value = MockResponse({"data": {"id": "9", "email": "n@example.com"}})

    result = await auth_client.sign_up(
        "n@example.com", "secret", options={"data": {"full_name": "New Person"}}
    )

    assert result.data["user"].id == "9"
    call = mock_session.request.call_args
    assert call.args == ("POST", "http://localhost:4000/api/auth/register")
    assert json.loads(call.kwargs["data"]) == {
        "email": "n@example.com",
        "password": "secret",
        "role": "case_manager",
        "fullName": "New Person",
    }


@pytest.mark.asyncio
async def test_sign_in_stores_tokens_and_user(
    auth_client: AuthClient, mock_session: MagicMock, token_store: TokenStore
) -> None:
    mock_session.request.return_value = MockResponse(login_payload())

    result = await auth_client.sign_in("test@example.com", "password123")

    assert result.data["user"].email == "test@example.com"
    assert auth_client.current_user.role == "admin"
    assert token_store.access_token == "access-token"
    assert token_store.get().expires_at == 1700000000


@pytest.mark.asyncio
async def test_sign_in_invalid_credentials(auth_client: AuthClient, mock_session: MagicMock) -> None:
    mock_session.request.return_value = MockResponse(
        {"error": {"message": "Invalid credentials"}},
        status=401,
    )

    with pytest.raises(HttpStatusError) as info:
        await auth_client.sign_in("test@example.com", "wrong-password")

    assert info.value.status == 401
    mock_session.post.assert_not_called()


@pytest.mark.asyncio
async def test_get_user_fast_path(auth_client: AuthClient, mock_session: MagicMock) -> None:
    auth_client.set_user(User(id="1", email="known@example.com"))

    result = await auth_client.get_user()

    assert result.data["user"].email == "known@example.com"
    mock_session.request.assert_not_called()


@pytest.mark.asyncio
async def test_get_user_falls_back_to_session(auth_client: AuthClient, mock_session: MagicMock) -> None:
    mock_session.request.return_value = MockResponse({"data": {"user": {"id": "5", "email": "s@example.com"}}})

    result = await auth_client.get_user()

    assert result.data["user"].id == "5"
    assert mock_session.request.call_args.args == ("GET", "http://localhost:4000/api/auth/session")


@pytest.mark.asyncio
async def test_get_session(auth_client: AuthClient, mock_session: MagicMock) -> None:
    mock_session.request.return_value = MockResponse({"data": {"user": None}})

    result = await auth_client.get_session()

    assert result.data == {"session": None}


@pytest.mark.asyncio
async def test_sign_out_clears_even_on_failure(
    auth_client: AuthClient, mock_session: MagicMock, token_store: TokenStore
) -> None:
    auth_client.set_user(User(id="1", email="e"))
    token_store.set(access_token="token")
    mock_session.request.return_value = MockResponse({"error": {"message": "down"}}, status=500)

    result = await auth_client.sign_out()

    assert result.error is None
    assert auth_client.current_user is None
    assert token_store.access_token is None


@pytest.mark.asyncio
async def test_set_session_is_noop(auth_client: AuthClient, mock_session: MagicMock) -> None:
    result = await auth_client.set_session({"access_token": "x"})

    assert result.data == {"session": None}
    mock_session.request.assert_not_called()
