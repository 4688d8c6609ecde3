"""
IdmClient unit tests.
"""

from typing import Any

import pytest
from unittest.mock import MagicMock
from aiohttp import ClientSession

from idm_client.client import IdmClient
from idm_client.database import QueryBuilder
from idm_client.realtime import RealtimeChannel, RealtimeConnection
from idm_client.tokens import FileStorage, MemoryStorage, TokenStore


class MockResponse:
    """Mock aiohttp response."""

    def __init__(self, data: Any, status: int = 200) -> None:
        self._data = data
        self.status = status
        self.ok = status < 400
        self.content_type = "application/json"
        self.reason = "OK"

    async def json(self) -> Any:
        return self._data

    async def __aenter__(self) -> "MockResponse":
        return self

    async def __aexit__(self, *args: object) -> None:
        pass


class FakeSocket:
    connected = False

    def on(self, event: str, handler: Any) -> None:
        pass

    async def connect(self, url: str, **kwargs: Any) -> None:
        self.connected = True


@pytest.fixture
def client(mock_session: MagicMock) -> IdmClient:
    """Create IdmClient with mock session and in-memory token storage."""
    return IdmClient(
        url="https://idm.example.org/api/",
        session=mock_session,
        storage=MemoryStorage(),
        realtime=RealtimeConnection("https://idm.example.org", socket_factory=FakeSocket),
    )


def test_base_url_normalized(client: IdmClient) -> None:
    assert client.base_url == "https://idm.example.org/api"


def test_base_url_from_environment(monkeypatch: pytest.MonkeyPatch, mock_session: MagicMock) -> None:
    monkeypatch.setenv("IDM_API_URL", "https://env.example.org/api")

    assert IdmClient(session=mock_session, storage=None).base_url == "https://env.example.org/api"


def test_base_url_default(monkeypatch: pytest.MonkeyPatch, mock_session: MagicMock) -> None:
    monkeypatch.delenv("IDM_API_URL", raising=False)

    assert IdmClient(session=mock_session, storage=None).base_url == "http://localhost:4000/api"


def test_session_dir_enables_file_storage(
    monkeypatch: pytest.MonkeyPatch, mock_session: MagicMock, tmp_path: Any
) -> None:
    monkeypatch.setenv("IDM_SESSION_DIR", str(tmp_path))

    first = IdmClient(session=mock_session)
    first.tokens.set(access_token="a", refresh_token="b")

    assert IdmClient(session=mock_session).tokens.access_token == "a"
    assert isinstance(first.tokens, TokenStore)


def test_explicit_storage(mock_session: MagicMock, tmp_path: Any) -> None:
    client = IdmClient(session=mock_session, storage=FileStorage(tmp_path))
    client.tokens.set(refresh_token="r")

    assert (tmp_path / "idm.auth.tokens.json").exists()


def test_from_returns_new_builder(client: IdmClient) -> None:
    first = client.from_("programs")
    second = client.from_("programs")

    assert isinstance(first, QueryBuilder)
    assert first is not second


def test_channels_share_connection(client: IdmClient) -> None:
    first = client.channel("a")
    second = client.channel("b")

    assert isinstance(first, RealtimeChannel)
    assert first is not second
    first.on("postgres_changes", {}, print)
    second.on("postgres_changes", {}, print)
    assert client.realtime.listener_count == 2

    client.remove_channel(first)
    client.remove_channel(None)
    assert client.realtime.listener_count == 1


def test_raw(client: IdmClient) -> None:
    assert client.raw("capacity") == {"__column": "capacity"}


@pytest.mark.asyncio
async def test_query_uses_shared_token(client: IdmClient, mock_session: MagicMock) -> None:
    client.tokens.set(access_token="shared")
    mock_session.request.return_value = MockResponse({"data": [{"id": "p1"}]})

    result = await client.from_("programs").select("id").eq("status", "active")

    assert result.data == [{"id": "p1"}]
    call = mock_session.request.call_args
    assert call.args[1] == "https://idm.example.org/api/db/query"
    assert call.kwargs["headers"]["Authorization"] == "Bearer shared"


@pytest.mark.asyncio
async def test_rpc(client: IdmClient, mock_session: MagicMock) -> None:
    mock_session.request.return_value = MockResponse({"data": 42})

    result = await client.rpc("count_active", {"program": "p1"})

    assert result.data == 42
    assert result.error is None


@pytest.mark.asyncio
async def test_close_leaves_injected_session(client: IdmClient, mock_session: MagicMock) -> None:
    async with client:
        pass

    mock_session.close.assert_not_called()


@pytest.mark.asyncio
async def test_close_owned_session() -> None:
    async with IdmClient(storage=None) as client:
        session = client._session
        assert isinstance(session, ClientSession)

    assert session.closed
