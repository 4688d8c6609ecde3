"""
IdmClient - Main client class for the IDM data-access layer.

Single entry point: table queries, RPC, realtime channels and auth.
All of them share one HTTP session, one token store and one refresh
coordinator.
"""

from typing import Optional, Dict, Any
import aiohttp

from .auth import AuthClient
from .config import default_storage, resolve_api_base_url
from .database import QueryBuilder, raw
from .functions import RpcInvoker
from .http import RequestPipeline
from .realtime import RealtimeChannel, RealtimeConnection, socket_origin
from .tokens import TokenStore
from .types import IdmResponse

_DEFAULT_STORAGE = object()


class IdmClient:
    """
    Main IDM client class.

    Example:
        async with IdmClient(url="https://idm.example.org/api") as client:
            await client.auth.sign_in("user@example.org", "password")
            result = await client.from_("programs").select("id, name").eq("status", "active")
    """

    def __init__(
        self,
        url: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        storage: Any = _DEFAULT_STORAGE,
        session: Optional[aiohttp.ClientSession] = None,
        token_store: Optional[TokenStore] = None,
        realtime: Optional[RealtimeConnection] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            url: API base URL (default: IDM_API_URL, then http://localhost:4000/api)
            headers: Custom headers to include in all requests
            storage: Session storage backend; None disables persistence
                (default: FileStorage under IDM_SESSION_DIR when set)
            session: Existing aiohttp session to use instead of creating one
            token_store: Existing token store to share
            realtime: Existing realtime connection to share
        """
        self._base_url = resolve_api_base_url(url)

        # Create HTTP session
        self._owns_session = session is None
        self._session = session or aiohttp.ClientSession(headers=headers or {})

        if token_store is None:
            if storage is _DEFAULT_STORAGE:
                storage = default_storage()
            token_store = TokenStore(storage)
        self.tokens = token_store

        self._pipeline = RequestPipeline(self._base_url, self._session, self.tokens)
        self.auth = AuthClient(self._pipeline)
        self._rpc = RpcInvoker(self._pipeline)
        self.realtime = realtime or RealtimeConnection(
            socket_origin(self._base_url), self.auth.get_token
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def pipeline(self) -> RequestPipeline:
        return self._pipeline

    def from_(self, table: str) -> QueryBuilder[Dict[str, Any]]:
        """
        Create a query builder for a table.
        Uses from_ to avoid Python keyword clash.
        """
        return QueryBuilder(table, self._pipeline)

    async def rpc(self, function_name: str, params: Optional[Dict[str, Any]] = None) -> IdmResponse[Any]:
        """Call a server-side function."""
        return await self._rpc.invoke(function_name, params)

    def channel(self, name: str) -> RealtimeChannel:
        """Create a realtime channel on the shared connection."""
        return RealtimeChannel(name, self.realtime)

    def remove_channel(self, channel: Optional[RealtimeChannel]) -> None:
        if channel is not None:
            channel.unsubscribe()

    @staticmethod
    def raw(column: str) -> Dict[str, str]:
        """Column reference usable as a filter value."""
        return raw(column)

    async def api_fetch(self, path: str, method: str = "GET", body: Any = None, **kwargs: Any):
        """Direct access to the authenticated request pipeline."""
        return await self._pipeline.api_fetch(path, method, body, **kwargs)

    async def close(self) -> None:
        """Close the HTTP session if this client created it.
        The realtime socket stays open for other users."""
        if self._owns_session:
            await self._session.close()

    async def __aenter__(self) -> "IdmClient":
        """Async context manager entry."""
        return self

    async def __aexit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit."""
        await self.close()
