"""
Realtime module - row-change subscriptions over a shared socket.io connection.

One RealtimeConnection owns the socket. It is created lazily the first time
any channel registers a listener and is never closed by this package.
Channels only add and remove listeners on it; filtering happens client side.
"""

from typing import Optional, Dict, Any, Callable, List
from urllib.parse import urlparse
import asyncio
import inspect
import logging

import socketio

from .config import REALTIME_EVENT, REALTIME_PATH
from .types import RealtimePayload

logger = logging.getLogger(__name__)

# Type alias for event handlers; may be sync or async
EventHandler = Callable[[RealtimePayload], Any]


def socket_origin(base_url: str) -> str:
    """Origin (scheme://host:port) of the API base URL."""
    parsed = urlparse(base_url)
    return f"{parsed.scheme}://{parsed.netloc}"


def filter_matches(payload: RealtimePayload, filters: Optional[Dict[str, Any]]) -> bool:
    """Check a payload against {"event": ..., "table": ...}; missing keys match anything."""
    if not filters:
        return True
    event = filters.get("event")
    if event and event != "*" and payload.event != str(event).upper():
        return False
    table = filters.get("table")
    if table and payload.table != table:
        return False
    return True


class RealtimeConnection:
    """Lazily created, shared socket.io client with a listener registry."""

    def __init__(
        self,
        url: str,
        get_token: Optional[Callable[[], Optional[str]]] = None,
        path: str = REALTIME_PATH,
        socket_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._url = url
        self._get_token = get_token
        self._path = path
        self._socket_factory = socket_factory or socketio.AsyncClient
        self._socket: Optional[Any] = None
        self._connect_task: Optional["asyncio.Future[None]"] = None
        self._listeners: List[EventHandler] = []

    @property
    def socket(self) -> Optional[Any]:
        """The underlying socket, or None before first use."""
        return self._socket

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def acquire(self) -> Any:
        """Return the shared socket, creating it on first use.

        Starts a connect whenever the socket is down and no attempt is pending,
        so a failed first connect is retried by the next caller.
        """
        if self._socket is None:
            self._socket = self._socket_factory()
            self._socket.on(REALTIME_EVENT, self._dispatch)
        if getattr(self._socket, "connected", False) or self._connect_task is not None:
            return self._socket
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; connect() starts it later
            return self._socket
        self._start_connect()
        return self._socket

    def _start_connect(self) -> "asyncio.Future[None]":
        if self._connect_task is None:
            self._connect_task = asyncio.ensure_future(self._open())
            self._connect_task.add_done_callback(self._connect_done)
        return self._connect_task

    def _connect_done(self, task: "asyncio.Future[None]") -> None:
        self._connect_task = None
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Realtime connection failed: %s", error)

    async def _open(self) -> None:
        headers: Dict[str, str] = {}
        token = self._get_token() if self._get_token else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        await self._socket.connect(
            self._url,
            headers=headers,
            socketio_path=self._path.strip("/"),
        )

    async def connect(self) -> None:
        """Wait until the shared socket is connected."""
        socket = self.acquire()
        if getattr(socket, "connected", False):
            return
        await asyncio.shield(self._start_connect())

    def add_listener(self, handler: EventHandler) -> None:
        self.acquire()
        self._listeners.append(handler)

    def remove_listener(self, handler: EventHandler) -> None:
        try:
            self._listeners.remove(handler)
        except ValueError:
            pass

    async def _dispatch(self, message: Any) -> None:
        """Fan an inbound row-change message out to every listener."""
        if not isinstance(message, dict):
            return
        payload = RealtimePayload.from_message(message)
        for handler in list(self._listeners):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Realtime listener failed for %s on %s", payload.event, payload.table)


class RealtimeChannel:
    """Named handle for a set of listeners on the shared connection."""

    def __init__(self, name: str, connection: RealtimeConnection) -> None:
        self._name = name
        self._connection = connection
        self._listeners: List[EventHandler] = []

    @property
    def name(self) -> str:
        """Get channel name."""
        return self._name

    def on(
        self,
        event: str,
        filters: Optional[Dict[str, Any]] = None,
        callback: Optional[EventHandler] = None,
    ) -> "RealtimeChannel":
        """Listen for row changes matching `filters`. Other event families are ignored."""
        if event != REALTIME_EVENT or not callable(callback):
            return self

        criteria = dict(filters or {})

        def handler(payload: RealtimePayload) -> Any:
            if filter_matches(payload, criteria):
                return callback(payload)
            return None

        self._connection.add_listener(handler)
        self._listeners.append(handler)
        logger.debug("Channel %s listening with %s", self._name, criteria)
        return self

    def subscribe(self) -> "RealtimeChannel":
        """No-op; the shared connection is already established by on()."""
        return self

    def unsubscribe(self) -> None:
        """Remove only the listeners registered through this channel."""
        for handler in self._listeners:
            self._connection.remove_listener(handler)
        logger.debug("Channel %s removed %d listeners", self._name, len(self._listeners))
        self._listeners = []
