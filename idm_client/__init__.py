"""
IDM Python Client

Async data-access layer for the IDM backend.
Provides authenticated requests with shared token refresh, a lazy query
builder, RPC calls, realtime row-change channels and auth helpers.

Example usage:
    from idm_client import IdmClient

    client = IdmClient(url="http://localhost:4000/api")

    # Auth
    await client.auth.sign_in("user@example.org", "password123")

    # Database queries (sent when awaited)
    result = await client.from_("enrollments").select("*").eq("status", "active").limit(10)

    # Realtime subscriptions
    channel = client.channel("enrollments-feed")
    channel.on("postgres_changes", {"table": "enrollments", "event": "UPDATE"}, print).subscribe()
"""

from .client import IdmClient
from .database import QueryBuilder, raw
from .errors import (
    IdmClientError,
    TransportError,
    HttpStatusError,
    AuthRefreshFailure,
    QueryResultError,
    ValidationError,
)
from .tokens import TokenStore, FileStorage, MemoryStorage
from .types import (
    ApiResponse,
    AuthTokenSet,
    IdmResponse,
    QueryResponse,
    RealtimePayload,
    User,
)

__version__ = "1.0.0"

__all__ = [
    "IdmClient",
    "QueryBuilder",
    "raw",
    "IdmClientError",
    "TransportError",
    "HttpStatusError",
    "AuthRefreshFailure",
    "QueryResultError",
    "ValidationError",
    "TokenStore",
    "FileStorage",
    "MemoryStorage",
    "ApiResponse",
    "AuthTokenSet",
    "IdmResponse",
    "QueryResponse",
    "RealtimePayload",
    "User",
]
