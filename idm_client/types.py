"""
Type definitions for the IDM client.
Envelopes, token tuple and realtime payload shapes.
"""

from dataclasses import dataclass, field, asdict
from typing import TypeVar, Generic, Optional, Dict, Any

T = TypeVar("T")


@dataclass
class AuthTokenSet:
    """Current auth token tuple. Every field is nullable."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[Any] = None
    token_id: Optional[str] = None

    @classmethod
    def from_wire(cls, payload: Dict[str, Any]) -> "AuthTokenSet":
        """Build from the camelCase shape used by the backend and the session record."""
        return cls(
            access_token=payload.get("accessToken"),
            refresh_token=payload.get("refreshToken"),
            expires_at=payload.get("expiresAt"),
            token_id=payload.get("tokenId"),
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at,
            "tokenId": self.token_id,
        }

    def copy(self) -> "AuthTokenSet":
        return AuthTokenSet(**asdict(self))


@dataclass
class IdmResponse(Generic[T]):
    """Result envelope shared by query, RPC and auth calls.
    Failures are raised, so `error` is None on every returned envelope."""
    data: Optional[T]
    error: Optional[Exception] = None


@dataclass
class QueryResponse(IdmResponse[T]):
    """Query envelope; `count` is the full match count when one was requested."""
    count: Optional[int] = None


@dataclass
class ApiResponse:
    """Unwrapped backend envelope returned by the request pipeline."""
    data: Any
    meta: Optional[Dict[str, Any]]
    raw: Any


@dataclass
class User:
    """User record as returned by the auth endpoints."""
    id: Optional[str]
    email: Optional[str]
    role: Optional[str] = None
    full_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "User":
        known = {"id", "email", "role", "fullName", "full_name"}
        return cls(
            id=payload.get("id"),
            email=payload.get("email"),
            role=payload.get("role"),
            full_name=payload.get("fullName", payload.get("full_name")),
            metadata={k: v for k, v in payload.items() if k not in known},
        )


@dataclass
class RealtimePayload:
    """Row-change event pushed by the realtime server."""
    event: str  # 'INSERT', 'UPDATE', 'DELETE'
    table: str
    record: Optional[Dict[str, Any]]

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "RealtimePayload":
        record = message.get("record", message.get("payload"))
        return cls(
            event=str(message.get("event", "")).upper(),
            table=message.get("table", ""),
            record=record,
        )
