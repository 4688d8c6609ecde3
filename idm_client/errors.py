"""
Exception types raised by the IDM client.
"""

from typing import Any, Optional

import aiohttp

# Network and abort failures surface as aiohttp's own exceptions, unwrapped.
TransportError = aiohttp.ClientError


class IdmClientError(Exception):
    """Base class for every error raised by this package."""


class HttpStatusError(IdmClientError):
    """Non-2xx response, after any retry-after-refresh."""

    def __init__(self, message: str, status: int, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details

    def __repr__(self) -> str:
        return f"HttpStatusError(status={self.status}, message={self.message!r})"


class AuthRefreshFailure(IdmClientError):
    """Refresh token rejected. Only ever raised and handled inside the refresh flow."""


class QueryResultError(IdmClientError):
    """single() received zero rows."""


class ValidationError(IdmClientError):
    """Caller input rejected before any network call."""
