"""
Request pipeline - authenticated HTTP calls against the IDM backend.

Every call resolves the URL against the configured base, attaches the bearer
token, serializes the body, and unwraps the {data, meta, error} envelope.
A 401 triggers one shared token refresh and at most one retry.
"""

from typing import Optional, Dict, Any, Tuple
import asyncio
import inspect
import json
import logging

import aiohttp
from multidict import CIMultiDict

from .config import LOGIN_PATH, LOGOUT_PATH, REFRESH_PATH
from .errors import AuthRefreshFailure, HttpStatusError
from .tokens import TokenStore
from .types import ApiResponse

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Single-flight access token refresh.

    Concurrent callers share one in-flight refresh. The outcome is a bool;
    a failed refresh clears the whole session instead of raising.
    """

    def __init__(
        self,
        base_url: str,
        session: aiohttp.ClientSession,
        token_store: TokenStore,
    ) -> None:
        self._refresh_url = f"{base_url}{REFRESH_PATH}"
        self._session = session
        self._tokens = token_store
        self._inflight: Optional["asyncio.Future[bool]"] = None

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    async def refresh(self) -> bool:
        """Refresh the access token. Resolves False when there is nothing to refresh with."""
        if not self._tokens.refresh_token:
            return False

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._run(self._tokens.refresh_token))

        # a cancelled waiter leaves the shared refresh running
        return await asyncio.shield(self._inflight)

    async def _run(self, refresh_token: str) -> bool:
        try:
            tokens = await self._request_tokens(refresh_token)
            self._tokens.set(tokens)
            return True
        except Exception:  # any failure ends the session
            logger.exception("Refresh token flow failed")
            self._tokens.clear()
            return False
        finally:
            self._inflight = None

    async def _request_tokens(self, refresh_token: str) -> Dict[str, Any]:
        async with self._session.post(
            self._refresh_url,
            json={"refreshToken": refresh_token},
            headers={"Content-Type": "application/json"},
        ) as response:
            if not response.ok:
                raise AuthRefreshFailure("Unable to refresh session")
            payload = await response.json()

        tokens = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(tokens, dict) or not tokens.get("accessToken"):
            raise AuthRefreshFailure("Malformed refresh response")
        return tokens


class RequestPipeline:
    """Authenticated request execution with envelope unwrapping."""

    def __init__(
        self,
        base_url: str,
        session: aiohttp.ClientSession,
        token_store: TokenStore,
        refresher: Optional[RefreshCoordinator] = None,
    ) -> None:
        self._base_url = base_url
        self._session = session
        self._tokens = token_store
        self._refresher = refresher or RefreshCoordinator(base_url, session, token_store)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def tokens(self) -> TokenStore:
        return self._tokens

    @property
    def refresher(self) -> RefreshCoordinator:
        return self._refresher

    def build_url(self, path: Optional[str]) -> str:
        """Resolve a path against the base URL. Absolute URLs pass through."""
        if not path:
            return self._base_url
        if path.startswith("http://") or path.startswith("https://"):
            return path
        if path.startswith("/"):
            return f"{self._base_url}{path}"
        return f"{self._base_url}/{path}"

    def _build_headers(
        self, headers: Optional[Dict[str, str]], skip_auth: bool
    ) -> "CIMultiDict[str]":
        merged: "CIMultiDict[str]" = CIMultiDict(headers or {})
        token = self._tokens.access_token
        if not skip_auth and token:
            merged["Authorization"] = f"Bearer {token}"
        return merged

    @staticmethod
    def _prepare_body(body: Any, headers: "CIMultiDict[str]") -> Any:
        if body is None or isinstance(body, (aiohttp.FormData, bytes, bytearray, memoryview)):
            return body
        if isinstance(body, str):
            headers.setdefault("Content-Type", "text/plain")
            return body
        headers.setdefault("Content-Type", "application/json")
        return json.dumps(body)

    async def _send(
        self,
        method: str,
        url: str,
        body: Any,
        headers: Optional[Dict[str, str]],
        skip_auth: bool,
        request_kwargs: Dict[str, Any],
    ) -> Tuple[int, str, Any]:
        request_headers = self._build_headers(headers, skip_auth)
        data = self._prepare_body(body, request_headers)
        logger.debug("%s %s", method, url)

        async with self._session.request(
            method, url, headers=request_headers, data=data, **request_kwargs
        ) as response:
            if response.content_type == "application/json":
                payload = await response.json()
            else:
                text = await response.text()
                payload = {"data": text or None}
            return response.status, response.reason or "", payload

    async def api_fetch(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
        *,
        skip_auth: bool = False,
        retry_on_auth_failure: bool = True,
        **request_kwargs: Any,
    ) -> ApiResponse:
        """Execute one request and unwrap the response envelope.

        Args:
            path: Absolute URL, or a path relative to the base URL
            method: HTTP method
            body: FormData/bytes pass through, file-like objects are read
                into memory, str is sent as text/plain, anything else is
                JSON encoded
            headers: Extra request headers
            skip_auth: Do not attach the bearer token and never refresh
            retry_on_auth_failure: Refresh and retry once on a 401
            request_kwargs: Passed to aiohttp (timeout, params, ...)

        Raises:
            HttpStatusError: Non-2xx status after the optional retry
            aiohttp.ClientError: Transport failure
        """
        url = self.build_url(path)
        if hasattr(body, "read") and not isinstance(body, aiohttp.FormData):
            # file-like bodies are read once so a retry resends the same bytes
            body = body.read()
            if inspect.isawaitable(body):
                body = await body
        status, reason, payload = await self._send(
            method, url, body, headers, skip_auth, request_kwargs
        )

        if status == 401 and not skip_auth and retry_on_auth_failure:
            if await self._refresher.refresh():
                logger.debug("Retrying %s %s after token refresh", method, url)
                status, reason, payload = await self._send(
                    method, url, body, headers, skip_auth, request_kwargs
                )

        if not 200 <= status < 300:
            error = payload.get("error") if isinstance(payload, dict) else None
            message = error.get("message") if isinstance(error, dict) else None
            details = error.get("details") if isinstance(error, dict) else None
            raise HttpStatusError(message or reason or f"HTTP {status}", status, details)

        if not isinstance(payload, dict):
            return ApiResponse(data=None, meta=None, raw=payload)
        return ApiResponse(
            data=payload.get("data"),
            meta=payload.get("meta"),
            raw=payload,
        )

    async def authorized_json_fetch(
        self, path: str, body: Any, method: str = "POST"
    ) -> ApiResponse:
        return await self.api_fetch(path, method, body)

    async def login_request(self, credentials: Dict[str, Any]) -> Dict[str, Any]:
        """POST /auth/login and store the returned token tuple."""
        result = await self.api_fetch(LOGIN_PATH, "POST", credentials, skip_auth=True)
        data = result.data or {}
        self._tokens.set(data)
        return data

    async def logout_request(self) -> None:
        """POST /auth/logout. Local tokens are cleared whatever the server says."""
        try:
            await self.api_fetch(LOGOUT_PATH, "POST")
        finally:
            self._tokens.clear()
