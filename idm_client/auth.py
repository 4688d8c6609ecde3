"""
AuthClient - session operations for the IDM backend.

Sign-in, sign-out and registration go through the request pipeline, so
tokens land in the shared TokenStore. The signed-in user is cached in memory
and get_user() answers from it without a network call when it can.
"""

from typing import Optional, Dict, Any, Awaitable
import logging

from .config import DEFAULT_SIGNUP_ROLE, REGISTER_PATH, SESSION_PATH
from .errors import IdmClientError, TransportError, ValidationError
from .http import RequestPipeline
from .types import IdmResponse, User

logger = logging.getLogger(__name__)


class AuthClient:
    """Authentication client for user management."""

    def __init__(self, pipeline: RequestPipeline) -> None:
        self._pipeline = pipeline
        self._user: Optional[User] = None

    @property
    def current_user(self) -> Optional[User]:
        return self._user

    def set_user(self, user: Optional[User]) -> None:
        """Remember (or forget) the signed-in user."""
        self._user = user

    def get_token(self) -> Optional[str]:
        """Get current access token."""
        return self._pipeline.tokens.access_token

    async def get_user(self) -> IdmResponse[Dict[str, Optional[User]]]:
        """Return the in-memory user, else ask GET /auth/session."""
        if self._user is not None:
            return IdmResponse(data={"user": self._user}, error=None)

        response = await self._pipeline.api_fetch(SESSION_PATH, "GET")
        data = response.data or {}
        user_payload = data.get("user") if isinstance(data, dict) else None
        user = User.from_payload(user_payload) if user_payload else None
        self._user = user
        return IdmResponse(data={"user": user}, error=None)

    async def get_session(self) -> IdmResponse[Dict[str, Any]]:
        """Session view of get_user()."""
        result = await self.get_user()
        user = result.data["user"] if result.data else None
        session = {"user": user} if user is not None else None
        return IdmResponse(data={"session": session}, error=None)

    def sign_up(
        self,
        email: Optional[str] = None,
        password: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Awaitable[IdmResponse[Dict[str, Optional[User]]]]:
        """Register a new user.

        Validation runs immediately, so missing credentials raise
        ValidationError at call time, before any coroutine is awaited.

        Args:
            email: Account email (required)
            password: Account password (required)
            options: {"data": {"role": ..., "full_name": ...}}; role defaults to case_manager
        """
        if not email or not password:
            raise ValidationError("Email and password are required")

        extra = (options or {}).get("data") or {}
        body = {
            "email": email,
            "password": password,
            "role": extra.get("role") or DEFAULT_SIGNUP_ROLE,
            "fullName": extra.get("full_name"),
        }
        return self._register(body)

    async def _register(self, body: Dict[str, Any]) -> IdmResponse[Dict[str, Optional[User]]]:
        response = await self._pipeline.api_fetch(REGISTER_PATH, "POST", body)
        user = User.from_payload(response.data) if isinstance(response.data, dict) else None
        return IdmResponse(data={"user": user}, error=None)

    async def sign_in(self, email: str, password: str) -> IdmResponse[Dict[str, Optional[User]]]:
        """Sign in with email and password. Raises HttpStatusError on bad credentials."""
        data = await self._pipeline.login_request({"email": email, "password": password})
        user_payload = data.get("user")
        self._user = User.from_payload(user_payload) if user_payload else None
        return IdmResponse(data={"user": self._user}, error=None)

    async def sign_out(self) -> IdmResponse[None]:
        """Sign out. Local tokens and user are dropped even if the server call fails."""
        self._user = None
        try:
            await self._pipeline.logout_request()
        except (IdmClientError, TransportError) as e:
            logger.warning("Logout request failed, session cleared locally: %s", e)
        return IdmResponse(data=None, error=None)

    async def set_session(self, *args: Any, **kwargs: Any) -> IdmResponse[Dict[str, Any]]:
        """Kept for call-site compatibility; sessions are managed by the token store."""
        return IdmResponse(data={"session": None}, error=None)
