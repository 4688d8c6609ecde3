"""
Configuration values and environment lookups.
"""

import os
from typing import Optional

DEFAULT_API_BASE_URL = "http://localhost:4000/api"
API_URL_ENV = "IDM_API_URL"
SESSION_DIR_ENV = "IDM_SESSION_DIR"

TOKEN_STORAGE_KEY = "idm.auth.tokens"

QUERY_ENDPOINT = "/db/query"
RPC_ENDPOINT = "/db/rpc"

LOGIN_PATH = "/auth/login"
REFRESH_PATH = "/auth/refresh"
LOGOUT_PATH = "/auth/logout"
REGISTER_PATH = "/auth/register"
SESSION_PATH = "/auth/session"

REALTIME_PATH = "/realtime"
REALTIME_EVENT = "postgres_changes"

DEFAULT_SIGNUP_ROLE = "case_manager"


def resolve_api_base_url(url: Optional[str] = None) -> str:
    """Explicit value, then IDM_API_URL, then the local default. No trailing slash."""
    value = url or os.environ.get(API_URL_ENV) or DEFAULT_API_BASE_URL
    return value.rstrip("/")


def default_storage():
    """File storage under IDM_SESSION_DIR, or None when no durable location is configured."""
    from .tokens import FileStorage

    directory = os.environ.get(SESSION_DIR_ENV)
    if not directory:
        return None
    return FileStorage(directory)
