"""
TokenStore - holds the auth token tuple and keeps its persisted record in sync.

Storage backends follow a tiny key/value protocol (get_item, set_item, remove_item).
A store without a backend keeps tokens in memory only.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .config import TOKEN_STORAGE_KEY
from .types import AuthTokenSet

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Dict-backed storage. Survives TokenStore reloads within one process."""

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage:
    """One JSON file per key inside a directory."""

    def __init__(self, directory: Union[str, Path]) -> None:
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass


class TokenStore:
    """In-memory token tuple mirrored to an optional storage backend."""

    def __init__(self, storage: Optional[Any] = None, key: str = TOKEN_STORAGE_KEY) -> None:
        self._storage = storage
        self._key = key
        self._tokens = self._load()

    def _load(self) -> AuthTokenSet:
        if self._storage is None:
            return AuthTokenSet()
        try:
            raw = self._storage.get_item(self._key)
            if not raw:
                return AuthTokenSet()
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise ValueError("session record is not an object")
            return AuthTokenSet.from_wire(payload)
        except (OSError, ValueError) as e:
            logger.warning("Failed to parse stored auth tokens: %s", e)
            return AuthTokenSet()

    def _persist(self) -> None:
        if self._storage is None:
            return
        try:
            if not self._tokens.access_token and not self._tokens.refresh_token:
                self._storage.remove_item(self._key)
            else:
                self._storage.set_item(self._key, json.dumps(self._tokens.to_wire()))
        except OSError as e:
            # unwritable storage behaves like no durable storage
            logger.warning("Failed to persist auth tokens: %s", e)

    def reload(self) -> AuthTokenSet:
        """Re-read the persisted record, replacing the in-memory tuple."""
        self._tokens = self._load()
        return self.get()

    def get(self) -> AuthTokenSet:
        """Return a copy of the current tuple."""
        return self._tokens.copy()

    @property
    def access_token(self) -> Optional[str]:
        return self._tokens.access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._tokens.refresh_token

    def set(self, tokens: Union[AuthTokenSet, Dict[str, Any], None] = None, **fields: Any) -> AuthTokenSet:
        """Merge the provided fields over the current tuple and persist.

        Accepts an AuthTokenSet, a camelCase wire dict, or snake_case keyword
        arguments. Fields that are missing or None keep their current value.
        """
        if isinstance(tokens, AuthTokenSet):
            incoming = tokens
        elif isinstance(tokens, dict):
            incoming = AuthTokenSet.from_wire(tokens)
        else:
            incoming = AuthTokenSet()
        for name, value in fields.items():
            if not hasattr(incoming, name):
                raise TypeError(f"unknown token field: {name}")
            setattr(incoming, name, value)

        current = self._tokens
        self._tokens = AuthTokenSet(
            access_token=_first(incoming.access_token, current.access_token),
            refresh_token=_first(incoming.refresh_token, current.refresh_token),
            expires_at=_first(incoming.expires_at, current.expires_at),
            token_id=_first(incoming.token_id, current.token_id),
        )
        self._persist()
        return self.get()

    def clear(self) -> None:
        """Drop every field and remove the persisted record."""
        self._tokens = AuthTokenSet()
        self._persist()


def _first(value: Any, fallback: Any) -> Any:
    return value if value is not None else fallback
