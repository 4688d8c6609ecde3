"""
Shared fixtures. Async tests run through pytest-asyncio.
"""

import pytest
from unittest.mock import MagicMock
from aiohttp import ClientSession

from idm_client.http import RequestPipeline
from idm_client.tokens import MemoryStorage, TokenStore

BASE_URL = "http://localhost:4000/api"


@pytest.fixture
def mock_session() -> MagicMock:
    """Create mock aiohttp session."""
    return MagicMock(spec=ClientSession)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def token_store(storage: MemoryStorage) -> TokenStore:
    return TokenStore(storage)


@pytest.fixture
def pipeline(mock_session: MagicMock, token_store: TokenStore) -> RequestPipeline:
    """Request pipeline wired to the mock session."""
    return RequestPipeline(BASE_URL, mock_session, token_store)
