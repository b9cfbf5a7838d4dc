"""
Unit Test Fixtures.

Fixtures for unit tests - all external dependencies are mocked.
Unit tests that need persistence use the root db_session fixtures.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest


# =============================================================================
# Database Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """
    Mock database session for unit tests.

    Usage:
        def test_service(mock_db_session: AsyncMock):
            service = ProjectService(mock_db_session)
    """
    session = AsyncMock()
    session.add = MagicMock()
    return session


# =============================================================================
# HTTP Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_transport():
    """
    Build an httpx.MockTransport that records requests.

    Usage:
        def test_client(mock_transport):
            transport, requests = mock_transport(lambda r: httpx.Response(200, json={}))
            client = SquareClient(transport=transport)
    """

    def _build(handler) -> tuple[httpx.MockTransport, list[httpx.Request]]:
        requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        return httpx.MockTransport(_record), requests

    return _build


# =============================================================================
# Logging Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_logger() -> MagicMock:
    """
    Mock logger for testing logging calls.

    Usage:
        def test_logging(mock_logger):
            with patch("module.logger", mock_logger):
                ...
                mock_logger.info.assert_called_once()
    """
    logger: Any = MagicMock()
    return logger
