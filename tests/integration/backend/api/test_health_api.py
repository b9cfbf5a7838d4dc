"""Integration tests for the health endpoints through the full app."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

HEALTHY = {"status": "healthy", "latency_ms": 1}


@pytest.mark.asyncio
async def test_liveness_always_healthy(client: AsyncClient) -> None:
    """GET /health needs no session and no dependencies."""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_readiness_healthy(client: AsyncClient) -> None:
    with (
        patch("portal.backend.api.health.check_database", new=AsyncMock(return_value=HEALTHY)),
        patch("portal.backend.api.health.check_redis", new=AsyncMock(return_value=HEALTHY)),
    ):
        response = await client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert set(data["checks"]) == {"database", "redis"}


@pytest.mark.asyncio
async def test_readiness_unhealthy_uses_error_envelope(client: AsyncClient) -> None:
    """A down broker turns readiness into a 503 in the standard envelope."""
    down = {"status": "unhealthy", "error": "Connection refused"}
    with (
        patch("portal.backend.api.health.check_database", new=AsyncMock(return_value=HEALTHY)),
        patch("portal.backend.api.health.check_redis", new=AsyncMock(return_value=down)),
    ):
        response = await client.get("/health/ready")

    assert response.status_code == 503
    data = response.json()
    assert data["success"] is False
    assert data["error"] is not None
