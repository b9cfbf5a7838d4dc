"""
Unit Tests for Health Check Endpoints.

Tests the health check functionality including:
- Liveness check (/health)
- Readiness check (/health/ready)
- Database and Redis connectivity checks
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException

from portal.backend.api.health import check_database, check_redis, health_check, readiness_check
from portal.backend.core.config import get_app_config


def _config_without_database_host():
    config = get_app_config()
    return SimpleNamespace(
        database=config.database.model_copy(update={"host": ""}),
        application=config.application,
    )


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_health_returns_healthy(self):
        assert await health_check() == {"status": "healthy"}


class TestCheckDatabase:
    """Tests for the database health check function."""

    @pytest.mark.asyncio
    async def test_not_configured_without_host(self):
        with patch("portal.backend.api.health.get_app_config", return_value=_config_without_database_host()):
            assert await check_database() == {"status": "not_configured"}

    @pytest.mark.asyncio
    async def test_healthy_on_successful_query(self):
        session = AsyncMock()
        factory = MagicMock()
        factory.return_value.__aenter__ = AsyncMock(return_value=session)
        factory.return_value.__aexit__ = AsyncMock(return_value=False)

        with patch("portal.backend.api.health.get_session_factory", return_value=factory):
            result = await check_database()

        assert result["status"] == "healthy"
        assert isinstance(result["latency_ms"], int)
        session.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unhealthy_on_connection_error(self):
        with patch(
            "portal.backend.api.health.get_session_factory",
            side_effect=Exception("Connection refused"),
        ):
            result = await check_database()

        assert result["status"] == "unhealthy"
        assert "Connection refused" in result["error"]


class TestCheckRedis:
    """Tests for the Redis health check function."""

    @pytest.mark.asyncio
    async def test_healthy_on_successful_ping(self):
        mock_client = AsyncMock()

        with patch("portal.backend.api.health.redis.from_url", return_value=mock_client):
            result = await check_redis()

        assert result["status"] == "healthy"
        mock_client.ping.assert_awaited_once()
        mock_client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unhealthy_on_connection_error(self):
        with patch(
            "portal.backend.api.health.redis.from_url",
            side_effect=Exception("Connection refused"),
        ):
            result = await check_redis()

        assert result == {"status": "unhealthy", "error": "Connection refused"}


class TestReadinessCheck:
    """Tests for the readiness health check endpoint."""

    @pytest.mark.asyncio
    async def test_healthy_when_all_checks_pass(self):
        with patch("portal.backend.api.health.check_database", AsyncMock(return_value={"status": "healthy"})), \
             patch("portal.backend.api.health.check_redis", AsyncMock(return_value={"status": "healthy"})):
            result = await readiness_check()

        assert result["status"] == "healthy"
        assert set(result["checks"]) == {"database", "redis"}

    @pytest.mark.asyncio
    async def test_503_when_redis_unhealthy(self):
        with patch("portal.backend.api.health.check_database", AsyncMock(return_value={"status": "healthy"})), \
             patch("portal.backend.api.health.check_redis",
                   AsyncMock(return_value={"status": "unhealthy", "error": "refused"})):
            with pytest.raises(HTTPException) as exc_info:
                await readiness_check()

        assert exc_info.value.status_code == 503
        assert exc_info.value.detail["checks"]["redis"]["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_not_configured_database_is_not_a_failure(self):
        with patch("portal.backend.api.health.check_database",
                   AsyncMock(return_value={"status": "not_configured"})), \
             patch("portal.backend.api.health.check_redis", AsyncMock(return_value={"status": "healthy"})):
            result = await readiness_check()

        assert result["status"] == "healthy"
