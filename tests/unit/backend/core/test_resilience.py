"""Unit tests for portal.backend.core.resilience and the external API client base."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import httpx
import pytest

from portal.backend.core.exceptions import PaymentError, ServiceNotConfiguredError
from portal.backend.core.resilience import (
    ResilienceLogger,
    create_circuit_breaker,
    log_retry,
)
from portal.backend.integrations.base import ExternalAPIClient
from portal.backend.integrations.square import SquareClient


class TestResilienceLogger:
    def test_state_change_open(self):
        """Opening the circuit should log at error level."""
        rl = ResilienceLogger("square")
        mock_cb = MagicMock()
        mock_cb.fail_counter = 5

        with patch("portal.backend.core.resilience.logger") as mock_logger:
            rl.state_change(mock_cb, "closed", "open")
            mock_logger.error.assert_called_once()
            assert "circuit_breaker_opened" in str(mock_logger.error.call_args)

    def test_state_change_closed(self):
        """Closing the circuit should log at info level."""
        rl = ResilienceLogger("resend")
        mock_cb = MagicMock()
        mock_cb.fail_counter = 0

        with patch("portal.backend.core.resilience.logger") as mock_logger:
            rl.state_change(mock_cb, "open", "closed")
            mock_logger.info.assert_called_once()
            assert "circuit_breaker_closed" in str(mock_logger.info.call_args)

    def test_failure(self):
        """Recording a failure should log at warning level."""
        rl = ResilienceLogger("shopify")
        mock_cb = MagicMock()
        mock_cb.fail_counter = 2

        with patch("portal.backend.core.resilience.logger") as mock_logger:
            rl.failure(mock_cb, ConnectionError("timeout"))
            mock_logger.warning.assert_called_once()
            assert "circuit_breaker_failure" in str(mock_logger.warning.call_args)


class TestLogRetry:
    def test_emits_structured_event(self):
        """log_retry should emit a warning with retry metadata."""
        mock_state = MagicMock()
        mock_state.attempt_number = 2
        mock_state.fn.__name__ = "_request_with_retry"
        mock_state.outcome.failed = True
        mock_state.outcome.exception.return_value = ConnectionError("fail")

        with patch("portal.backend.core.resilience.logger") as mock_logger:
            log_retry(mock_state)
            call_args = mock_logger.warning.call_args
            assert call_args[1]["extra"]["resilience_event"] == "retry_attempt"
            assert call_args[1]["extra"]["attempt"] == 2
            assert call_args[1]["extra"]["error"] == "fail"

    def test_handles_no_outcome(self):
        """log_retry should not crash if outcome is None."""
        mock_state = MagicMock()
        mock_state.attempt_number = 1
        mock_state.fn.__name__ = "fetch"
        mock_state.outcome = None

        with patch("portal.backend.core.resilience.logger") as mock_logger:
            log_retry(mock_state)
            assert mock_logger.warning.call_args[1]["extra"]["error"] is None


class TestCreateCircuitBreaker:
    def test_returns_configured_breaker(self):
        cb = create_circuit_breaker("square", fail_max=3, timeout_duration=15)
        assert cb.fail_max == 3
        assert cb.timeout_duration.total_seconds() == 15
        assert isinstance(cb.listeners[0], ResilienceLogger)
        assert cb.listeners[0].dependency == "square"


# =============================================================================
# External API client
# =============================================================================


class _EchoClient(ExternalAPIClient):
    dependency = "echo-test"


class TestExternalAPIClient:
    @pytest.mark.asyncio
    async def test_returns_client_errors_without_retry(self):
        """Should hand 4xx responses back after a single call."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404, json={"error": "missing"})

        async with _EchoClient("https://api.test", transport=httpx.MockTransport(handler)) as client:
            response = await client.request("GET", "/things/1")

        assert response.status_code == 404
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_sends_configured_headers(self):
        """Should send the headers given at construction with every request."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, json={"ok": True})

        async with _EchoClient(
            "https://api.test/",
            headers={"X-Api-Key": "k"},
            transport=httpx.MockTransport(handler),
        ) as client:
            response = await client.request("POST", "/send", json={"a": 1})

        assert response.json() == {"ok": True}
        assert seen["x-api-key"] == "k"


def _square(handler, access_token: str = "sq-token", location_id: str = "LOC1") -> SquareClient:
    settings = SimpleNamespace(square_access_token=access_token, square_location_id=location_id)
    with patch("portal.backend.integrations.square.get_settings", return_value=settings):
        return SquareClient(transport=httpx.MockTransport(handler))


class TestSquareClient:
    @pytest.mark.asyncio
    async def test_create_payment_posts_amount_in_cents(self):
        """Should charge the card nonce for the amount in minor units."""
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"payment": {"id": "pay_1", "status": "COMPLETED"}})

        payment = await _square(handler).create_payment("cnon:ok", 12345, reference_id="inv-1")

        assert payment.id == "pay_1"
        assert bodies[0]["amount_money"] == {"amount": 12345, "currency": "USD"}
        assert bodies[0]["location_id"] == "LOC1"
        assert bodies[0]["reference_id"] == "inv-1"
        assert bodies[0]["idempotency_key"]

    @pytest.mark.asyncio
    async def test_declined_card_raises_payment_error(self):
        """Should turn a Square 4xx into PaymentError carrying Square's detail."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                402,
                json={"errors": [{"code": "CARD_DECLINED", "detail": "Card declined"}]},
            )

        with pytest.raises(PaymentError) as exc_info:
            await _square(handler).create_payment("cnon:declined", 500)
        assert exc_info.value.message == "Card declined"

    @pytest.mark.asyncio
    async def test_unconfigured_raises(self):
        """Should refuse to charge without credentials."""
        client = _square(lambda request: httpx.Response(200), access_token="")
        assert client.is_configured is False
        with pytest.raises(ServiceNotConfiguredError):
            await client.create_payment("cnon:ok", 100)
