"""Unit tests for the in-memory rate limiter."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from portal.backend.core.config_schema import RateLimitingSchema, RateLimitRuleSchema
from portal.backend.core.exceptions import RateLimitError
from portal.backend.core.rate_limiter import RateLimiter


@pytest.fixture
def limiter():
    rules = RateLimitingSchema(
        payments=RateLimitRuleSchema(max_attempts=2, window_seconds=60),
        login=RateLimitRuleSchema(max_attempts=3, window_seconds=300),
    )
    app_config = SimpleNamespace(security=SimpleNamespace(rate_limiting=rules))
    with patch("portal.backend.core.rate_limiter.get_app_config", return_value=app_config):
        yield RateLimiter()


class TestRateLimiter:
    def test_allows_up_to_limit(self, limiter):
        assert limiter.check("payments", "contact-1").allowed
        assert limiter.check("payments", "contact-1").allowed

    def test_rejects_over_limit_with_retry_after(self, limiter):
        limiter.check("payments", "contact-1")
        limiter.check("payments", "contact-1")
        result = limiter.check("payments", "contact-1")
        assert result.allowed is False
        assert result.retry_after_seconds == 60

    def test_keys_are_independent(self, limiter):
        limiter.check("payments", "contact-1")
        limiter.check("payments", "contact-1")
        assert limiter.check("payments", "contact-2").allowed

    def test_scopes_are_independent(self, limiter):
        limiter.check("payments", "x")
        limiter.check("payments", "x")
        assert limiter.check("login", "x").allowed

    def test_unknown_scope_always_allowed(self, limiter):
        for _ in range(10):
            assert limiter.check("unknown", "x").allowed

    def test_window_expiry(self, limiter):
        """Attempts older than the window no longer count."""
        with patch("portal.backend.core.rate_limiter.time.monotonic", return_value=1000.0):
            limiter.check("payments", "c")
            limiter.check("payments", "c")
        with patch("portal.backend.core.rate_limiter.time.monotonic", return_value=1061.0):
            assert limiter.check("payments", "c").allowed

    def test_enforce_raises(self, limiter):
        limiter.enforce("payments", "c")
        limiter.enforce("payments", "c")
        with pytest.raises(RateLimitError) as exc_info:
            limiter.enforce("payments", "c")
        assert exc_info.value.retry_after == 60

    def test_reset_single_scope(self, limiter):
        limiter.check("payments", "c")
        limiter.check("payments", "c")
        limiter.check("login", "c")
        limiter.reset("payments")
        assert limiter.check("payments", "c").allowed
        assert limiter.check("login", "c").allowed
