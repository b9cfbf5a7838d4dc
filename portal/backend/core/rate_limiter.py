"""
Rate Limiter.

Config-driven, per-key attempt limiting for sensitive operations
(card payments, login). Reads limits from config/settings/security.yaml.

State is in-memory and per process: counts reset on restart and are not
shared between workers. Good enough as a brake on card testing and password
guessing from a single session.
"""

import time
from collections import defaultdict

from portal.backend.core.config import get_app_config
from portal.backend.core.exceptions import RateLimitError
from portal.backend.core.logging import get_logger

logger = get_logger(__name__)


class RateLimitResult:
    """Result of a rate limit check."""

    def __init__(self, allowed: bool, retry_after_seconds: int = 0) -> None:
        self.allowed = allowed
        self.retry_after_seconds = retry_after_seconds


class RateLimiter:
    """
    Sliding-window limiter keyed by ``scope:key``.

    Each scope (``payments``, ``login``) has its own max_attempts and
    window_seconds in security.yaml. A rejected attempt is not recorded,
    and the caller is told to wait a full window.
    """

    def __init__(self) -> None:
        self._attempts: dict[str, list[float]] = defaultdict(list)

    def check(self, scope: str, key: str) -> RateLimitResult:
        """
        Record an attempt for ``key`` under ``scope`` if within limits.

        Args:
            scope: Rule name in security.yaml rate_limiting
            key: Caller identity (contact id, email)

        Returns:
            RateLimitResult indicating whether the attempt is allowed
        """
        rule = getattr(get_app_config().security.rate_limiting, scope, None)
        if rule is None:
            return RateLimitResult(allowed=True)

        now = time.monotonic()
        bucket = f"{scope}:{key}"
        cutoff = now - rule.window_seconds
        self._attempts[bucket] = [ts for ts in self._attempts[bucket] if ts > cutoff]

        if len(self._attempts[bucket]) >= rule.max_attempts:
            logger.warning(
                "Rate limit exceeded",
                extra={"scope": scope, "key": key, "limit": rule.max_attempts},
            )
            return RateLimitResult(allowed=False, retry_after_seconds=rule.window_seconds)

        self._attempts[bucket].append(now)
        return RateLimitResult(allowed=True)

    def enforce(self, scope: str, key: str) -> None:
        """Like check(), but raises RateLimitError when the attempt is rejected."""
        result = self.check(scope, key)
        if not result.allowed:
            raise RateLimitError(
                "Too many attempts. Please try again later.",
                retry_after=result.retry_after_seconds,
            )

    def reset(self, scope: str | None = None) -> None:
        """Forget recorded attempts, for one scope or all."""
        if scope is None:
            self._attempts.clear()
            return
        for bucket in [b for b in self._attempts if b.startswith(f"{scope}:")]:
            del self._attempts[bucket]


_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Get or create the process-wide rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter
