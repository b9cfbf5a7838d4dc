"""
External API Client Base.

Shared httpx client for third-party APIs with the standard resilience
stack: circuit breaker (aiobreaker) around retry (tenacity) around the call.

Only transport failures and 5xx responses are retried; 4xx responses are
returned to the caller, which knows what a rejection means for its API.
"""

from typing import Any

import aiobreaker
import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from portal.backend.core.config import get_app_config
from portal.backend.core.exceptions import ExternalServiceError
from portal.backend.core.logging import get_logger
from portal.backend.core.resilience import create_circuit_breaker, log_retry

logger = get_logger(__name__)

_breakers: dict[str, aiobreaker.CircuitBreaker] = {}


class RetryableResponseError(Exception):
    """A 5xx response that should be retried."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"HTTP {response.status_code}")


def get_breaker(dependency: str) -> aiobreaker.CircuitBreaker:
    """One breaker per dependency, shared across client instances."""
    if dependency not in _breakers:
        cb_config = get_app_config().integrations.circuit_breaker
        _breakers[dependency] = create_circuit_breaker(
            dependency,
            fail_max=cb_config.fail_max,
            timeout_duration=cb_config.timeout_duration,
        )
    return _breakers[dependency]


class ExternalAPIClient:
    """
    Base HTTP client for a third-party API.

    Subclasses set ``dependency`` (used for breaker and log naming) and
    pass base_url and headers.

    Outside ``async with`` every request opens and closes its own
    connection pool. Inside it, one pool serves all requests until exit.

    Usage:
        class ResendClient(ExternalAPIClient):
            dependency = "resend"

        async with ShopifyClient(domain, token) as client:
            ...
    """

    dependency: str = "external"

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if timeout is None:
            timeout = float(get_app_config().application.timeouts.external_api)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = headers or {}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers,
            transport=self._transport,
        )

    @property
    def breaker_key(self) -> str:
        """Name of the circuit breaker this client trips. One per dependency by default."""
        return self.dependency

    @property
    def is_open(self) -> bool:
        return self._client is not None and not self._client.is_closed

    async def close(self) -> None:
        """Close the pooled HTTP client opened by ``async with``."""
        if self.is_open:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "ExternalAPIClient":
        if not self.is_open:
            self._client = self._new_client()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request through breaker and retry.

        Returns:
            The final httpx.Response (2xx or 4xx)

        Raises:
            ExternalServiceError: Breaker open, transport failure, or 5xx after retries
        """
        breaker = get_breaker(self.breaker_key)
        try:
            return await breaker.call_async(self._request_with_retry, method, path, **kwargs)
        except aiobreaker.CircuitBreakerError as e:
            logger.warning(
                "External call rejected by open circuit",
                extra={"dependency": self.dependency, "path": path},
            )
            raise ExternalServiceError(f"{self.dependency} temporarily unavailable") from e
        except RetryableResponseError as e:
            raise ExternalServiceError(
                f"{self.dependency} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "External call failed",
                extra={"dependency": self.dependency, "path": path, "error": str(e)},
            )
            raise ExternalServiceError(f"{self.dependency} request failed") from e

    async def _request_with_retry(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if self.is_open:
            return await self._send_with_retry(self._client, method, path, **kwargs)
        async with self._new_client() as client:
            return await self._send_with_retry(client, method, path, **kwargs)

    async def _send_with_retry(
        self, client: httpx.AsyncClient, method: str, path: str, **kwargs: Any,
    ) -> httpx.Response:
        retry_config = get_app_config().integrations.retry

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(retry_config.max_attempts),
            wait=wait_exponential(
                multiplier=1, min=retry_config.backoff_min, max=retry_config.backoff_max,
            ),
            retry=retry_if_exception_type((httpx.TransportError, RetryableResponseError)),
            before_sleep=log_retry,
            reraise=True,
        ):
            with attempt:
                logger.debug(
                    "External request",
                    extra={"dependency": self.dependency, "method": method, "path": path},
                )
                response = await client.request(method, path, **kwargs)
                if response.status_code >= 500:
                    raise RetryableResponseError(response)
        return response
