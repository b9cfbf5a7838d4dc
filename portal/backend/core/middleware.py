"""
Request Context Middleware.

Binds a request id and timing to every request and propagates them
to structlog so that all log lines of one request can be correlated.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from portal.backend.core.logging import get_logger

logger = get_logger(__name__)

# Clients that identify themselves via X-Frontend-ID
KNOWN_FRONTENDS = {"web", "cli", "api", "internal"}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Adds request context to every request.

    Headers:
    - X-Request-ID: propagated, or generated when absent
    - X-Frontend-ID: client identifier (web, cli, api, internal)
    - X-Response-Time: response duration in milliseconds (response only)

    Stored on request.state: request_id, frontend, start_time.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        frontend = request.headers.get("X-Frontend-ID", "unknown").lower()
        if frontend not in KNOWN_FRONTENDS:
            frontend = "unknown"

        start = time.perf_counter()
        request.state.request_id = request_id
        request.state.frontend = frontend

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            frontend=frontend,
            method=request.method,
            path=request.url.path,
            source="web",
        )

        logger.debug(
            "Request started",
            extra={"client_host": request.client.host if request.client else None},
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.error(
                "Request failed with exception",
                extra={"duration_ms": duration_ms, "error_type": type(exc).__name__},
            )
            structlog.contextvars.clear_contextvars()
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        logger.debug(
            "Request completed",
            extra={"status_code": response.status_code, "duration_ms": duration_ms},
        )
        structlog.contextvars.clear_contextvars()
        return response
