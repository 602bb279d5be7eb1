"""
Request logging middleware with correlation ID support.

Each request gets a short correlation ID bound to the structlog context, so
every log line emitted while serving it (including the secret service's
lifecycle events) can be tied together.

Privacy: secret ids travel in the path of reveal requests, so only the route
template is logged, never the concrete path, query string, headers or IPs.
"""

import secrets
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    """Generate an 8-character correlation ID."""
    return secrets.token_hex(4)


def current_correlation_id() -> str | None:
    """Correlation ID bound for the request being served, if any."""
    return structlog.contextvars.get_contextvars().get("correlation_id")


def route_template(request: Request) -> str:
    """
    Template of the matched route, including any router prefix.

    Depending on the FastAPI version, scope["route"] is either the prefixed
    copy made by include_router or the router's own route without the
    prefix. The prefix is the static part of the path in front of the
    portion the route matched.
    """
    path = request.url.path
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    path_regex = getattr(route, "path_regex", None)
    if template is None or path_regex is None:
        return path
    for index, char in enumerate(path):
        if char == "/" and path_regex.match(path[index:]):
            return path[:index] + template
    return template


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs request_started / request_completed / request_failed events
    and echoes the correlation ID in the response headers.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = generate_correlation_id()
        start_time = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        logger = structlog.get_logger()
        logger.info("request_started", method=request.method)

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "request_failed",
                method=request.method,
                path=route_template(request),
                error=type(e).__name__,
                duration_ms=round(duration_ms, 2),
                exc_info=True,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "request_completed",
            method=request.method,
            path=route_template(request),
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
