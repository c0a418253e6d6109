"""Per-request context for the objecthub API.

Assigns the request id used by error envelopes, logs one line per request
and, when tracing is enabled, wraps the request in a server span.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from objecthub.observability.tracing import is_tracing_enabled

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"
MAX_REQUEST_ID_LENGTH = 128


def _incoming_request_id(request: Request) -> str | None:
    value = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if not value or len(value) > MAX_REQUEST_ID_LENGTH:
        return None
    return value


def _route_label(request: Request) -> str:
    """Route template when matched, so signed tokens never reach logs or spans."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return str(path) if path else "unmatched"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach request id, access log line and server span to each request.

    A caller supplied X-Request-Id is reused when it is non-empty and at most
    MAX_REQUEST_ID_LENGTH characters, otherwise a uuid4 is generated. The id is
    stored on request.state.request_id and echoed in the response header.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = _incoming_request_id(request) or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        if is_tracing_enabled():
            response = await self._call_traced(request, call_next, request_id)
        else:
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            _route_label(request),
            response.status_code,
            (time.perf_counter() - started) * 1000,
            extra={"request_id": request_id},
        )
        return response

    async def _call_traced(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
        request_id: str,
    ) -> Response:
        from opentelemetry import trace

        tracer = trace.get_tracer("objecthub.api")
        with tracer.start_as_current_span(
            f"{request.method} objecthub.api", kind=trace.SpanKind.SERVER
        ) as span:
            span.set_attribute("objecthub.request_id", request_id)
            span.set_attribute("http.method", request.method)

            response = await call_next(request)

            span.set_attribute("http.route", _route_label(request))
            span.set_attribute("http.status_code", response.status_code)
            if response.status_code >= 500:
                span.set_attribute("error", True)
            return response
