"""Prometheus request metrics middleware."""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from botfleet.infrastructure.observability.metrics import (
    API_REQUEST_DURATION,
    API_REQUESTS_TOTAL,
)


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Counts requests and observes latency per route template."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.perf_counter()
        response = await call_next(request)

        # Route templates keep label cardinality bounded
        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")
        API_REQUESTS_TOTAL.labels(
            method=request.method, endpoint=endpoint, status_code=str(response.status_code)
        ).inc()
        API_REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(
            time.perf_counter() - started
        )
        return response
