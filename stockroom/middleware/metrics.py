"""Prometheus instrumentation for every HTTP request.

Requests are labelled by route template (``/v1/items/{item_id}``) so
item and org ids never become label values.  Paths that match no route
share ``unmatched``.  Scrapes of /metrics are not counted.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match

from stockroom.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

UNMATCHED = "unmatched"


def _route_template(request: Request) -> str:
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match is Match.FULL:
            return getattr(route, "path", UNMATCHED)
    return UNMATCHED


def _record(request: Request, status_code: int, elapsed: float) -> None:
    endpoint = _route_template(request)
    REQUEST_COUNT.labels(
        method=request.method, endpoint=endpoint, status_code=str(status_code)
    ).inc()
    REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(elapsed)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path == "/metrics":
            return await call_next(request)

        started = time.monotonic()
        with ACTIVE_REQUESTS.track_inprogress():
            try:
                response = await call_next(request)
            except Exception:
                _record(request, 500, time.monotonic() - started)
                raise
        _record(request, response.status_code, time.monotonic() - started)
        return response
