"""Request id and access log middleware.

The client's ``X-Request-ID`` is reused when it looks like an id, so a
trace can span the frontend and the API; anything else is replaced with
a fresh UUID before it can reach a log line.  The id is bound to
``request_id_var`` for the life of the request and echoed back.

Organization-scoped routes leave their resolved context on
``request.state.organization``; the access line picks it up from there.
"""

from __future__ import annotations

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from stockroom.core.logging import request_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_ID_RE = re.compile(r"^[\w.:-]{1,128}$")


def _inbound_request_id(request: Request) -> str:
    candidate = request.headers.get(REQUEST_ID_HEADER, "")
    if _REQUEST_ID_RE.match(candidate):
        return candidate
    return str(uuid.uuid4())


def _access_fields(request: Request, status_code: int, started: float) -> dict[str, object]:
    fields: dict[str, object] = {
        "request_id": request_id_var.get(),
        "method": request.method,
        "path": request.url.path,
        "status_code": status_code,
        "duration_ms": round((time.monotonic() - started) * 1000, 1),
    }
    org_context = getattr(request.state, "organization", None)
    if org_context is not None:
        fields["org_id"] = str(org_context.organization_id)
        fields["user_id"] = str(org_context.user_id)
    return fields


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        token = request_id_var.set(_inbound_request_id(request))
        started = time.monotonic()
        try:
            try:
                response = await call_next(request)
            except Exception:
                fields = _access_fields(request, 500, started)
                logger.error(
                    "%s %s -> unhandled error", request.method, fields["path"], extra=fields
                )
                raise

            fields = _access_fields(request, response.status_code, started)
            logger.info(
                "%s %s -> %d (%.1fms)",
                request.method,
                fields["path"],
                response.status_code,
                fields["duration_ms"],
                extra=fields,
            )
            response.headers[REQUEST_ID_HEADER] = request_id_var.get()
            return response
        finally:
            request_id_var.reset(token)
