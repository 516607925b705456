"""Per-request id and access log line.

Takes ``X-Request-ID`` from the client when present (so a trace can
cross service boundaries) or generates one, stores it in
``request_id_var`` for the logging filter, and echoes it back on the
response.  One summary line is logged per request with method, path,
status and duration as structured fields.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import request_id_var, user_id_var

logger = logging.getLogger(__name__)

_MAX_REQUEST_ID_LEN = 128


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id", "")[:_MAX_REQUEST_ID_LEN] or str(
            uuid.uuid4()
        )
        id_token = request_id_var.set(req_id)
        user_token = user_id_var.set(None)
        start = time.monotonic()
        try:
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)
            logger.info(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            user_id_var.reset(user_token)
            request_id_var.reset(id_token)
