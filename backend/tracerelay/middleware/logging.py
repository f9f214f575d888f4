"""
TraceRelay Backend — Access Log Middleware
============================================

What:  One access log line per HTTP request.
How:   Times the request and, once the response is ready, logs method, path,
       status, duration and request ID. Recognition requests also log what
       the route and handlers left on request.state:

           recognition_source   "file" | "url"   (set by the recognize route)
           upstream_outcome     "ok" | FailureKind value | "error"

       so one line tells whether a failed request never left intake
       (no outcome), was turned away upstream or could not reach it.
When:  Runs inside RequestIDMiddleware so the request ID is already set.

Never logged: request bodies (uploaded images), image URLs, query strings.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from tracerelay.middleware.request_id import request_id_var

logger = logging.getLogger("tracerelay.access")

# Health checks are not access-logged
QUIET_PATHS = frozenset({"/health"})


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log keyed by request ID; level follows the status class."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - started) * 1000

        fields = {
            "request_id": request_id_var.get(""),
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "source": getattr(request.state, "recognition_source", None),
            "upstream": getattr(request.state, "upstream_outcome", None),
        }

        message = "%(method)s %(path)s %(status)d %(duration_ms).1fms [%(request_id)s]"
        if fields["source"] or fields["upstream"]:
            message += " source=%(source)s upstream=%(upstream)s"

        logger.log(_level_for(response.status_code), message, fields, extra=fields)
        return response
