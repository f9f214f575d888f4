"""
TraceRelay Backend — Unhandled Error Middleware
=================================================

What:  Turns any exception no handler claimed into the 500 error envelope.
How:   Wraps the route call; ValidationError and UpstreamError never reach it
       because their handlers in main.py answer first.
When:  Innermost middleware, so the response still passes back through CORS,
       access logging and RequestIDMiddleware (which adds X-Request-ID).

Errors must not reach Starlette's ServerErrorMiddleware, which sits outside
RequestIDMiddleware and would answer without X-Request-ID.
"""

import logging
from typing import Any, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tracerelay.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_envelope(status_code: int, message: str, details: Optional[Any] = None) -> JSONResponse:
    """Build the {error, details?} response used on every failure path."""
    content = {"error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


class UnhandledErrorMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            rid = request_id_var.get("")
            logger.error("[%s] Unexpected error: %s", rid, exc, exc_info=True)
            request.state.upstream_outcome = "error"
            return error_envelope(500, INTERNAL_ERROR_MESSAGE)
