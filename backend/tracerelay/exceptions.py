"""
TraceRelay Backend — Custom Exception Hierarchy
=================================================

What:  Defines application-specific exceptions for every failure a
       recognition request can run into.
How:   Each exception class carries a user-facing message and an optional
       context dict. Global exception handlers (registered in main.py) catch
       these and return the JSON error envelope `{error, details?}`.
Who:   Raised by the intake and the upstream client; caught by global handlers.

Exception Hierarchy:
    TraceRelayError (base)
    ├── ValidationError                    → 400 Bad Request (client can fix)
    └── UpstreamError                      (kind-tagged upstream failure)
        ├── UpstreamRejectedError          → mirrors the upstream status code
        │   └── UpstreamMalformedResponseError → 502 Bad Gateway
        ├── UpstreamUnreachableError       → 500 (no response received)
        └── RequestBuildError              → 500 (outbound call could not be built)

The upstream failures together are the failure half of an upstream result:
a successful call returns `UpstreamSuccess`, every other outcome raises one
of the `UpstreamError` subclasses, and `kind` names which one it was.
"""

import enum
from typing import Any, Dict, Optional


class TraceRelayError(Exception):
    """
    Base exception for all TraceRelay application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(TraceRelayError):
    """
    Raised when the inbound request fails intake validation.

    When:    No image and no URL, non-image content type, oversized or empty
             file, malformed request body.
    HTTP:    400 Bad Request

    Example response:
        {"error": "Please upload an image file or provide an image URL."}
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class FailureKind(str, enum.Enum):
    """Tag identifying which way an upstream call failed."""

    UPSTREAM_REJECTED = "upstream_rejected"
    UNREACHABLE = "unreachable"
    REQUEST_BUILD_ERROR = "request_build_error"


class UpstreamError(TraceRelayError):
    """Base class for every failed upstream call."""

    kind: FailureKind

    def __init__(
        self,
        message: str = "Recognition service error",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.status_code = status_code


class UpstreamRejectedError(UpstreamError):
    """
    The upstream answered, but with a non-2xx status.

    Attributes:
        status_code:  The upstream HTTP status (mirrored to our client)
        content:      Raw response body bytes
        payload:      Parsed JSON body, or None when the body was not JSON
    """

    kind = FailureKind.UPSTREAM_REJECTED

    def __init__(
        self,
        status_code: int,
        content: bytes = b"",
        payload: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=f"Recognition service responded with HTTP {status_code}",
            status_code=status_code,
            context=context,
        )
        self.content = content
        self.payload = payload


class UpstreamMalformedResponseError(UpstreamRejectedError):
    """
    The upstream answered 2xx but the body is not JSON.

    The relay only passes through JSON, so this is reported as 502 instead of
    echoing a success status around an error message.
    """

    def __init__(
        self,
        upstream_status: int,
        content: bytes = b"",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=502, content=content, payload=None, context=context)
        self.upstream_status = upstream_status
        self.message = "Recognition service returned a malformed response"


class UpstreamUnreachableError(UpstreamError):
    """
    No response was received: connection refused, DNS failure, timeout.

    HTTP:    500
    """

    kind = FailureKind.UNREACHABLE

    def __init__(
        self,
        message: str = "Recognition service is unreachable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, status_code=None, context=context)


class RequestBuildError(UpstreamError):
    """
    The outbound request could not be constructed or sent (local fault,
    e.g. a misconfigured upstream URL).

    HTTP:    500
    """

    kind = FailureKind.REQUEST_BUILD_ERROR

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, status_code=None, context=context)
