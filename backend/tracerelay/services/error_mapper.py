"""
TraceRelay Backend — Upstream Error Mapper
============================================

What:  Converts a failed upstream call into (HTTP status, user message, details).
How:   A read-only table maps the recognition service's numeric error codes
       to human-readable messages; everything else falls back to the
       upstream's own `message` text or a generic message.

Mapping:
    UpstreamMalformedResponseError → 502, "unreadable response" message
    UpstreamRejectedError    → table message / upstream `message` / generic,
                               status mirrors the upstream
    UpstreamUnreachableError → 500, "cannot reach" message
    RequestBuildError        → 500, "Request configuration error: <text>"

`details` carries the upstream error body when it was structured JSON
(object or array) and is omitted otherwise.
"""

from types import MappingProxyType
from typing import Any, Mapping, NamedTuple, Optional

from tracerelay.exceptions import (
    RequestBuildError,
    UpstreamError,
    UpstreamMalformedResponseError,
    UpstreamRejectedError,
    UpstreamUnreachableError,
)

GENERIC_UPSTREAM_MESSAGE = "Recognition service error"
UNREACHABLE_MESSAGE = "Cannot reach the recognition service, please try again later"
REQUEST_BUILD_MESSAGE = "Request configuration error: {error}"
MALFORMED_MESSAGE = "The recognition service returned an unreadable response, please try again"

# Upstream error code → user-facing message. Codes are defined by the
# recognition service; unknown codes fall back to its `message` field.
ERROR_CODE_MESSAGES: Mapping[int, str] = MappingProxyType({
    17701: "Image is too large, please upload a smaller image",
    17702: "Server is busy, please try again later",
    17703: "Invalid request parameters, please check your input",
    17704: "The recognition API is under maintenance, please try again later",
    17705: "Unsupported image format, please upload a JPG, PNG or GIF image",
    17706: "Recognition could not be completed, please try again",
    17707: "Internal server error, please try again",
    17708: "Too many characters in the image",
    17722: "Failed to download the image, please check the image URL",
    17728: "Usage limit reached, please try again later",
    17731: "Too many users right now, please try again",
})


class MappedError(NamedTuple):
    status_code: int
    message: str
    details: Optional[Any] = None


def extract_error_code(payload: Any) -> Optional[int]:
    """Pull a numeric `code` out of an upstream error body, if there is one."""
    if not isinstance(payload, dict):
        return None
    code = payload.get("code")
    if isinstance(code, bool):
        return None
    if isinstance(code, int):
        return code
    if isinstance(code, str) and code.strip().isdigit():
        return int(code.strip())
    return None


def _rejected_message(payload: Any) -> str:
    code = extract_error_code(payload)
    if code is not None and code in ERROR_CODE_MESSAGES:
        return ERROR_CODE_MESSAGES[code]
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return GENERIC_UPSTREAM_MESSAGE


def map_upstream_error(exc: UpstreamError) -> MappedError:
    """Produce the status, message and details returned to the client."""
    if isinstance(exc, UpstreamMalformedResponseError):
        return MappedError(exc.status_code, MALFORMED_MESSAGE)

    if isinstance(exc, UpstreamRejectedError):
        details = exc.payload if isinstance(exc.payload, (dict, list)) else None
        return MappedError(exc.status_code, _rejected_message(exc.payload), details)

    if isinstance(exc, UpstreamUnreachableError):
        return MappedError(500, UNREACHABLE_MESSAGE)

    if isinstance(exc, RequestBuildError):
        return MappedError(500, REQUEST_BUILD_MESSAGE.format(error=exc.message))

    return MappedError(500, GENERIC_UPSTREAM_MESSAGE)
