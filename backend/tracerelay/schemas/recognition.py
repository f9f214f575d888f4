"""
TraceRelay Backend — Recognition Request/Response Schemas
==========================================================

What:  Pydantic models for every value that flows through one recognition
       request: the validated inbound request, the outbound multipart form,
       the upstream success and the error envelope.
How:   All models are request-scoped and never persisted. Uploaded bytes
       live in `ImagePayload.content` until the response is sent.
"""

from typing import Any, List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

# Recognition options understood by the upstream, in the order they are
# appended to the outbound form. `use_correction` belongs to the legacy
# endpoint and is forwarded only when a client sends it.
OPTION_FIELDS: Tuple[str, ...] = ("is_multi", "model", "ai_detect", "use_correction")


# ══════════════════════════════════════════════════════════════════════════
# Inbound Models: What Upload Intake produces
# ══════════════════════════════════════════════════════════════════════════


class ImagePayload(BaseModel):
    """An uploaded image held in memory for the duration of one request."""

    content: bytes = Field(repr=False, description="Raw image bytes")
    filename: str = Field(description="Original filename as sent by the client")
    content_type: str = Field(description="Declared MIME type, always image/*")

    @property
    def size(self) -> int:
        return len(self.content)


class RecognitionOptions(BaseModel):
    """
    Optional recognition parameters, carried over verbatim.

    None means "not supplied" and is never forwarded. An empty string is a
    supplied value and IS forwarded: the upstream treats absence and an
    empty string differently.
    """

    is_multi: Optional[str] = Field(default=None, description="Recognize every subject in the image")
    model: Optional[str] = Field(default=None, description="Upstream recognition model selector")
    ai_detect: Optional[str] = Field(default=None, description="Run AI-generated image detection")
    use_correction: Optional[str] = Field(default=None, description="Legacy correction flag")

    def supplied(self) -> List[Tuple[str, str]]:
        """Return (name, value) pairs for the options that were supplied, in form order."""
        pairs = []
        for name in OPTION_FIELDS:
            value = getattr(self, name)
            if value is not None:
                pairs.append((name, value))
        return pairs


class InboundRequest(BaseModel):
    """
    A validated recognition request.

    Invariant: exactly one of `image` and `image_url` is set.
    """

    image: Optional[ImagePayload] = None
    image_url: Optional[str] = None
    options: RecognitionOptions = Field(default_factory=RecognitionOptions)

    @model_validator(mode="after")
    def check_exactly_one_source(self) -> "InboundRequest":
        if (self.image is None) == (self.image_url is None):
            raise ValueError("exactly one of image or image_url must be set")
        return self


# ══════════════════════════════════════════════════════════════════════════
# Outbound Models: What the Request Translator produces
# ══════════════════════════════════════════════════════════════════════════


class OutboundForm(BaseModel):
    """
    The multipart body sent to the upstream service.

    `file` is set for local uploads; otherwise `fields` starts with the
    `url` field. The remaining `fields` are the supplied options.
    """

    file: Optional[ImagePayload] = None
    fields: List[Tuple[str, str]] = Field(default_factory=list)

    @property
    def data(self) -> dict:
        """The string fields as a dict (for assertions and logging)."""
        return dict(self.fields)

    def as_multipart(self) -> list:
        """
        Render the form as an httpx `files=` list.

        String fields are rendered as parts without a filename so the body
        is multipart/form-data even when no file is attached.
        """
        parts = []
        if self.file is not None:
            parts.append(
                ("file", (self.file.filename, self.file.content, self.file.content_type))
            )
        for name, value in self.fields:
            parts.append((name, (None, value)))
        return parts


# ══════════════════════════════════════════════════════════════════════════
# Result Models
# ══════════════════════════════════════════════════════════════════════════


class UpstreamSuccess(BaseModel):
    """A 2xx JSON answer from the upstream, passed through untouched."""

    status_code: int
    content: bytes = Field(repr=False)
    media_type: str = "application/json"


class ErrorResponse(BaseModel):
    """
    The error envelope returned on every failure path.

    Example:
        {
            "error": "Image is too large, please upload a smaller image",
            "details": {"code": 17701, "message": "Image too large"}
        }

    `details` is present only when the upstream supplied structured error data.
    """

    error: str = Field(description="Human-readable error message")
    details: Optional[Any] = Field(default=None, description="Upstream error body, when structured")


class HealthResponse(BaseModel):
    """Liveness information returned by GET /health."""

    status: str = Field(description="Overall service status")
    version: str = Field(description="Application version")
    upstream_url: str = Field(description="Configured recognition endpoint")
    uptime_seconds: float = Field(description="Seconds since service started")
