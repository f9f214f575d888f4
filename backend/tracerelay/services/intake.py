"""
TraceRelay Backend — Upload Intake
====================================

What:  Turns a raw inbound request into a validated `InboundRequest`.
How:   Reads the body (multipart/urlencoded form or JSON) through a size
       limited stream, then checks that an image source is present, that an
       uploaded file declares an image content type, and that it fits within
       the configured size limit.
Who:   Called by the recognize route before anything is sent upstream.
When:  First step of every POST /api/recognize.

Validation order:
    1. Declared body length  (Content-Length, rejected before any body is read)
    2. Streamed body length  (reading stops once the body limit is passed)
    3. File part length      (parsing stops once the file passes the limit)
    4. Source present        (file part or non-blank `url` field)
    5. Declared content type (must start with "image/")
    6. File size again     (for UploadFile objects handed to validate() directly)
    7. Non-empty file

The body limit is the file limit plus MULTIPART_ALLOWANCE for framing and
the option fields.

Precedence:
    When a request carries both a file and a URL, the file is used and the URL
    is dropped.

Memory only:
    File parts are collected by InMemoryMultiPartParser, whose spool threshold
    sits above the body limit, so an upload never rolls over to a temporary
    file. Every part of the form is closed once validation ends.
"""

import json
import logging
from typing import Any, AsyncGenerator, Mapping, Optional

from starlette.datastructures import FormData, Headers, UploadFile
from starlette.formparsers import FormParser, MultiPartException, MultiPartParser
from starlette.requests import Request

from tracerelay.config import settings
from tracerelay.exceptions import ValidationError
from tracerelay.schemas.recognition import (
    OPTION_FIELDS,
    ImagePayload,
    InboundRequest,
    RecognitionOptions,
)

logger = logging.getLogger(__name__)

MISSING_IMAGE_MESSAGE = "Please upload an image file or provide an image URL."
UNSUPPORTED_TYPE_MESSAGE = "Unsupported file type '{content_type}'. Only image files can be uploaded."
TOO_LARGE_MESSAGE = "Image file is too large (maximum {limit})."
EMPTY_IMAGE_MESSAGE = "The uploaded image file is empty."

# Room for multipart framing and the option fields on top of the image itself
MULTIPART_ALLOWANCE = 64 * 1024


def format_size(num_bytes: int) -> str:
    """Render a byte count the way users read it: 5MB, 512KB, 10 bytes."""
    if num_bytes >= 1024 * 1024:
        return f"{round(num_bytes / (1024 * 1024), 1):g}MB"
    if num_bytes >= 1024:
        return f"{round(num_bytes / 1024, 1):g}KB"
    return f"{num_bytes} bytes"


def too_large_error(limit: int, size: int) -> ValidationError:
    return ValidationError(
        message=TOO_LARGE_MESSAGE.format(limit=format_size(limit)),
        field="file",
        context={"max_size": limit, "actual_size": size},
    )


class InMemoryMultiPartParser(MultiPartParser):
    """
    Starlette multipart parser that never spools file parts to disk.

    Starlette rolls file parts over to a temporary file past 1MB. Here the
    spool threshold is raised above the whole body limit, and a file part is
    rejected as soon as it grows past max_file_size, while it is still being
    received.
    """

    def __init__(
        self,
        headers: Headers,
        stream: AsyncGenerator[bytes, None],
        *,
        max_file_size: int,
    ):
        super().__init__(headers, stream)
        self.max_file_size = max_file_size
        self.spool_max_size = max_file_size + MULTIPART_ALLOWANCE
        self._file_part_size = 0

    def on_part_begin(self) -> None:
        super().on_part_begin()
        self._file_part_size = 0

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._current_part.file is not None:
            self._file_part_size += end - start
            if self._file_part_size > self.max_file_size:
                raise too_large_error(self.max_file_size, self._file_part_size)
        super().on_part_data(data, start, end)


class UploadIntake:
    """
    Validates inbound recognition requests.

    Args:
        max_file_size: Override the configured upload limit in bytes
                       (used in tests). If None, settings.max_file_size is
                       read on every request.
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(self, max_file_size: Optional[int] = None):
        self._max_file_size = max_file_size

    @property
    def max_file_size(self) -> int:
        return self._max_file_size or settings.max_file_size

    @property
    def body_limit(self) -> int:
        return self.max_file_size + MULTIPART_ALLOWANCE

    # ── Body Parsing ──────────────────────────────────────────────────────

    async def from_request(self, request: Request) -> InboundRequest:
        """
        Parse and validate a raw request.

        Accepts multipart/form-data and urlencoded forms (fields `file`, `url`
        and the recognition options) as well as a JSON object carrying `url`
        and the options.

        Raises:
            ValidationError on any malformed or unacceptable input.
        """
        content_type = request.headers.get("content-type", "").lower()

        self._check_declared_length(request)
        stream = self._limited_stream(request)

        if content_type.startswith("application/json"):
            values = await self._read_json(stream)
            return await self.validate(file=None, url=values.get("url"), options=values)

        form = await self._read_form(request.headers, content_type, stream)
        try:
            file = form.get("file")
            if not isinstance(file, UploadFile):
                file = None
            return await self.validate(file=file, url=form.get("url"), options=form)
        finally:
            # Repeated `file` parts are closed here too, not only the one used
            await form.close()

    def _check_declared_length(self, request: Request) -> None:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.body_limit:
            raise too_large_error(self.max_file_size, int(declared))

    async def _limited_stream(self, request: Request) -> AsyncGenerator[bytes, None]:
        received = 0
        async for chunk in request.stream():
            received += len(chunk)
            if received > self.body_limit:
                raise too_large_error(self.max_file_size, received)
            yield chunk

    async def _read_form(
        self,
        headers: Headers,
        content_type: str,
        stream: AsyncGenerator[bytes, None],
    ) -> FormData:
        if content_type.startswith("multipart/form-data"):
            parser = InMemoryMultiPartParser(headers, stream, max_file_size=self.max_file_size)
        elif content_type.startswith("application/x-www-form-urlencoded"):
            parser = FormParser(headers, stream)
        else:
            return FormData()

        try:
            return await parser.parse()
        except MultiPartException as exc:
            raise ValidationError(
                message=f"Malformed form data: {exc.message}",
                context={"content_type": content_type},
            )

    async def _read_json(self, stream: AsyncGenerator[bytes, None]) -> Mapping[str, Any]:
        body = b"".join([chunk async for chunk in stream])
        try:
            payload = json.loads(body)
        except ValueError:
            raise ValidationError(message="Request body is not valid JSON.")
        if not isinstance(payload, dict):
            raise ValidationError(message="Request body must be a JSON object.")
        return payload

    # ── Validation ────────────────────────────────────────────────────────

    async def validate(
        self,
        file: Optional[UploadFile],
        url: Any,
        options: Mapping[str, Any],
    ) -> InboundRequest:
        """
        Validate the extracted parts of a request.

        Args:
            file:    The uploaded `file` part, if any
            url:     The `url` field, if any (blank strings count as absent)
            options: Any mapping holding the recognition option fields

        Returns:
            InboundRequest with exactly one image source set.
        """
        try:
            if url is not None and not isinstance(url, str):
                raise ValidationError(message="The 'url' field must be a string.", field="url")
            image_url = url.strip() if url and url.strip() else None

            recognition_options = self._extract_options(options)

            if file is not None and not self._is_blank_part(file):
                if image_url is not None:
                    logger.debug("Both file and url supplied; using the uploaded file")
                image = await self._read_image(file)
                return InboundRequest(image=image, options=recognition_options)

            if image_url is not None:
                return InboundRequest(image_url=image_url, options=recognition_options)

            raise ValidationError(message=MISSING_IMAGE_MESSAGE, field="file")
        finally:
            if file is not None:
                await file.close()

    @staticmethod
    def _is_blank_part(file: UploadFile) -> bool:
        """An empty <input type=file> submits a part with no filename and no bytes."""
        return not file.filename and not file.size

    async def _read_image(self, file: UploadFile) -> ImagePayload:
        content_type = (file.content_type or "").lower()
        if not content_type.startswith("image/"):
            raise ValidationError(
                message=UNSUPPORTED_TYPE_MESSAGE.format(
                    content_type=file.content_type or "unknown"
                ),
                field="file",
                context={"content_type": file.content_type},
            )

        if file.size is not None and file.size > self.max_file_size:
            raise too_large_error(self.max_file_size, file.size)

        content = await self._read_limited(file)
        if not content:
            raise ValidationError(message=EMPTY_IMAGE_MESSAGE, field="file")

        logger.info(
            "Accepted upload: filename=%s, type=%s, size=%d bytes",
            file.filename,
            content_type,
            len(content),
        )
        return ImagePayload(
            content=content,
            filename=file.filename or "upload",
            content_type=file.content_type,
        )

    async def _read_limited(self, file: UploadFile) -> bytes:
        chunks = []
        total = 0
        while True:
            chunk = await file.read(self.CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > self.max_file_size:
                raise too_large_error(self.max_file_size, total)
            chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def _extract_options(values: Mapping[str, Any]) -> RecognitionOptions:
        """Keep only supplied options, converting JSON scalars to form strings."""
        supplied = {}
        for name in OPTION_FIELDS:
            if name not in values:
                continue
            value = values.get(name)
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif isinstance(value, (int, float)):
                value = str(value)
            elif not isinstance(value, str):
                raise ValidationError(
                    message=f"Option '{name}' must be a text value.",
                    field=name,
                )
            supplied[name] = value
        return RecognitionOptions(**supplied)


# Shared instance; holds no per-request state
upload_intake = UploadIntake()
