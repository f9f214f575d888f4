"""
TraceRelay Backend — Recognize Route Handler
==============================================

What:  Handles POST /api/recognize.
How:   Upload Intake → Request Translator → Upstream Client. On success the
       upstream JSON is returned byte-for-byte; failures are raised and turned
       into the error envelope by the handlers registered in main.py.

Request Flow:
    1. Intake validates the body (file or URL, content type, size)
    2. The translator builds the outbound multipart form
    3. The upstream client makes one call, bounded by the configured timeout
    4. 200 with the upstream body, or {error, details?} with the mapped status
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from tracerelay.schemas.recognition import ErrorResponse
from tracerelay.services.intake import UploadIntake, upload_intake
from tracerelay.services.translator import build_outbound_form
from tracerelay.services.upstream import UpstreamClient, upstream_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Recognize"])


def get_upload_intake() -> UploadIntake:
    return upload_intake


def get_upstream_client() -> UpstreamClient:
    return upstream_client


@router.post(
    "/recognize",
    responses={
        200: {
            "description": "Upstream recognition result, passed through unchanged",
            "content": {"application/json": {}},
        },
        400: {"description": "Missing image, unsupported type or file too large", "model": ErrorResponse},
        500: {"description": "Recognition service unreachable or misconfigured", "model": ErrorResponse},
    },
    summary="Recognize an image",
    description=(
        "Upload an image (multipart field `file`, image/* only) or pass an image "
        "`url`, plus optional `is_multi`, `model`, `ai_detect` or legacy "
        "`use_correction` fields. The request is forwarded to the recognition "
        "service and its JSON answer is returned as-is. Upstream errors keep "
        "the upstream status code."
    ),
)
async def recognize(
    request: Request,
    intake: UploadIntake = Depends(get_upload_intake),
    client: UpstreamClient = Depends(get_upstream_client),
) -> Response:
    inbound = await intake.from_request(request)
    source = "file" if inbound.image is not None else "url"
    request.state.recognition_source = source

    logger.info(
        "Recognition request: source=%s, options=%s",
        source,
        [name for name, _ in inbound.options.supplied()],
    )

    form = build_outbound_form(inbound)
    result = await client.recognize(form)
    request.state.upstream_outcome = "ok"

    return Response(
        content=result.content,
        status_code=200,
        media_type=result.media_type,
    )
