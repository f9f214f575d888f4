"""
TraceRelay Backend — Upstream Recognition Client
==================================================

What:  Sends an OutboundForm to the upstream recognition service.
How:   One multipart POST through httpx with a bounded timeout, then
       classifies the outcome.
Who:   Called by the recognize route after intake and translation.

Outcomes:
    2xx + JSON body          → UpstreamSuccess (body kept as raw bytes)
    2xx + non-JSON body      → UpstreamMalformedResponseError
    non-2xx                  → UpstreamRejectedError (status, body, parsed JSON)
    no response / timed out  → UpstreamUnreachableError
    request not constructible→ RequestBuildError (bad URL, scheme, header or field)

There is exactly one attempt per inbound request. The timeout is applied
both per phase (httpx.Timeout) and to the call as a whole
(asyncio.wait_for), so a slowly trickling upstream cannot hold a request past
the window.
"""

import asyncio
import json
import logging
import time
from typing import Any, Optional

import httpx

from tracerelay.config import settings
from tracerelay.exceptions import (
    RequestBuildError,
    UpstreamMalformedResponseError,
    UpstreamRejectedError,
    UpstreamUnreachableError,
)
from tracerelay.middleware.request_id import request_id_var
from tracerelay.schemas.recognition import OutboundForm, UpstreamSuccess

logger = logging.getLogger(__name__)


def parse_json_body(content: bytes) -> Any:
    """Decode a response body as JSON, returning None when it is not JSON."""
    if not content:
        return None
    try:
        return json.loads(content)
    except ValueError:
        return None


class UpstreamClient:
    """
    Client for the upstream image-recognition API.

    Args:
        endpoint:  Override settings.upstream_url
        timeout:   Override settings.upstream_timeout (seconds)
        transport: Custom httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return self._endpoint or settings.upstream_url

    @property
    def timeout(self) -> float:
        return self._timeout or settings.upstream_timeout

    async def recognize(self, form: OutboundForm) -> UpstreamSuccess:
        """
        Forward one recognition request.

        Returns:
            UpstreamSuccess holding the upstream JSON body byte-for-byte.

        Raises:
            UpstreamRejectedError, UpstreamMalformedResponseError,
            UpstreamUnreachableError, RequestBuildError
        """
        rid = request_id_var.get("")
        start_time = time.perf_counter()

        try:
            response = await asyncio.wait_for(self._post(form), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "[%s] Upstream call timed out after %.1fs", rid, self.timeout
            )
            raise UpstreamUnreachableError(
                message=f"Recognition service did not answer within {self.timeout:g}s",
                context={"endpoint": self.endpoint, "timeout": self.timeout},
            )
        except (httpx.UnsupportedProtocol, httpx.LocalProtocolError) as e:
            logger.error("[%s] Upstream request could not be sent: %s", rid, e)
            raise RequestBuildError(message=str(e), context={"endpoint": self.endpoint})
        except httpx.RequestError as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "[%s] Upstream unreachable after %.0fms: %s: %s",
                rid,
                duration_ms,
                type(e).__name__,
                e,
            )
            raise UpstreamUnreachableError(
                context={"endpoint": self.endpoint, "error_type": type(e).__name__},
            )
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            logger.error("[%s] Upstream request could not be built: %s", rid, e)
            raise RequestBuildError(message=str(e), context={"endpoint": self.endpoint})

        duration_ms = (time.perf_counter() - start_time) * 1000
        return self._classify(response, rid, duration_ms)

    async def _post(self, form: OutboundForm) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            return await client.post(self.endpoint, files=form.as_multipart())

    def _classify(
        self, response: httpx.Response, rid: str, duration_ms: float
    ) -> UpstreamSuccess:
        content = response.content

        if not response.is_success:
            logger.warning(
                "[%s] Upstream rejected request with HTTP %d in %.0fms",
                rid,
                response.status_code,
                duration_ms,
            )
            raise UpstreamRejectedError(
                status_code=response.status_code,
                content=content,
                payload=parse_json_body(content),
                context={"endpoint": self.endpoint},
            )

        try:
            json.loads(content)
        except ValueError:
            logger.warning(
                "[%s] Upstream answered HTTP %d with a non-JSON body (%d bytes)",
                rid,
                response.status_code,
                len(content),
            )
            raise UpstreamMalformedResponseError(
                upstream_status=response.status_code,
                content=content,
                context={"endpoint": self.endpoint},
            )

        media_type = response.headers.get("content-type", "")
        if "json" not in media_type.lower():
            media_type = "application/json"

        logger.info(
            "[%s] Upstream answered HTTP %d in %.0fms (%d bytes)",
            rid,
            response.status_code,
            duration_ms,
            len(content),
        )
        return UpstreamSuccess(
            status_code=response.status_code,
            content=content,
            media_type=media_type,
        )


# Shared instance; a fresh httpx client is opened per call
upstream_client = UpstreamClient()
