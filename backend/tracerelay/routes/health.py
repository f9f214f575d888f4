"""
TraceRelay Backend — Health Check Route
=========================================

What:  Liveness endpoint for Docker health checks and load balancers.
How:   Reports version, configured upstream and uptime. It does not call the
       recognition service, so probes never spend upstream quota.
"""

import time

from fastapi import APIRouter

from tracerelay import __version__
from tracerelay.config import settings
from tracerelay.schemas.recognition import HealthResponse

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        upstream_url=settings.upstream_url,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
