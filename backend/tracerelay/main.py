"""
TraceRelay Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn tracerelay.main:app),
       or through the `tracerelay` console script.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌────────┐ ┌─────────┐ ┌────────┐ ┌────────────┐   │
    │  │ Req ID │→│ Logging │→│  CORS  │→│ Unhandled  │   │
    │  └────────┘ └─────────┘ └────────┘ └────────────┘   │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────────┐ ┌──────────┐ ┌─────────────┐  │
    │  │ POST /api/recog. │ │ GET /    │ │ GET /health │  │
    │  └──────────────────┘ └──────────┘ └─────────────┘  │
    │                                                     │
    │  Exception Handlers (+ Unhandled middleware):       │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ Validation→400 │ Upstream→mapped │ other→500 │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Every failure ends up as the JSON envelope {error, details?}; no exception
escapes to crash the worker.
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from tracerelay import __version__
from tracerelay.config import settings
from tracerelay.exceptions import UpstreamError, ValidationError
from tracerelay.middleware.errors import UnhandledErrorMiddleware, error_envelope
from tracerelay.middleware.logging import RequestLoggingMiddleware
from tracerelay.middleware.request_id import RequestIDMiddleware, request_id_var
from tracerelay.routes import health, recognize
from tracerelay.services.error_mapper import map_upstream_error

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-request noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("TraceRelay %s starting up...", __version__)
    logger.info("Upstream: %s (timeout %.0fs)", settings.upstream_url, settings.upstream_timeout)
    logger.info("Upload limit: %gMB", settings.max_file_size_mb)
    logger.info("Server ready at http://%s:%d", settings.host, settings.port)
    logger.info("=" * 60)

    yield

    logger.info("TraceRelay shutting down.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        ValidationError  → 400 Bad Request
        UpstreamError    → status/message/details from the error mapper
        Anything else is answered by UnhandledErrorMiddleware (500)
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        return error_envelope(400, exc.message)

    @app.exception_handler(UpstreamError)
    async def handle_upstream_error(request: Request, exc: UpstreamError):
        rid = request_id_var.get("")
        request.state.upstream_outcome = exc.kind.value
        mapped = map_upstream_error(exc)
        logger.error(
            "[%s] Upstream failure (%s): %s | Context: %s",
            rid,
            exc.kind.value,
            exc.message,
            exc.context,
        )
        return error_envelope(mapped.status_code, mapped.message, mapped.details)


# ══════════════════════════════════════════════════════════════════════════
# Static Front-End
# ══════════════════════════════════════════════════════════════════════════

def mount_frontend(app: FastAPI, static_root: str) -> None:
    """
    Serve the front-end page at GET / and its assets from static_root.

    Mounted after the API routes so /api/* and /health always win.
    """
    root = Path(static_root)
    if not root.is_dir():
        logger.warning("Static directory %s not found; serving the API only", root)
        return
    app.mount("/", StaticFiles(directory=str(root), html=True), name="frontend")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="TraceRelay API",
        description=(
            "Relays uploaded images or image URLs to the AnimeTrace recognition "
            "service and returns its JSON result."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in REVERSE order of addition: RequestID → Logging → CORS → Unhandled
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(recognize.router)
    app.include_router(health.router)
    mount_frontend(app, settings.static_root)

    return app


def run() -> None:
    """Console entry point: serve the app on settings.host / settings.port."""
    uvicorn.run(
        "tracerelay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


# uvicorn expects `tracerelay.main:app` to be importable
app = create_app()
