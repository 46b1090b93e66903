"""
VoiceBrief Backend: FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers,
       and attaches the shared RateGate to app.state.
Who:   uvicorn (`uvicorn voicebrief.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware:  CORS → General Rate Gate → Request ID      │
    │               → Logging → GZip                           │
    │                                                          │
    │  Routes:      POST /api/transcribe   (+ upload gate)     │
    │               POST /api/summarize                        │
    │               POST /api/send-email   (+ email gate)      │
    │               GET  /api/health                           │
    │                                                          │
    │  Handlers:    Validation→400 │ Quota→429 │ Provider,     │
    │               Structural, Delivery, Storage→500          │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check (logged, not fatal), upload dir
    Shutdown: cancel pending scheduled deliveries (logged as lost)
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from voicebrief import __version__
from voicebrief.config import settings
from voicebrief.exceptions import (
    DeliveryError,
    FileStorageError,
    ProviderError,
    RateLimitExceededError,
    StructuralError,
    ValidationError,
    VoiceBriefError,
)
from voicebrief.middleware.logging import RequestLoggingMiddleware
from voicebrief.middleware.rate_limit import RateLimitMiddleware
from voicebrief.middleware.request_id import RequestIDMiddleware, request_id_var
from voicebrief.routes import email, health, summarize, transcribe
from voicebrief.services.rate_gate import RateGate
from voicebrief.services.scheduler import delivery_scheduler

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure process-wide logging once, at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s to stdout.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosmtplib").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("VoiceBrief Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Health reports the gap; requests needing the missing service fail individually
        logger.error("Configuration error: %s", str(e))

    uploads = Path(settings.upload_dir)
    uploads.mkdir(parents=True, exist_ok=True)
    logger.info("Upload directory: %s", uploads.resolve())
    logger.info("Frontend URL: %s", settings.frontend_url)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("VoiceBrief Backend shutting down...")
    await delivery_scheduler.shutdown()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy to HTTP responses.

    Handler table:
        ValidationError / RequestValidationError  → 400
        RateLimitExceededError                    → 429 + Retry-After
        ProviderError (incl. RateLimitedError)    → 500
        StructuralError                           → 500
        DeliveryError                             → 500
        FileStorageError                          → 500 (path not exposed)
        VoiceBriefError (base)                    → 500
        Exception (fallback)                      → 500, stack trace logged only
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {field} {first.get('msg', '')}".strip() if field else "Invalid request body"
        logger.warning("[%s] Request validation error: %s", request_id_var.get(""), message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", message, {"field": field} if field else None),
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=_error_body("rate_limit_exceeded", exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(ProviderError)
    async def handle_provider_error(request: Request, exc: ProviderError):
        logger.error(
            "[%s] Provider error (%s): %s", request_id_var.get(""), exc.kind.value, exc.message
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("provider_error", exc.message, {"kind": exc.kind.value}),
        )

    @app.exception_handler(StructuralError)
    async def handle_structural_error(request: Request, exc: StructuralError):
        logger.error(
            "[%s] Structural error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("structural_error", exc.message),
        )

    @app.exception_handler(DeliveryError)
    async def handle_delivery_error(request: Request, exc: DeliveryError):
        logger.error("[%s] Delivery error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body("delivery_error", exc.message),
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error(
            "[%s] File storage error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(VoiceBriefError)
    async def handle_voicebrief_error(request: Request, exc: VoiceBriefError):
        logger.error("[%s] Application error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", exc.message),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(rate_gate: Optional[RateGate] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        rate_gate: Shared gate for the middleware and route dependencies.
                   A fresh gate with settings-derived policies when omitted.
    """
    app = FastAPI(
        title="VoiceBrief API",
        description=(
            "Record a conversation, get a transcript and a five-point summary with a "
            "next step, and email it now or later."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    gate = rate_gate or RateGate()
    app.state.rate_gate = gate

    # Middleware executes in REVERSE order of addition:
    # CORS → RateLimit → RequestID → Logging → GZip
    # CORS is outermost so preflights never reach the gate and 429s carry
    # Access-Control-Allow-Origin.
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware, gate=gate)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
            "RateLimit-Limit",
            "RateLimit-Remaining",
            "RateLimit-Reset",
        ],
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(transcribe.router)
    app.include_router(summarize.router)
    app.include_router(email.router)

    @app.get("/", tags=["Health"], summary="API information")
    async def root() -> dict:
        return {"message": "Voice Agent API Server", "status": "running", "version": __version__}

    return app


app = create_app()
