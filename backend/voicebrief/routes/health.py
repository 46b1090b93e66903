"""
VoiceBrief Backend: Health Check Route
======================================

What:  GET /api/health, configuration and relay status for monitoring.
How:   Reports whether Gemini and SMTP credentials are configured and, when
       SMTP is configured, whether the relay accepts a connection and login.

Status levels:
    healthy:   Gemini and SMTP both configured (HTTP 200)
    degraded:  either is missing (HTTP 503)

    A failed relay verification is reported in `emailVerified` but does not
    change the status: verify() only signals, the caller decides.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from voicebrief import __version__
from voicebrief.config import settings
from voicebrief.schemas.voice import HealthResponse
from voicebrief.services.email_service import email_service
from voicebrief.services.scheduler import delivery_scheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Degraded: missing configuration", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check() -> JSONResponse:
    gemini_configured = settings.gemini_configured
    smtp_configured = settings.smtp_configured

    email_verified = None
    if smtp_configured:
        email_verified = await email_service.verify()
        if not email_verified:
            logger.warning("Health check: SMTP relay verification failed")

    healthy = gemini_configured and smtp_configured
    body = HealthResponse(
        status="healthy" if healthy else "degraded",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        gemini_configured=gemini_configured,
        smtp_configured=smtp_configured,
        email_verified=email_verified,
        pending_deliveries=delivery_scheduler.pending_count,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(
        status_code=200 if healthy else 503,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )
