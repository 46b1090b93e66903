"""
VoiceBrief Backend: Request Logging Middleware
==============================================

What:  One access-log line per request with status and duration.
How:   Measures from middleware entry to response return, so the duration
       includes rate gating, provider calls and any backoff sleeps.
Who:   Logs to the "voicebrief.access" logger.

Typical durations:
    GET  /api/health:      1-50ms (more when the SMTP relay is verified)
    POST /api/summarize:   1-5s (provider call dominates)
    POST /api/transcribe:  2-15s (upload + provider call)

Not logged (privacy): request bodies, transcripts, email addresses, audio.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from voicebrief.middleware.request_id import request_id_var

logger = logging.getLogger("voicebrief.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status, duration, request ID and client IP.

    Level by status: 5xx → ERROR, 4xx → WARNING, otherwise INFO.
    Health checks are skipped (polled every few seconds by monitors).
    """

    SKIPPED_PATHS = {"/api/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"
        method = request.method
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
