"""
VoiceBrief Backend: Request ID Middleware
=========================================

What:  Assigns each request a short correlation ID.
How:   Reuses the client's X-Request-ID header when it is a safe token,
       otherwise generates one; stores it in a ContextVar (read by the
       logging middleware and exception handlers) and echoes it in the
       response.

Client-supplied IDs end up in log lines and JSON error bodies, so only
1-64 characters of [A-Za-z0-9._-] are accepted. Anything else (spaces,
newlines, markup, oversized values) is replaced by a generated ID.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

SAFE_REQUEST_ID = re.compile(r"[A-Za-z0-9._-]{1,64}")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


def resolve_request_id(client_value: Optional[str]) -> str:
    """Client's ID if it is a safe token, a fresh one otherwise."""
    if client_value and SAFE_REQUEST_ID.fullmatch(client_value):
        return client_value
    return new_request_id()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Sets request_id_var and request.state.request_id; adds X-Request-ID."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get("X-Request-ID"))
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
