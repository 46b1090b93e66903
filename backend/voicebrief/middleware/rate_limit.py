"""
VoiceBrief Backend: Rate Limiting Middleware and Route Gates
============================================================

What:  Wires the RateGate into the HTTP layer.
How:   - RateLimitMiddleware applies the GENERAL class to every request.
       - require_admission(cls) is a FastAPI dependency that applies a
         route-specific class (UPLOAD, EMAIL) on top of the general gate.
       Either layer can deny a request independently.
Who:   Registered in main.create_app(); dependencies attached to routes.
When:  The middleware runs right inside CORS, before request ID and
       logging. Route gates run when FastAPI resolves route dependencies.

Response headers:
    Admitted:  RateLimit-Limit, RateLimit-Remaining, RateLimit-Reset
               (a route gate's headers take precedence over the general one)
    Denied:    429 with Retry-After and a `{error, message, details}` body

Client identity:
    The socket peer address. Behind a proxy this is the proxy's address.
"""

import logging
from typing import Callable

from fastapi import Request, Response
from starlette.datastructures import MutableHeaders
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from voicebrief.services.rate_gate import AdmissionDecision, OperationClass, RateGate

logger = logging.getLogger(__name__)


def client_id_for(request: Request) -> str:
    """Client identity used as the rate window key."""
    return getattr(request.client, "host", "unknown") if request.client else "unknown"


def apply_rate_headers(headers: MutableHeaders, decision: AdmissionDecision, overwrite: bool = True) -> None:
    values = {
        "RateLimit-Limit": str(decision.limit),
        "RateLimit-Remaining": str(decision.remaining),
        "RateLimit-Reset": str(decision.retry_after),
    }
    for name, value in values.items():
        if overwrite:
            headers[name] = value
        else:
            headers.setdefault(name, value)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    General-traffic gate applied to every route.

    Not counted:
        API documentation (/docs, /redoc, /openapi.json)
        OPTIONS requests (CORS preflights)
    """

    EXCLUDED_PATHS = {"/docs", "/openapi.json", "/redoc"}
    EXCLUDED_METHODS = {"OPTIONS"}

    def __init__(self, app, gate: RateGate, **kwargs):
        super().__init__(app, **kwargs)
        self.gate = gate

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method in self.EXCLUDED_METHODS or request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        decision = self.gate.check(client_id_for(request), OperationClass.GENERAL)

        if not decision.allowed:
            message = self.gate.policies[OperationClass.GENERAL].message
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": message,
                    "details": {
                        "retry_after": decision.retry_after,
                        "operation_class": OperationClass.GENERAL.value,
                    },
                },
                headers={"Retry-After": str(decision.retry_after)},
            )

        response = await call_next(request)
        apply_rate_headers(response.headers, decision, overwrite=False)
        return response


def require_admission(operation_class: OperationClass) -> Callable:
    """
    Build a route dependency enforcing `operation_class`.

    Usage:
        @router.post("/transcribe", dependencies=[Depends(require_admission(OperationClass.UPLOAD))])

    Denial raises RateLimitExceededError, rendered as 429 by the global handler.
    """

    async def dependency(request: Request, response: Response) -> AdmissionDecision:
        gate: RateGate = request.app.state.rate_gate
        decision = gate.enforce(client_id_for(request), operation_class)
        apply_rate_headers(response.headers, decision)
        return decision

    return dependency
