"""
VoiceBrief Backend: Pydantic Request/Response Schemas
=====================================================

What:  Pydantic models defining the API contract with the frontend.
How:   FastAPI validates request bodies against the request models and
       serializes responses through the response models. Wire names are
       camelCase (`nextStep`, `transcriptLength`); Python attributes are
       snake_case. `populate_by_name` accepts either on input.
Who:   Route handlers, VoiceService, and the Delivery Service.

Request models are deliberately permissive (every field optional, loosely
typed). Presence and format checks happen in VoiceService so they produce
the project's own 400 messages rather than FastAPI's generic 422 body.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ══════════════════════════════════════════════════════════════════════════
# Domain Models
# ══════════════════════════════════════════════════════════════════════════


class Summary(CamelModel):
    """
    Structured summary of a transcript.

    Invariant enforced on construction:
        bullets    non-empty list of strings (the prompt targets exactly 5)
        nextStep   non-empty string

    Immutable once built. Constructing one from an untrusted payload is the
    structural validation step.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    bullets: List[StrictStr] = Field(min_length=1, description="Key points, in order")
    next_step: StrictStr = Field(min_length=1, description="Single follow-up action")


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class SummarizeRequest(CamelModel):
    """Body of POST /api/summarize."""

    transcript: Optional[str] = Field(default=None, description="Transcript to summarize")


class SendEmailRequest(CamelModel):
    """
    Body of POST /api/send-email.

    scheduleOption:
        absent or "instant"  → send now
        "5min" | "1hour" | "1day"  → delayed delivery
    """

    email: Optional[str] = Field(default=None, description="Recipient address")
    summary: Optional[Dict[str, Any]] = Field(default=None, description="Summary to deliver")
    transcript: Optional[str] = Field(default=None, description="Full transcript to include")
    schedule_option: Optional[str] = Field(default=None, description="Delivery timing")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class TranscribeResponse(CamelModel):
    """Returned by POST /api/transcribe."""

    success: bool = True
    transcript: str = Field(description="Text recognized in the recording")
    file_size: int = Field(description="Uploaded audio size in bytes")
    duration: Optional[float] = Field(default=None, description="Audio duration (not computed)")


class SummarizeResponse(CamelModel):
    """Returned by POST /api/summarize."""

    success: bool = True
    summary: Summary
    transcript_length: int = Field(description="Characters in the submitted transcript")


class SendEmailResponse(CamelModel):
    """
    Returned by POST /api/send-email.

    Immediate sends fill messageId/timestamp; delayed sends fill
    scheduledTime/delay. Unused fields are omitted from the body.
    """

    success: bool = True
    scheduled: bool
    message: str
    message_id: Optional[str] = None
    timestamp: Optional[str] = None
    scheduled_time: Optional[str] = None
    delay: Optional[str] = None


class HealthResponse(CamelModel):
    """
    Returned by GET /api/health.

    status is "healthy" when both Gemini and SMTP are configured, otherwise
    "degraded". emailVerified is present only when SMTP is configured.
    """

    status: str = Field(description="healthy or degraded")
    server: str = Field(default="running")
    version: str
    timestamp: str = Field(description="Server time (UTC ISO 8601)")
    gemini_configured: bool
    smtp_configured: bool
    email_verified: Optional[bool] = None
    pending_deliveries: int = Field(description="Scheduled emails waiting to fire")
    uptime_seconds: float


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "structural_error",
            "message": "Invalid summary format: missing bullets",
            "details": {"field": "bullets"},
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")
