"""
VoiceBrief Backend: Send-Email Route Handler
============================================

What:  POST /api/send-email, deliver a summary now or after a delay.
How:   `scheduleOption` absent or "instant" sends immediately; "5min",
       "1hour" or "1day" registers a delayed delivery and returns at once.
Gates: general (middleware) + email (route dependency)
"""

from fastapi import APIRouter, Depends

from voicebrief.middleware.rate_limit import require_admission
from voicebrief.schemas.voice import ErrorResponse, SendEmailRequest, SendEmailResponse
from voicebrief.services.rate_gate import OperationClass
from voicebrief.services.voice_service import voice_service

router = APIRouter(prefix="/api", tags=["Email"])


@router.post(
    "/send-email",
    response_model=SendEmailResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(require_admission(OperationClass.EMAIL))],
    responses={
        400: {"description": "Invalid email, summary, transcript or option", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "Email send failed", "model": ErrorResponse},
    },
    summary="Email a summary, immediately or scheduled",
)
async def send_email(body: SendEmailRequest) -> SendEmailResponse:
    return await voice_service.deliver_summary(
        email=body.email,
        summary=body.summary,
        transcript=body.transcript,
        schedule_option=body.schedule_option,
    )
