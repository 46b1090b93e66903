"""
VoiceBrief Backend: Summarize Route Handler
===========================================

What:  POST /api/summarize, transcript → 5 bullets + next step.
Gates: general (middleware) only.
"""

from fastapi import APIRouter

from voicebrief.schemas.voice import ErrorResponse, SummarizeRequest, SummarizeResponse
from voicebrief.services.voice_service import voice_service

router = APIRouter(prefix="/api", tags=["Summarize"])


@router.post(
    "/summarize",
    response_model=SummarizeResponse,
    responses={
        400: {"description": "Missing or empty transcript", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "Provider or structural failure", "model": ErrorResponse},
    },
    summary="Summarize a transcript",
)
async def summarize(body: SummarizeRequest) -> SummarizeResponse:
    return await voice_service.summarize_transcript(body.transcript)
