"""
VoiceBrief Backend: Transcribe Route Handler
============================================

What:  POST /api/transcribe, speech-to-text for an uploaded recording.
How:   Receives the multipart `audio` field, delegates to VoiceService.
Who:   Called by the frontend recorder once a recording is stopped.

Gates:
    general (middleware) + upload (route dependency)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from voicebrief.exceptions import ValidationError
from voicebrief.middleware.rate_limit import require_admission
from voicebrief.schemas.voice import ErrorResponse, TranscribeResponse
from voicebrief.services.file_service import audio_file_service
from voicebrief.services.rate_gate import OperationClass
from voicebrief.services.voice_service import voice_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Transcribe"])


@router.post(
    "/transcribe",
    response_model=TranscribeResponse,
    dependencies=[Depends(require_admission(OperationClass.UPLOAD))],
    responses={
        400: {"description": "Missing or invalid audio file", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "Transcription failed", "model": ErrorResponse},
    },
    summary="Transcribe an audio recording",
    description=(
        "Upload an audio recording (webm, wav, mp3, ogg; max 25MB) in the `audio` "
        "field and receive its transcript."
    ),
)
async def transcribe_audio(
    audio: Optional[UploadFile] = File(
        None,
        description="Audio recording (webm, wav, mp3/mpeg, or ogg, max 25MB)",
    ),
) -> TranscribeResponse:
    if audio is None:
        raise ValidationError(message="No audio file provided", field="audio")

    try:
        audio_file_service.check_reported_size(audio.size)
        content = await audio.read()
        logger.info(
            "Received audio file: %s (%d bytes)",
            audio.filename or "unknown",
            len(content),
        )
        return await voice_service.transcribe_upload(
            filename=audio.filename or "recording",
            content_type=audio.content_type,
            content=content,
            content_length=audio.size,
        )
    finally:
        await audio.close()
