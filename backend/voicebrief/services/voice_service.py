"""
VoiceBrief Backend: Voice Service (Request Orchestrator)
========================================================

What:  Composes validation, provider adapters, the Backoff Retrier, and the
       Delivery Service for each endpoint.
How:   Stateless methods that reference the module-level service singletons
       at call time (tests patch them on this module).
Who:   Called by route handlers after the rate gates have admitted the request.

Orchestration Flow:

    POST /api/transcribe
        validate audio ─▶ store artifact ─▶ retry(transcribe) ─▶ response
                                   └──────── cleanup (finally) ◀──┘

    POST /api/summarize
        validate transcript ─▶ retry(summarize) ─▶ validate_summary ─▶ response
        (structural validation is outside the retry loop)

    POST /api/send-email
        validate email/summary/transcript ─┬─▶ email_service.send       (instant)
                                           └─▶ scheduler.schedule_delayed (5min/1hour/1day)
"""

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from voicebrief.exceptions import StructuralError, ValidationError
from voicebrief.schemas.voice import (
    SendEmailResponse,
    SummarizeResponse,
    Summary,
    TranscribeResponse,
)
from voicebrief.services.email_service import email_service, validate_email_address
from voicebrief.services.file_service import audio_file_service
from voicebrief.services.gemini_service import gemini_service
from voicebrief.services.retry import backoff_retrier
from voicebrief.services.scheduler import delivery_scheduler

logger = logging.getLogger(__name__)

INSTANT = "instant"


def _summary_problem(exc: PydanticValidationError) -> str:
    """Turn the first pydantic error into a short 'missing bullets' style reason."""
    first = exc.errors()[0]
    location = first["loc"][0] if first.get("loc") else "summary"
    name = "nextStep" if location in ("next_step", "nextStep") else str(location)
    return f"missing {name}" if first["type"] == "missing" else f"invalid {name}"


def validate_summary(payload: Any) -> Summary:
    """
    Structural validation of a provider's summary document.

    Raises:
        StructuralError: bullets absent/empty/not strings, or nextStep
                         absent/empty/not a string.
    """
    try:
        return Summary.model_validate(payload)
    except PydanticValidationError as e:
        reason = _summary_problem(e)
        logger.warning("Summary failed structural validation: %s", reason)
        raise StructuralError(
            message=f"Invalid summary format: {reason}",
            context={"errors": e.errors(include_url=False, include_input=False)},
        ) from e


def parse_client_summary(payload: Any) -> Summary:
    """Same shape check for a summary sent by the client (400, not 500)."""
    if not payload:
        raise ValidationError(
            message="Summary is required with bullets and nextStep", field="summary"
        )
    try:
        return Summary.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            message=f"Summary is required with bullets and nextStep ({_summary_problem(e)})",
            field="summary",
        ) from e


class VoiceService:
    """
    Business logic for the three voice endpoints.

    Error Handling Strategy:
        Validation happens first and raises ValidationError (400) before any
        network call. Provider failures surface as ProviderError, shape
        failures as StructuralError, relay failures as DeliveryError; all
        propagate to the global exception handlers.
    """

    async def transcribe_upload(
        self,
        filename: str,
        content_type: Optional[str],
        content: bytes,
        content_length: Optional[int] = None,
    ) -> TranscribeResponse:
        """
        Validate, store, transcribe, and always delete an uploaded recording.

        Raises:
            ValidationError:   bad type, empty or oversized file
            FileStorageError:  artifact could not be written
            ProviderError:     transcription failed (after rate-limit retries)
            StructuralError:   no speech recognized
        """
        mime_type, extension = audio_file_service.validate_audio(
            filename=filename,
            content_type=content_type,
            content=content,
            content_length=content_length,
        )
        audio_path = await audio_file_service.store_file(content, extension)

        try:
            transcript = await backoff_retrier.retry(
                lambda: gemini_service.transcribe(audio_path, mime_type)
            )
        finally:
            await audio_file_service.cleanup_file(audio_path)

        logger.info("Transcribed %s (%d bytes) into %d chars", filename, len(content), len(transcript))
        return TranscribeResponse(transcript=transcript, file_size=len(content))

    async def summarize_transcript(self, transcript: Optional[str]) -> SummarizeResponse:
        """
        Summarize a transcript into bullets plus a next step.

        Raises:
            ValidationError:  transcript missing or blank
            ProviderError:    summarization failed (after rate-limit retries)
            StructuralError:  the model's JSON failed shape validation
        """
        if not transcript or not isinstance(transcript, str):
            raise ValidationError(
                message="Transcript is required and must be a string", field="transcript"
            )
        if not transcript.strip():
            raise ValidationError(message="Transcript cannot be empty", field="transcript")

        logger.info("Summarizing transcript (%d characters)", len(transcript))
        payload = await backoff_retrier.retry(lambda: gemini_service.summarize(transcript))
        summary = validate_summary(payload)

        if len(summary.bullets) != 5:
            logger.info("Model returned %d bullets instead of 5", len(summary.bullets))

        return SummarizeResponse(summary=summary, transcript_length=len(transcript))

    async def deliver_summary(
        self,
        email: Optional[str],
        summary: Any,
        transcript: Optional[str],
        schedule_option: Optional[str] = None,
    ) -> SendEmailResponse:
        """
        Send the summary now, or arm a delayed delivery.

        Raises:
            ValidationError:     bad email, summary, transcript
            InvalidOptionError:  unknown schedule option (nothing armed)
            DeliveryError:       immediate send rejected by the relay
        """
        recipient = validate_email_address(email)
        parsed_summary = parse_client_summary(summary)
        if not transcript or not isinstance(transcript, str):
            raise ValidationError(message="Transcript is required", field="transcript")

        if schedule_option and schedule_option != INSTANT:
            delivery = delivery_scheduler.schedule_delayed(
                recipient, parsed_summary, transcript, schedule_option
            )
            return SendEmailResponse(
                scheduled=True,
                scheduled_time=delivery.scheduled_time,
                delay=delivery.human_delay,
                message=f"Email scheduled to be sent in {delivery.human_delay}",
            )

        receipt = await email_service.send(recipient, parsed_summary, transcript)
        return SendEmailResponse(
            scheduled=False,
            message_id=receipt.message_id,
            timestamp=receipt.timestamp,
            message="Email sent successfully",
        )


# ── Singleton Instance ────────────────────────────────────────────────────
voice_service = VoiceService()
