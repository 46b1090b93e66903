"""
VoiceBrief Backend: Google Gemini Provider Adapter
==================================================

What:  Concrete speech-to-text and summarization adapter backed by Gemini.
How:   - transcribe(): uploads the audio artifact through the Files API and
         asks the model for a verbatim transcript.
       - summarize(): sends the transcript to a model configured for JSON
         output (`response_mime_type="application/json"`) and parses the body.
       Every SDK exception is translated into a tagged ProviderError.
Who:   Instantiated once at import; called by VoiceService through the
       Backoff Retrier.

Error translation (google.api_core.exceptions → ProviderErrorKind):
    TooManyRequests / ResourceExhausted (429)  → RATE_LIMITED (RateLimitedError)
    ClientError (other 4xx)                    → REJECTED
    ServerError (5xx), RetryError, timeouts,
    connection failures                        → UNAVAILABLE
    anything else                              → UNKNOWN

    Only RATE_LIMITED is retried by the caller.
"""

import asyncio
import json
import logging
import time
import uuid
from typing import Any, Dict

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from voicebrief.config import settings
from voicebrief.exceptions import (
    ProviderError,
    ProviderErrorKind,
    RateLimitedError,
    StructuralError,
    ValidationError,
)
from voicebrief.services.provider_base import SummarizationProvider, TranscriptionProvider

logger = logging.getLogger(__name__)


def translate_provider_error(exc: Exception, operation: str) -> ProviderError:
    """
    Map an SDK/transport exception onto the closed ProviderErrorKind set.

    Args:
        exc:        The exception raised by the Gemini SDK
        operation:  "transcription" or "summarization", used in the message
    """
    provider = f"gemini.{operation}"
    message = f"{operation.capitalize()} failed: {exc}"
    context = {"error_type": type(exc).__name__}

    if isinstance(exc, google_exceptions.TooManyRequests):
        return RateLimitedError(message=message, provider=provider, context=context)
    if isinstance(exc, google_exceptions.ClientError):
        kind = ProviderErrorKind.REJECTED
    elif isinstance(
        exc,
        (
            google_exceptions.ServerError,
            google_exceptions.RetryError,
            asyncio.TimeoutError,
            TimeoutError,
            ConnectionError,
        ),
    ):
        kind = ProviderErrorKind.UNAVAILABLE
    else:
        kind = ProviderErrorKind.UNKNOWN
    return ProviderError(message=message, kind=kind, provider=provider, context=context)


def _response_text(response: Any) -> str:
    """
    Pull the text out of a generate_content response.

    The SDK raises ValueError from `.text` when the candidate was blocked or
    carries no parts.
    """
    try:
        text = response.text
    except ValueError as e:
        raise StructuralError(
            message="The AI service returned no usable text.",
            context={"error": str(e)},
        ) from e
    return (text or "").strip()


class GeminiService(TranscriptionProvider, SummarizationProvider):
    """
    Gemini implementation of both provider interfaces.

    Two model handles share the configured model name:
        transcription_model: plain text output
        summary_model:       system instruction + JSON output config
    """

    TRANSCRIBE_PROMPT = """Transcribe this audio recording verbatim in English.

Instructions:
1. Return ONLY the spoken words, with no commentary, labels, or timestamps
2. Use normal punctuation and sentence casing
3. If parts are inaudible, mark them with [inaudible]
4. If the recording contains no speech, return an empty response"""

    SUMMARY_SYSTEM_INSTRUCTION = (
        "You are a helpful assistant that summarizes conversations into exactly 5 "
        "clear, actionable bullet points with a next step."
    )

    SUMMARY_PROMPT = """You are a conversation summarizer. Given a transcript, create a concise summary with:
1. Exactly 5 bullet points capturing the key topics, decisions, and important details discussed
2. One clear next step or action item

Format your response as JSON:
{{
  "bullets": ["point 1", "point 2", "point 3", "point 4", "point 5"],
  "nextStep": "Clear action item"
}}

Keep it professional, concise, and actionable. Always provide exactly 5 bullet points to give a comprehensive overview.

Transcript:
{transcript}"""

    def __init__(self):
        if settings.gemini_configured:
            genai.configure(api_key=settings.gemini_api_key)

        self.transcription_model = genai.GenerativeModel(settings.gemini_model)
        self.summary_model = genai.GenerativeModel(
            settings.gemini_model,
            system_instruction=self.SUMMARY_SYSTEM_INSTRUCTION,
            generation_config={
                "response_mime_type": "application/json",
                "temperature": 0.7,
                "max_output_tokens": 500,
            },
        )

        logger.info(
            "GeminiService initialized with model=%s, timeout=%ds",
            settings.gemini_model,
            settings.gemini_timeout,
        )

    async def transcribe(self, audio_path: str, mime_type: str) -> str:
        """
        Transcribe the audio artifact at `audio_path`.

        Flow:
            1. Upload the file to the Gemini Files API (in a worker thread,
               the SDK call is blocking)
            2. generate_content_async([prompt, file]) with a request timeout
            3. Delete the remote copy, best effort
        """
        call_id = str(uuid.uuid4())[:8]
        start_time = time.time()
        audio_file = None
        logger.info("[%s] Starting Gemini transcription (%s)", call_id, mime_type)

        try:
            audio_file = await asyncio.to_thread(
                genai.upload_file, path=audio_path, mime_type=mime_type
            )
            response = await self.transcription_model.generate_content_async(
                [self.TRANSCRIBE_PROMPT, audio_file],
                request_options={"timeout": settings.gemini_timeout},
            )
        except Exception as e:
            logger.warning(
                "[%s] Gemini transcription failed after %.0fms: %s",
                call_id,
                (time.time() - start_time) * 1000,
                str(e),
            )
            raise translate_provider_error(e, "transcription") from e
        finally:
            if audio_file is not None:
                await self._delete_remote_file(audio_file, call_id)

        transcript = _response_text(response)
        if not transcript:
            raise StructuralError(
                message="No speech could be recognized in the recording.",
                context={"call_id": call_id},
            )

        logger.info(
            "[%s] Gemini transcription completed in %.0fms, %d chars",
            call_id,
            (time.time() - start_time) * 1000,
            len(transcript),
        )
        return transcript

    async def summarize(self, transcript: str) -> Dict[str, Any]:
        """
        Request the fixed-shape JSON summary and parse it.

        Shape validation (bullets/nextStep) is left to the caller.
        """
        if not isinstance(transcript, str) or not transcript.strip():
            raise ValidationError(message="Transcript cannot be empty", field="transcript")

        call_id = str(uuid.uuid4())[:8]
        start_time = time.time()
        logger.info(
            "[%s] Starting Gemini summarization (%d chars)", call_id, len(transcript)
        )

        try:
            response = await self.summary_model.generate_content_async(
                self.SUMMARY_PROMPT.format(transcript=transcript),
                request_options={"timeout": settings.gemini_timeout},
            )
        except Exception as e:
            logger.warning(
                "[%s] Gemini summarization failed after %.0fms: %s",
                call_id,
                (time.time() - start_time) * 1000,
                str(e),
            )
            raise translate_provider_error(e, "summarization") from e

        body = _response_text(response)
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise StructuralError(
                message="Invalid summary format: response was not valid JSON",
                context={"call_id": call_id, "error": str(e)},
            ) from e

        if not isinstance(payload, dict):
            raise StructuralError(
                message="Invalid summary format: expected a JSON object",
                context={"call_id": call_id, "type": type(payload).__name__},
            )

        logger.info(
            "[%s] Gemini summarization completed in %.0fms",
            call_id,
            (time.time() - start_time) * 1000,
        )
        return payload

    async def _delete_remote_file(self, audio_file: Any, call_id: str) -> None:
        """Remove the uploaded copy from the Files API. Failures are logged only."""
        try:
            await asyncio.to_thread(genai.delete_file, audio_file.name)
        except Exception as e:
            logger.warning("[%s] Could not delete remote audio file: %s", call_id, str(e))


# ── Singleton Instance ────────────────────────────────────────────────────
gemini_service = GeminiService()
