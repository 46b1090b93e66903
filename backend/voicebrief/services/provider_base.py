"""
VoiceBrief Backend: Abstract Provider Interfaces
================================================

What:  Contracts for the two external AI capabilities the backend uses.
How:   Concrete adapters inherit from these ABCs. GeminiService implements
       both; tests substitute AsyncMock stubs.
Who:   Called by VoiceService, always through the Backoff Retrier.

Adapter contract (both interfaces):
    - One network call per invocation. Retrying is the caller's concern.
    - SDK exceptions are translated into ProviderError with a
      ProviderErrorKind tag. Rate-limit responses become RateLimitedError.
    - Input preconditions are checked before any network call and raise
      ValidationError.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class TranscriptionProvider(ABC):
    """Speech-to-text provider."""

    @abstractmethod
    async def transcribe(self, audio_path: str, mime_type: str) -> str:
        """
        Transcribe an audio file.

        Args:
            audio_path: Path of the temporary audio artifact. The caller
                        creates it before the call and deletes it afterwards.
            mime_type:  Audio MIME type from the upload allow-list.

        Returns:
            str: The transcript, never empty.

        Raises:
            RateLimitedError: Provider signalled too many requests
            ProviderError:    Any other provider failure
            StructuralError:  The provider answered without usable text
        """
        ...


class SummarizationProvider(ABC):
    """Structured-output language model used for transcript summaries."""

    @abstractmethod
    async def summarize(self, transcript: str) -> Dict[str, Any]:
        """
        Ask the model for a `{"bullets": [...], "nextStep": "..."}` document.

        Returns:
            The parsed JSON object. Its shape is NOT validated here; the
            caller validates it so that shape errors stay outside the retry
            loop.

        Raises:
            ValidationError:  Transcript empty after trimming
            RateLimitedError: Provider signalled too many requests
            ProviderError:    Any other provider failure
            StructuralError:  Response body was not a JSON object
        """
        ...
