"""
VoiceBrief Backend: Audio Upload File Service
=============================================

What:  Validates uploaded audio and manages its temporary artifact on disk.
How:   Checks declared content type / extension and size before anything
       touches the network, writes the bytes under a UUID filename in the
       upload directory, and deletes the file once the request is done.
Who:   Called by VoiceService.transcribe_upload().
When:  Before the transcription provider call (validate + store) and in a
       `finally` block after it (cleanup) so the artifact never outlives
       its request: success, provider failure, or unexpected exception.

Type check:
    A file is accepted if EITHER its declared content type is in the
    allow-list OR its filename extension is. Browsers recording with
    MediaRecorder often send parameters ("audio/webm;codecs=opus"); these
    are stripped before comparison.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
import aiofiles.os

from voicebrief.config import settings
from voicebrief.exceptions import FileStorageError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed Audio Types ───────────────────────────────────────────────────
# MIME type → extension used for the stored artifact
ALLOWED_MIME_TYPES = {
    "audio/webm": ".webm",
    "audio/wav": ".wav",
    "audio/mp3": ".mp3",
    "audio/mpeg": ".mp3",
    "audio/ogg": ".ogg",
}

# Extension → MIME type sent to the provider when only the extension matched
ALLOWED_EXTENSIONS = {
    ".webm": "audio/webm",
    ".wav": "audio/wav",
    ".mp3": "audio/mpeg",
    ".ogg": "audio/ogg",
}


class AudioFileService:
    """
    Manages the lifecycle of one temporary audio artifact per request.

    Lifecycle:
        1. validate_audio()  type + size checks, no I/O
        2. store_file()      write to <upload_dir>/audio-<uuid>.<ext>
        3. (provider call by the caller)
        4. cleanup_file()    always, from the caller's finally block
    """

    def __init__(self, upload_dir: Optional[str] = None):
        """
        Args:
            upload_dir: Override the default upload directory (used in tests).
        """
        self.upload_dir = Path(upload_dir or settings.upload_dir).resolve()
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        logger.info("AudioFileService initialized with upload_dir=%s", self.upload_dir)

    def validate_type(self, filename: str, content_type: Optional[str]) -> Tuple[str, str]:
        """
        Check the declared type or extension against the allow-list.

        Returns:
            (mime_type, extension) to use for the provider call and the
            stored artifact.

        Raises:
            ValidationError if neither the type nor the extension is allowed.
        """
        declared = (content_type or "").split(";")[0].strip().lower()
        ext = Path(filename or "").suffix.lower()

        if declared in ALLOWED_MIME_TYPES:
            return declared, ext if ext in ALLOWED_EXTENSIONS else ALLOWED_MIME_TYPES[declared]
        if ext in ALLOWED_EXTENSIONS:
            return ALLOWED_EXTENSIONS[ext], ext

        raise ValidationError(
            message="Invalid file type. Only audio files are allowed.",
            field="audio",
            context={
                "content_type": declared or None,
                "extension": ext or None,
                "allowed": sorted(ALLOWED_EXTENSIONS),
            },
        )

    def check_reported_size(self, content_length: Optional[int]) -> None:
        """
        Reject an upload whose reported size is over the limit.

        Runs before the body is read into memory. An unknown size passes;
        validate_size() checks the real byte count afterwards.
        """
        if content_length and content_length > settings.max_audio_size:
            max_mb = settings.max_audio_size / (1024 * 1024)
            raise ValidationError(
                message=f"Audio file is too large. Maximum size is {max_mb:.0f}MB.",
                field="audio",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Validate file size against the configured maximum (25 MiB default).

        Args:
            content_length: Size reported by the upload (may be None or wrong)
            actual_size:    Byte count actually received

        Raises:
            ValidationError for empty or oversized files
        """
        max_mb = settings.max_audio_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(
                message="The uploaded audio file is empty.",
                field="audio",
                context={"actual_size": 0},
            )

        self.check_reported_size(content_length)

        if actual_size > settings.max_audio_size:
            raise ValidationError(
                message=(
                    f"Audio file is too large ({actual_size / (1024 * 1024):.1f}MB). "
                    f"Maximum size is {max_mb:.0f}MB."
                ),
                field="audio",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_audio(
        self,
        filename: str,
        content_type: Optional[str],
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        """Run every pre-network check. Returns (mime_type, extension)."""
        mime_type, ext = self.validate_type(filename, content_type)
        self.validate_size(content_length, len(content))
        return mime_type, ext

    async def store_file(self, content: bytes, extension: str) -> str:
        """
        Write validated audio to a uniquely named temporary file.

        Returns:
            Absolute path of the artifact.

        Raises:
            FileStorageError if the directory or file cannot be written.
        """
        path = self.upload_dir / f"audio-{uuid.uuid4()}{extension}"

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store audio at %s: %s", path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded audio. Please try again.",
                context={"path": str(path), "os_error": str(e)},
            ) from e

        logger.info("Audio stored: %s (%d bytes)", path.name, len(content))
        return str(path)

    async def cleanup_file(self, file_path: str) -> None:
        """
        Remove a temporary artifact. Best effort: a failure is logged, never
        raised, so it cannot mask the request's own outcome.
        """
        path = Path(file_path)
        try:
            await aiofiles.os.remove(path)
            logger.info("Cleaned up temporary file: %s", path.name)
        except FileNotFoundError:
            logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", path.name, str(e))


# ── Singleton Instance ────────────────────────────────────────────────────
audio_file_service = AudioFileService()
