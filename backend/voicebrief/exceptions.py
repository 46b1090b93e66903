"""
VoiceBrief Backend: Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for every failure the orchestration
       layer distinguishes.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers registered in main.py map them to HTTP status
       codes and a structured `{error, message}` body.
Who:   Raised by services, the rate gate, and routes; caught by global handlers.

Exception Hierarchy:
    VoiceBriefError (base)
    ├── ValidationError            → 400 Bad Request (never retried)
    │   └── InvalidOptionError     → 400 (unknown schedule option)
    ├── ProviderError              → 500 (tagged with a ProviderErrorKind)
    │   └── RateLimitedError       → 500 once the retry budget is spent
    ├── StructuralError            → 500 (provider answered with the wrong shape)
    ├── DeliveryError              → 500 (mail relay rejected or unreachable)
    ├── FileStorageError           → 500 (temporary audio artifact I/O)
    └── RateLimitExceededError     → 429 Too Many Requests (rate gate denial)

Retry classification:
    The Backoff Retrier branches on `ProviderError.kind`, a closed enum set by
    the provider adapter when it translates an SDK exception. Only
    `ProviderErrorKind.RATE_LIMITED` is transient. Everything else, including
    StructuralError, propagates on the first failure.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class VoiceBriefError(Exception):
    """
    Base exception for all VoiceBrief application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only where the
                  handler explicitly includes it)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(VoiceBriefError):
    """
    Raised when client input fails validation.

    When:    Missing/invalid audio file, empty transcript, malformed email
             address, summary missing bullets or nextStep.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Invalid email address format",
            "details": {"field": "email"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class InvalidOptionError(ValidationError):
    """
    Raised when a delayed-delivery option is not one of the known labels.

    No timer is armed when this is raised.
    """

    def __init__(self, option: Any, allowed: List[str]):
        super().__init__(
            message=(
                f"Invalid schedule option '{option}'. "
                f"Allowed options: {', '.join(allowed)}"
            ),
            field="scheduleOption",
            context={"option": option, "allowed": allowed},
        )
        self.option = option
        self.allowed = allowed


class ProviderErrorKind(str, Enum):
    """Closed set of provider failure kinds produced by the adapters."""

    RATE_LIMITED = "rate_limited"   # 429-equivalent backpressure: transient
    UNAVAILABLE = "unavailable"     # 5xx, timeouts, connection failures
    REJECTED = "rejected"           # 4xx other than 429: auth, bad input
    UNKNOWN = "unknown"


class ProviderError(VoiceBriefError):
    """
    Raised when an external provider call fails.

    What:    Gemini returned an error, timed out, or could not be reached.
    HTTP:    500 Internal Server Error

    Attributes:
        kind:      ProviderErrorKind assigned by the adapter
        provider:  Name of the provider/operation (e.g. "gemini.transcribe")
    """

    def __init__(
        self,
        message: str = "External provider call failed",
        kind: ProviderErrorKind = ProviderErrorKind.UNKNOWN,
        provider: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["kind"] = kind.value
        if provider:
            ctx["provider"] = provider
        super().__init__(message=message, context=ctx)
        self.kind = kind
        self.provider = provider

    @property
    def is_transient(self) -> bool:
        return self.kind is ProviderErrorKind.RATE_LIMITED


class RateLimitedError(ProviderError):
    """
    Provider signalled "too many requests".

    The only failure the Backoff Retrier treats as transient. If it is still
    raised after the last attempt it reaches the client as a 500.
    """

    def __init__(
        self,
        message: str = "Provider rate limit reached",
        provider: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            kind=ProviderErrorKind.RATE_LIMITED,
            provider=provider,
            context=context,
        )


class StructuralError(VoiceBriefError):
    """
    Raised when a provider answered but the answer has the wrong shape.

    When:    Summary JSON missing `bullets`/`nextStep`, bullets empty, response
             not valid JSON, or no usable text in a transcription response.
    HTTP:    500 Internal Server Error

    Kept separate from ProviderError so callers can tell "the service
    answered but wrong" from "the service failed". Never retried.
    """

    def __init__(
        self,
        message: str = "Provider returned an unexpected response",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DeliveryError(VoiceBriefError):
    """
    Raised when the SMTP relay rejects a message or cannot be reached.

    HTTP:    500 for immediate sends. For scheduled sends there is no caller;
             the scheduler logs it and marks the delivery failed.
    """

    def __init__(
        self,
        message: str = "Failed to send email",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(VoiceBriefError):
    """
    Raised when the temporary audio artifact cannot be written.

    HTTP:    500 Internal Server Error (file system paths are never returned)
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(VoiceBriefError):
    """
    Raised when a client exceeds the quota of a rate gate.

    Expected backpressure rather than a fault: never retried by the system,
    always reported to the caller.

    HTTP:    429 Too Many Requests, with a Retry-After header carrying the
             seconds until the client's current window resets.
    """

    def __init__(
        self,
        message: str = "Too many requests, please try again later.",
        retry_after: int = 60,
        operation_class: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        if operation_class:
            ctx["operation_class"] = operation_class
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
        self.operation_class = operation_class
