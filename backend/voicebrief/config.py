"""
VoiceBrief Backend: Application Configuration
=============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time and treated as constant for the
       lifetime of the process.
"""

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have development defaults. Production deployments MUST set
    GEMINI_API_KEY and the SMTP_* credentials.
    """

    # ── Google Gemini ─────────────────────────────────────────────────────
    # Used for both speech-to-text (audio input) and JSON summarization.
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key for transcription and summarization",
    )
    gemini_model: str = Field(default="gemini-1.5-flash")

    # Per-call timeout passed as a request option to the SDK (seconds)
    gemini_timeout: int = Field(default=60, ge=5, le=600)

    # ── SMTP Relay ────────────────────────────────────────────────────────
    smtp_host: str = Field(default="")
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_user: str = Field(default="")
    smtp_pass: str = Field(default="")

    # STARTTLS upgrade after connect (port 587). Set SMTP_USE_TLS for
    # implicit TLS (port 465) instead.
    smtp_start_tls: bool = Field(default=True)
    smtp_use_tls: bool = Field(default=False)
    smtp_validate_certs: bool = Field(default=True)
    smtp_timeout: int = Field(default=30, ge=1, le=300)
    mail_from_name: str = Field(default="Voice Agent")

    # ── Audio Uploads ─────────────────────────────────────────────────────
    # Temporary artifacts only: each file is deleted once its request ends.
    upload_dir: str = Field(default="./uploads")

    # 25 MiB = 26214400 bytes, the speech-to-text upload ceiling
    max_audio_size: int = Field(default=26_214_400, ge=1_048_576, le=104_857_600)

    # ── CORS / Server ─────────────────────────────────────────────────────
    # Comma-separated URLs (parsed by cors_origins_list below)
    cors_origins: str = Field(default="http://localhost:5173")
    frontend_url: str = Field(default="http://localhost:5173")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=5000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Backoff Retry ─────────────────────────────────────────────────────
    # Only provider rate-limit responses are retried.
    # Delay before retry n (0-indexed) = retry_base_delay * 2^n: 1s, 2s, 4s
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_base_delay: float = Field(default=1.0, ge=0.0, le=30.0)

    # ── Rate Gates ────────────────────────────────────────────────────────
    # Fixed-window, per-client quotas. Windows are in seconds.
    rate_limit_general_requests: int = Field(default=100, ge=1, le=100_000)
    rate_limit_general_window: int = Field(default=900, ge=1, le=86_400)

    rate_limit_upload_requests: int = Field(default=10, ge=1, le=10_000)
    rate_limit_upload_window: int = Field(default=900, ge=1, le=86_400)

    rate_limit_email_requests: int = Field(default=20, ge=1, le=10_000)
    rate_limit_email_window: int = Field(default=3600, ge=1, le=86_400)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key) and self.gemini_api_key != "your_gemini_api_key_here"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_pass)

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        How:   Collects every missing setting and raises a single ValueError.
        """
        errors = []
        if not self.gemini_configured:
            errors.append(
                "GEMINI_API_KEY is not set. "
                "Get a key at https://aistudio.google.com/app/apikey"
            )
        for name in ("smtp_host", "smtp_user", "smtp_pass"):
            if not getattr(self, name):
                errors.append(f"{name.upper()} is not set. Email delivery will fail.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance, imported throughout the application
settings = Settings()
