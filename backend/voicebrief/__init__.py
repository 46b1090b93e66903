"""
VoiceBrief Backend: Application Package Initializer
===================================================

What: Marks the `voicebrief` directory as a Python package.
Who:  Imported by uvicorn (`voicebrief.main:app`), pytest, and every module
      via `from voicebrief.config import settings`.

Architecture Note:
    The backend turns a voice recording into an emailed summary:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │     Rate Gate (admission control)   │  ← per-client, per-operation quotas
    ├─────────────────────────────────────┤
    │   Services (orchestration + I/O)    │  ← retry, providers, delivery
    ├─────────────────────────────────────┤
    │       Schemas (API contracts)       │  ← Pydantic request/response models
    └─────────────────────────────────────┘

    External collaborators are reached only through the services layer:
    Gemini (speech-to-text and summarization) and an SMTP relay.
"""

__version__ = "1.0.0"
