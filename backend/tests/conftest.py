"""
VoiceBrief Backend: Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── sample_summary_payload: Provider-shaped summary dict (camelCase)
    ├── sample_summary: The same, as a validated Summary
    ├── upload_dir: Temporary directory for audio artifacts
    ├── sleep_recorder: Awaitable sleep that records delays instead of waiting
    └── test_client: HTTPX AsyncClient bound to a fresh app
"""

import os
import tempfile
from typing import List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings for testing BEFORE any voicebrief imports
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["SMTP_HOST"] = "smtp.example.com"
os.environ["SMTP_USER"] = "sender@example.com"
os.environ["SMTP_PASS"] = "test-password"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="voicebrief_test_")
os.environ["RETRY_BASE_DELAY"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def sample_summary_payload():
    """A well-formed summary as the provider (or the frontend) sends it."""
    return {
        "bullets": [
            "Reviewed the Q3 launch timeline",
            "Marketing needs final copy by Friday",
            "Budget approved for two contractors",
            "QA found three blocking bugs",
            "Demo moved to next Tuesday",
        ],
        "nextStep": "Send the revised timeline to the whole team",
    }


@pytest.fixture
def sample_summary(sample_summary_payload):
    from voicebrief.schemas.voice import Summary

    return Summary.model_validate(sample_summary_payload)


@pytest.fixture
def upload_dir(tmp_path):
    """A fresh temporary directory for audio artifacts."""
    path = tmp_path / "uploads"
    path.mkdir()
    return str(path)


@pytest.fixture
def sleep_recorder():
    """
    Awaitable stand-in for asyncio.sleep.

    Usage:
        sleep, delays = sleep_recorder
        retrier = BackoffRetrier(sleep=sleep)
        ...
        assert delays == [1.0, 2.0]
    """
    delays: List[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    return sleep, delays


@pytest_asyncio.fixture
async def test_client():
    """
    Provides an async HTTP test client for endpoint testing.

    Each test gets a freshly built app, so rate windows never leak between
    tests.
    """
    from voicebrief.main import create_app

    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
