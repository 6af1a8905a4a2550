"""Shared test fixtures for search assistant tests.

Environment variables MUST be set at module level (before any assistant
modules are imported) because ``assistant.config`` evaluates
``_load_config()`` at import time.  pytest processes conftest.py before
collecting test modules, so ``os.environ.setdefault(...)`` here runs early
enough.
"""

import os

# Set required env vars before any assistant code is imported
os.environ.setdefault("GOOGLE_API_KEY", "test-google-api-key")
os.environ.setdefault("GEMINI_MODEL", "gemini-test-model")

import pytest  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402


def make_model_response(text, metadata=None, candidates=True):
    """Build a stand-in for a ``GenerateContentResponse``."""
    response = MagicMock()
    response.text = text
    if candidates:
        candidate = MagicMock()
        candidate.grounding_metadata = metadata
        response.candidates = [candidate]
    else:
        response.candidates = []
    response.model_dump_json.return_value = "{}"
    return response


@pytest.fixture
def make_response():
    return make_model_response


@pytest.fixture
def chat():
    """A fake Gemini async chat answering every turn with plain text."""
    mock_chat = MagicMock()
    mock_chat.send_message = AsyncMock(return_value=make_model_response("An answer."))
    return mock_chat
