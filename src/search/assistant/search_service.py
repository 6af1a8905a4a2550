"""Search service — initial searches and follow-up questions.

Transport-independent core of the two API operations:

- ``initiate(query)`` opens a new search-grounded conversation, answers the
  first turn, and stores the conversation under a new session identifier.
- ``follow_up(session_id, query)`` sends the next turn on a stored
  conversation, one turn at a time per session.

Both run the model answer through the same pipeline (``assemble_response``):
the text is formatted to HTML and the grounding metadata is reduced to a
de-duplicated source list.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from assistant.errors import (
    SessionNotFoundError,
    UpstreamError,
    UpstreamTimeoutError,
    ValidationError,
)
from assistant.formatter import format_response
from assistant.gemini_client import ConversationFactory
from assistant.sessions import SessionManager
from assistant.sources import SourceEntry, extract_sources, grounding_from_metadata

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dataclasses for structured output
# ---------------------------------------------------------------------------

@dataclass
class FormattedResponse:
    """An answer ready for the client."""

    summary: str
    sources: list[SourceEntry] = field(default_factory=list)


@dataclass
class SearchResult:
    """The result of an initial search: a formatted answer plus its session."""

    session_id: str
    response: FormattedResponse


# ---------------------------------------------------------------------------
# Response assembly
# ---------------------------------------------------------------------------

def _answer_text(response: Any) -> str:
    text = getattr(response, "text", None)
    if not text or not text.strip():
        raise UpstreamError("The model returned an empty answer")
    return text


def _grounding_metadata(response: Any) -> Any:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    return getattr(candidates[0], "grounding_metadata", None)


def assemble_response(response: Any) -> FormattedResponse:
    """Format a ``GenerateContentResponse`` into summary HTML and sources.

    Raises ``UpstreamError`` when the answer text is missing or rendering
    fails.  Missing or partial grounding metadata yields fewer sources, never
    an error.
    """
    text = _answer_text(response)
    try:
        summary = format_response(text)
    except Exception as exc:
        logger.error("Failed to render answer", exc_info=True)
        raise UpstreamError(f"Failed to format the answer: {exc}") from exc

    chunks, supports = grounding_from_metadata(_grounding_metadata(response))
    return FormattedResponse(summary=summary, sources=extract_sources(chunks, supports))


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

def _require(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(message)
    return value


class SearchService:
    """Drives conversations for the search and follow-up endpoints."""

    def __init__(
        self,
        start_conversation: ConversationFactory,
        sessions: SessionManager,
        timeout: float = 60.0,
    ) -> None:
        self._start_conversation = start_conversation
        self.sessions = sessions
        self.timeout = timeout

    async def initiate(self, query: str | None) -> SearchResult:
        query = _require(query, "Query parameter 'q' is required")

        logger.info("Search: %s...", query[:100])
        try:
            chat = self._start_conversation()
        except Exception as exc:
            logger.error("Failed to open a conversation", exc_info=True)
            raise UpstreamError(str(exc) or "Failed to open a conversation") from exc

        response = await self._send(chat, query)
        formatted = assemble_response(response)

        session_id = self.sessions.create()
        self.sessions.put(session_id, chat)
        logger.info(
            "Search answered (session=%s…, sources=%d)",
            session_id[:8],
            len(formatted.sources),
        )
        return SearchResult(session_id=session_id, response=formatted)

    async def follow_up(self, session_id: str | None, query: str | None) -> FormattedResponse:
        if not (session_id and session_id.strip()) or not (query and query.strip()):
            raise ValidationError("Both sessionId and query are required")

        session = self.sessions.get(session_id)
        if session is None:
            logger.warning("Follow-up for unknown session %s…", session_id[:8])
            raise SessionNotFoundError(session_id)

        logger.info("Follow-up (session=%s…): %s...", session_id[:8], query[:100])
        async with session.lock:
            response = await self._send(session.chat, query)
            formatted = assemble_response(response)

        logger.info(
            "Follow-up answered (session=%s…, sources=%d)",
            session_id[:8],
            len(formatted.sources),
        )
        return formatted

    async def _send(self, chat: Any, query: str) -> Any:
        """Send one turn, bounded by the configured timeout."""
        try:
            response = await asyncio.wait_for(chat.send_message(query), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Model call timed out after %.1fs", self.timeout)
            raise UpstreamTimeoutError(
                f"The model did not respond within {self.timeout:g} seconds"
            ) from exc
        except Exception as exc:
            logger.error("Model call failed: %s", exc, exc_info=True)
            raise UpstreamError(str(exc) or "An error occurred while contacting the model") from exc

        if logger.isEnabledFor(logging.DEBUG):
            dump = getattr(response, "model_dump_json", None)
            logger.debug("Raw model response: %s", dump(exclude_none=True) if callable(dump) else response)
        return response
