"""Tests for the search service (initial search, follow-up, response assembly)."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from google.genai import types

from assistant.errors import (
    SessionNotFoundError,
    UpstreamError,
    UpstreamTimeoutError,
    ValidationError,
)
from assistant.search_service import (
    FormattedResponse,
    SearchService,
    assemble_response,
)
from assistant.sessions import SessionManager
from assistant.sources import SourceEntry


def _metadata() -> types.GroundingMetadata:
    return types.GroundingMetadata(
        grounding_chunks=[
            types.GroundingChunk(web=types.GroundingChunkWeb(uri="https://a.example", title="A")),
            types.GroundingChunk(web=types.GroundingChunkWeb(uri="https://a.example", title="A again")),
        ],
        grounding_supports=[
            types.GroundingSupport(
                segment=types.Segment(start_index=0, end_index=6, text="Answer"),
                grounding_chunk_indices=[0, 1],
                confidence_scores=[0.8, 0.7],
            ),
        ],
    )


@pytest.fixture
def sessions() -> SessionManager:
    return SessionManager(ttl_seconds=600, max_sessions=10)


@pytest.fixture
def factory(chat):
    return MagicMock(return_value=chat)


@pytest.fixture
def service(factory, sessions) -> SearchService:
    return SearchService(start_conversation=factory, sessions=sessions, timeout=5)


# ---------------------------------------------------------------------------
# assemble_response
# ---------------------------------------------------------------------------

class TestAssembleResponse:
    def test_summary_and_sources(self, make_response) -> None:
        formatted = assemble_response(make_response("Overview:\nAnswer", _metadata()))

        assert isinstance(formatted, FormattedResponse)
        assert "<h2>Overview:</h2>" in formatted.summary
        assert formatted.sources == [
            SourceEntry(title="A", url="https://a.example", snippet="Answer")
        ]

    def test_absent_metadata_gives_no_sources(self, make_response) -> None:
        formatted = assemble_response(make_response("Plain answer", None))
        assert formatted.sources == []

    def test_no_candidates_gives_no_sources(self, make_response) -> None:
        formatted = assemble_response(make_response("Plain answer", candidates=False))
        assert formatted.sources == []

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_empty_answer_is_upstream_error(self, make_response, text) -> None:
        with pytest.raises(UpstreamError, match="empty answer"):
            assemble_response(make_response(text))

    def test_render_failure_is_upstream_error(self, make_response) -> None:
        with patch("assistant.search_service.format_response", side_effect=RuntimeError("bad markdown")):
            with pytest.raises(UpstreamError, match="bad markdown"):
                assemble_response(make_response("text"))


# ---------------------------------------------------------------------------
# initiate
# ---------------------------------------------------------------------------

class TestInitiate:
    @pytest.mark.asyncio
    async def test_returns_session_and_answer(self, service, chat, sessions) -> None:
        result = await service.initiate("test")

        chat.send_message.assert_awaited_once_with("test")
        assert result.session_id in sessions
        assert sessions.get(result.session_id).chat is chat
        assert "An answer." in result.response.summary

    @pytest.mark.asyncio
    async def test_each_search_opens_new_conversation(self, service, factory) -> None:
        first = await service.initiate("one")
        second = await service.initiate("two")

        assert factory.call_count == 2
        assert first.session_id != second.session_id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", [None, "", "  "])
    async def test_empty_query_rejected_without_model_call(self, service, factory, chat, query) -> None:
        with pytest.raises(ValidationError):
            await service.initiate(query)

        factory.assert_not_called()
        chat.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_model_failure_is_upstream_error(self, service, chat, sessions) -> None:
        chat.send_message = AsyncMock(side_effect=RuntimeError("quota exceeded"))

        with pytest.raises(UpstreamError, match="quota exceeded") as exc_info:
            await service.initiate("test")

        assert exc_info.value.retryable is False
        assert len(sessions) == 0

    @pytest.mark.asyncio
    async def test_empty_answer_stores_no_session(self, service, chat, sessions, make_response) -> None:
        chat.send_message = AsyncMock(return_value=make_response(None))

        with pytest.raises(UpstreamError):
            await service.initiate("test")

        assert len(sessions) == 0

    @pytest.mark.asyncio
    async def test_conversation_factory_failure(self, sessions) -> None:
        factory = MagicMock(side_effect=RuntimeError("bad api key"))
        service = SearchService(start_conversation=factory, sessions=sessions)

        with pytest.raises(UpstreamError, match="bad api key"):
            await service.initiate("test")

    @pytest.mark.asyncio
    async def test_timeout_is_retryable_upstream_error(self, chat, sessions, factory) -> None:
        async def _slow(_query):
            await asyncio.sleep(1)

        chat.send_message = _slow
        service = SearchService(start_conversation=factory, sessions=sessions, timeout=0.01)

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await service.initiate("test")

        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 504
        assert len(sessions) == 0


# ---------------------------------------------------------------------------
# follow_up
# ---------------------------------------------------------------------------

class TestFollowUp:
    @pytest.mark.asyncio
    async def test_continues_same_conversation(self, service, chat, make_response) -> None:
        result = await service.initiate("test")
        chat.send_message = AsyncMock(return_value=make_response("More detail.", _metadata()))

        formatted = await service.follow_up(result.session_id, "tell me more")

        chat.send_message.assert_awaited_once_with("tell me more")
        assert "More detail." in formatted.summary
        assert [s.url for s in formatted.sources] == ["https://a.example"]

    @pytest.mark.asyncio
    async def test_unknown_session(self, service, chat) -> None:
        with pytest.raises(SessionNotFoundError) as exc_info:
            await service.follow_up("not-a-session", "hello")

        assert exc_info.value.status_code == 404
        chat.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_session_not_created(self, service, sessions) -> None:
        with pytest.raises(SessionNotFoundError):
            await service.follow_up("not-a-session", "hello")
        assert "not-a-session" not in sessions

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("session_id", "query"),
        [(None, "q"), ("", "q"), ("sid", None), ("sid", ""), (None, None)],
    )
    async def test_missing_fields_rejected(self, service, chat, session_id, query) -> None:
        with pytest.raises(ValidationError, match="Both sessionId and query are required"):
            await service.follow_up(session_id, query)
        chat.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_upstream_failure(self, service, chat) -> None:
        result = await service.initiate("test")
        chat.send_message = AsyncMock(side_effect=RuntimeError("503 unavailable"))

        with pytest.raises(UpstreamError, match="503 unavailable"):
            await service.follow_up(result.session_id, "again")

        # The session survives a failed turn
        assert result.session_id in service.sessions

    @pytest.mark.asyncio
    async def test_turns_on_one_session_are_serialized(self, service, chat, make_response) -> None:
        result = await service.initiate("test")

        active = 0
        max_active = 0
        order: list[str] = []

        async def _send(query):
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            order.append(query)
            active -= 1
            return make_response(f"answer to {query}")

        chat.send_message = _send

        await asyncio.gather(
            service.follow_up(result.session_id, "first"),
            service.follow_up(result.session_id, "second"),
        )

        assert max_active == 1
        assert order == ["first", "second"]
