"""Gemini client — conversations grounded with the Google Search tool.

Uses the ``google-genai`` SDK.  Every conversation is opened with the same
fixed decoding configuration and the ``google_search`` tool, so answers come
back with grounding metadata for source extraction.

Exports a ``create_conversation_factory()`` used by the hosting adapter
(``main.py``) to build the ``SearchService``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from google import genai
from google.genai import types

from assistant.config import Config, config

logger = logging.getLogger(__name__)

ConversationFactory = Callable[[], Any]


def build_generation_config(cfg: Config) -> types.GenerateContentConfig:
    """Decoding configuration plus the web-search grounding tool."""
    return types.GenerateContentConfig(
        temperature=cfg.temperature,
        top_p=cfg.top_p,
        top_k=cfg.top_k,
        max_output_tokens=cfg.max_output_tokens,
        tools=[types.Tool(google_search=types.GoogleSearch())],
    )


def create_client(cfg: Config = config) -> genai.Client:
    return genai.Client(api_key=cfg.google_api_key)


def create_conversation_factory(
    cfg: Config = config,
    client: genai.Client | None = None,
) -> ConversationFactory:
    """Return a callable that opens a new search-grounded chat per call.

    The returned chats are ``google.genai`` async chats:
    ``await chat.send_message(text)`` returns a ``GenerateContentResponse``.
    """
    client = client or create_client(cfg)
    generation_config = build_generation_config(cfg)

    def start_conversation() -> Any:
        return client.aio.chats.create(model=cfg.model_name, config=generation_config)

    logger.info(
        "Gemini conversations ready (model=%s, temperature=%s, max_output_tokens=%d)",
        cfg.model_name,
        cfg.temperature,
        cfg.max_output_tokens,
    )
    return start_conversation
