"""Source extraction from Gemini grounding metadata.

Grounding metadata links spans of the answer text (*supports*) to web
results (*chunks*) by index.  ``extract_sources`` turns that into the
citation list shown under an answer: one entry per URL, first chunk wins,
with the answer spans that cite it joined into a snippet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass
class GroundingChunk:
    """A citation candidate: the web reference of one grounding chunk."""

    uri: str | None = None
    title: str | None = None


@dataclass
class GroundingSupport:
    """A span of answer text and the chunk indices it is supported by."""

    text: str
    grounding_chunk_indices: list[int] = field(default_factory=list)
    confidence_scores: list[float] = field(default_factory=list)
    start_index: int | None = None
    end_index: int | None = None


@dataclass
class SourceEntry:
    """A cited source as returned to the client."""

    title: str
    url: str
    snippet: str = ""


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def _snippet_for(index: int, supports: Sequence[GroundingSupport]) -> str:
    return " ".join(
        s.text for s in supports if index in s.grounding_chunk_indices
    )


def extract_sources(
    chunks: Sequence[GroundingChunk],
    supports: Sequence[GroundingSupport],
) -> list[SourceEntry]:
    """De-duplicate grounding chunks by URL preserving order.

    Chunks without both a URI and a title are skipped.  Later chunks with an
    already-seen URI are ignored, whatever title or snippet they would carry.
    """
    by_url: dict[str, SourceEntry] = {}
    for idx, chunk in enumerate(chunks):
        if not (chunk.uri and chunk.title):
            continue
        if chunk.uri in by_url:
            continue
        by_url[chunk.uri] = SourceEntry(
            title=chunk.title,
            url=chunk.uri,
            snippet=_snippet_for(idx, supports),
        )
    return list(by_url.values())


# ---------------------------------------------------------------------------
# SDK adapter
# ---------------------------------------------------------------------------

def grounding_from_metadata(
    metadata: Any,
) -> tuple[list[GroundingChunk], list[GroundingSupport]]:
    """Adapt a ``google.genai.types.GroundingMetadata`` into plain sequences.

    Tolerates ``None`` metadata, missing lists, chunks without a ``web``
    reference and supports without segment text.  Never raises on partial
    metadata; unusable entries are dropped or left empty.
    """
    if metadata is None:
        return [], []

    chunks: list[GroundingChunk] = []
    for raw in getattr(metadata, "grounding_chunks", None) or []:
        web = getattr(raw, "web", None)
        chunks.append(
            GroundingChunk(
                uri=getattr(web, "uri", None),
                title=getattr(web, "title", None),
            )
        )

    supports: list[GroundingSupport] = []
    for raw in getattr(metadata, "grounding_supports", None) or []:
        segment = getattr(raw, "segment", None)
        text = getattr(segment, "text", None)
        if not text:
            continue
        supports.append(
            GroundingSupport(
                text=text,
                grounding_chunk_indices=list(getattr(raw, "grounding_chunk_indices", None) or []),
                confidence_scores=list(getattr(raw, "confidence_scores", None) or []),
                start_index=getattr(segment, "start_index", None),
                end_index=getattr(segment, "end_index", None),
            )
        )

    logger.debug(
        "Grounding metadata → %d chunks, %d supports", len(chunks), len(supports)
    )
    return chunks, supports
