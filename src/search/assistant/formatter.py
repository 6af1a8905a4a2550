"""Answer formatting — raw model text → Markdown → HTML.

The model answers in loosely structured plain text: ``Label:`` lines used as
headings, unicode bullet glyphs, paragraphs separated by blank lines.  The
passes below normalise that into Markdown before rendering.

The passes are order-sensitive and must stay separate:

1. CRLF → LF
2. a line that is only ``Label:`` becomes a level-2 heading
3. a line that starts with ``Label:`` (colon not followed by a digit) becomes
   a level-3 heading; lines promoted by pass 2 already start with ``#``
4. ``•``/``●``/``○`` bullets become ``* `` list items
5. paragraphs that are not headings or list items get a trailing newline
6. render with GFM tables/strikethrough and hard line breaks
"""

from __future__ import annotations

import re

from markdown_it import MarkdownIt

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------
_LABEL_LINE_RE = re.compile(r"^([A-Za-z][A-Za-z \t]+):([ \t]*)$", re.MULTILINE)
_LABEL_PREFIX_RE = re.compile(r"^([A-Za-z][A-Za-z \t]+):(?!\d)", re.MULTILINE)
_BULLET_RE = re.compile(r"^[•●○][ \t]*", re.MULTILINE)

_PARAGRAPH_SEP = "\n\n"
_BLOCK_MARKERS = ("#", "*", "-")

# Raw HTML in model output is escaped, not passed through.
_md = MarkdownIt("commonmark", {"breaks": True, "html": False}).enable(
    ["table", "strikethrough"]
)


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n")


def promote_label_lines(text: str) -> str:
    """``Overview:`` alone on a line → ``## Overview:``."""
    return _LABEL_LINE_RE.sub(r"## \1:\2", text)


def promote_label_prefixes(text: str) -> str:
    """``Details: more text`` at a line start → ``### Details: more text``."""
    return _LABEL_PREFIX_RE.sub(r"### \1:", text)


def normalize_bullets(text: str) -> str:
    """``• item`` → ``* item``."""
    return _BULLET_RE.sub("* ", text)


def separate_paragraphs(text: str) -> str:
    """Terminate plain paragraphs so list/paragraph boundaries survive rendering."""
    paragraphs = [p for p in text.split(_PARAGRAPH_SEP) if p]
    return _PARAGRAPH_SEP.join(
        p if p.startswith(_BLOCK_MARKERS) else f"{p}\n" for p in paragraphs
    )


def to_markdown(raw_text: str) -> str:
    """Apply passes 1–5 and return the Markdown that will be rendered."""
    text = normalize_newlines(raw_text)
    text = promote_label_lines(text)
    text = promote_label_prefixes(text)
    text = normalize_bullets(text)
    return separate_paragraphs(text)


def render_html(markdown: str) -> str:
    return _md.render(markdown)


def format_response(raw_text: str) -> str:
    """Convert a raw model answer to HTML.

    Renderer errors propagate; the caller decides how to report them.
    """
    return render_html(to_markdown(raw_text))
