"""Error taxonomy for the search assistant.

Each error carries the HTTP status code the request handlers answer with,
so ``main.py`` maps the whole hierarchy with a single exception handler.
"""

from __future__ import annotations


class SearchError(Exception):
    """Base class for errors surfaced to API clients as ``{"message": ...}``."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SearchError):
    """A required field is missing or empty."""

    status_code = 400


class SessionNotFoundError(SearchError):
    """The session identifier is unknown or its session has expired."""

    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__("Chat session not found")
        self.session_id = session_id


class UpstreamError(SearchError):
    """The language model call failed or produced no usable answer."""

    status_code = 500
    retryable = False


class UpstreamTimeoutError(UpstreamError):
    """The language model did not answer within the configured timeout."""

    status_code = 504
    retryable = True
