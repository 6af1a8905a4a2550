"""Web Search Assistant — FastAPI server.

Answers natural-language questions with Gemini grounded by Google Search,
returning an HTML summary plus the cited sources.  Follow-up questions
continue the same conversation through a session identifier.

Endpoints
---------
- ``GET  /health``         — health check
- ``GET  /api/search``     — start a conversation (``?q=...``)
- ``POST /api/follow-up``  — continue a conversation (``{sessionId, query}``)

When a built browser client exists (``STATIC_DIR``) it is served at ``/``.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from assistant.config import config
from assistant.errors import SearchError
from assistant.search_service import FormattedResponse, SearchService

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
for _name in ("httpx", "google_genai", "uvicorn.access"):
    logging.getLogger(_name).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

_LOG_LINE_MAX = 80

_VALIDATION_MESSAGES = {
    "/api/search": "Query parameter 'q' is required",
    "/api/follow-up": "Both sessionId and query are required",
}


# ---------------------------------------------------------------------------
# FastAPI lifespan: create the search service on startup
# ---------------------------------------------------------------------------

def create_search_service() -> SearchService:
    """Build the service from configuration: Gemini conversations + session store."""
    from assistant.gemini_client import create_conversation_factory
    from assistant.sessions import SessionManager

    return SearchService(
        start_conversation=create_conversation_factory(config),
        sessions=SessionManager(
            ttl_seconds=config.session_ttl,
            max_sessions=config.max_sessions,
        ),
        timeout=config.request_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the SearchService on startup, tear down on shutdown."""
    logger.info("[SEARCH] Server starting up (env=%s)...", config.app_env)

    app.state.search_service = create_search_service()
    logger.info("[SEARCH] Search service ready.")

    yield

    logger.info("[SEARCH] Server shutting down...")


app = FastAPI(
    title="Web Search Assistant",
    description="Search-grounded answers with cited sources and follow-up questions",
    version="0.1.0",
    lifespan=lifespan,
)


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class FollowUpRequest(BaseModel):
    """Request model for /api/follow-up.

    Fields are optional here so that missing values are reported as a 400
    with a readable message rather than a schema error.
    """
    sessionId: str | None = None
    query: str | None = None


class Source(BaseModel):
    title: str
    url: str
    snippet: str = ""


class FollowUpResponse(BaseModel):
    summary: str
    sources: list[Source]


class SearchResponse(FollowUpResponse):
    sessionId: str


class HealthResponse(BaseModel):
    status: str
    sessions: int


def _sources(formatted: FormattedResponse) -> list[Source]:
    return [Source(title=s.title, url=s.url, snippet=s.snippet) for s in formatted.sources]


# ---------------------------------------------------------------------------
# Error handling and request logging
# ---------------------------------------------------------------------------

@app.exception_handler(SearchError)
async def search_error_handler(request: Request, exc: SearchError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or missing request bodies are client errors with a readable message."""
    message = _VALIDATION_MESSAGES.get(request.url.path, "Invalid request")
    logger.info("[SEARCH] Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"message": message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[SEARCH] Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"message": "An error occurred while processing your request"},
    )


@app.middleware("http")
async def log_api_requests(request: Request, call_next):
    """Log ``METHOD path status in Nms`` for every /api request."""
    start = time.perf_counter()
    response = await call_next(request)
    path = request.url.path
    if path.startswith("/api"):
        duration_ms = (time.perf_counter() - start) * 1000
        line = f"{request.method} {path} {response.status_code} in {duration_ms:.0f}ms"
        if len(line) > _LOG_LINE_MAX:
            line = line[: _LOG_LINE_MAX - 1] + "…"
        logger.info(line)
    return response


# ---------------------------------------------------------------------------
# API Endpoints
# ---------------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse)
async def health_check(service: SearchService = Depends(get_search_service)):
    """Health check endpoint."""
    return HealthResponse(status="healthy", sessions=len(service.sessions))


@app.get("/api/search", response_model=SearchResponse)
async def search(q: str | None = None, service: SearchService = Depends(get_search_service)):
    """Start a new conversation and answer its first question."""
    result = await service.initiate(q)
    return SearchResponse(
        sessionId=result.session_id,
        summary=result.response.summary,
        sources=_sources(result.response),
    )


@app.post("/api/follow-up", response_model=FollowUpResponse)
async def follow_up(
    payload: FollowUpRequest,
    service: SearchService = Depends(get_search_service),
):
    """Answer a follow-up question on an existing conversation."""
    formatted = await service.follow_up(payload.sessionId, payload.query)
    return FollowUpResponse(summary=formatted.summary, sources=_sources(formatted))


# Built client last, so API routes take precedence
if config.static_dir.is_dir():
    app.mount("/", StaticFiles(directory=str(config.static_dir), html=True), name="client")
    logger.info("[SEARCH] Serving client from %s", config.static_dir)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main():
    """Launch the search assistant server."""
    port = int(os.environ.get("PORT", "5000"))

    logger.info("[SEARCH] Starting server on port %d", port)
    logger.info("[SEARCH] Health:    http://localhost:%d/health", port)
    logger.info("[SEARCH] Search:    http://localhost:%d/api/search?q=...", port)
    logger.info("[SEARCH] Follow-up: http://localhost:%d/api/follow-up", port)

    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")


if __name__ == "__main__":
    main()
