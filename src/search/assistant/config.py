"""Search assistant configuration — loads environment variables and validates required settings.

Usage:
    from assistant.config import config
    print(config.model_name)
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_SERVICE_DIR = Path(__file__).resolve().parent.parent  # src/search/
_REPO_ROOT = _SERVICE_DIR.parent.parent


def _find_env_file() -> Path | None:
    """Search for .env file starting from the service directory, then the repo root."""
    candidates = [
        _SERVICE_DIR / ".env",
        _REPO_ROOT / ".env",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    # Gemini API key, never embedded in source
    google_api_key: str = field(default="", repr=False)

    # Model and fixed decoding configuration
    model_name: str = "gemini-2.0-flash-exp"
    temperature: float = 0.9
    top_p: float = 1.0
    top_k: int = 1
    max_output_tokens: int = 2048

    # Seconds to wait for a single model turn before giving up
    request_timeout: float = 60.0

    # Conversation sessions
    session_ttl: float = 3600.0
    max_sessions: int = 1000

    app_env: str = "development"

    # Built browser client, served at / when present
    static_dir: Path = _REPO_ROOT / "dist" / "public"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _load_config() -> Config:
    """Load and validate configuration from environment."""
    env_file = _find_env_file()
    if env_file:
        load_dotenv(env_file, override=False)

    required = {
        "GOOGLE_API_KEY": "google_api_key",
    }

    missing = [var for var in required if not os.environ.get(var)]
    if missing:
        print(
            f"Error: Missing required environment variables: {', '.join(missing)}\n"
            f"Copy .env.sample to .env and fill in values.",
            file=sys.stderr,
        )
        sys.exit(1)

    static_dir = os.environ.get("STATIC_DIR")

    try:
        return Config(
            google_api_key=os.environ["GOOGLE_API_KEY"],
            model_name=os.environ.get("GEMINI_MODEL", "gemini-2.0-flash-exp"),
            temperature=_env_float("GEMINI_TEMPERATURE", 0.9),
            top_p=_env_float("GEMINI_TOP_P", 1.0),
            top_k=_env_int("GEMINI_TOP_K", 1),
            max_output_tokens=_env_int("GEMINI_MAX_OUTPUT_TOKENS", 2048),
            request_timeout=_env_float("MODEL_TIMEOUT_SECONDS", 60.0),
            session_ttl=_env_float("SESSION_TTL_SECONDS", 3600.0),
            max_sessions=_env_int("MAX_SESSIONS", 1000),
            app_env=os.environ.get("APP_ENV", "development"),
            static_dir=Path(static_dir) if static_dir else _REPO_ROOT / "dist" / "public",
        )
    except ValueError as exc:
        print(f"Error: Invalid numeric setting: {exc}", file=sys.stderr)
        sys.exit(1)


# Singleton, imported as `from assistant.config import config`
config = _load_config()
