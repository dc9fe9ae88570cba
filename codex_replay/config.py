"""codex-replay configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_path(name: str) -> Path | None:
    value = (os.getenv(name) or "").strip()
    if not value:
        return None
    return Path(value).expanduser()


# Project root (one level up from codex_replay/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Transcript sources
SESSIONS_DIR = _env_path("CODEX_REPLAY_SESSIONS_DIR") or Path.home() / ".codex" / "sessions"
TRANSCRIPT_PATH = _env_path("CODEX_REPLAY_TRANSCRIPT_PATH")
WATCH_TRANSCRIPT = _env_bool("CODEX_REPLAY_WATCH_TRANSCRIPT", True)
MAX_UPLOAD_BYTES = _env_int("CODEX_REPLAY_MAX_UPLOAD_BYTES", 64 * 1024 * 1024)
SCAN_MAX_FILES = _env_int("CODEX_REPLAY_SCAN_MAX_FILES", 50)

# Replay defaults
DEFAULT_MODEL = os.getenv("CODEX_REPLAY_DEFAULT_MODEL", "gpt-5")

# Logging
LOG_LEVEL = os.getenv("CODEX_REPLAY_LOG_LEVEL", "INFO").upper()

# Observability
OTEL_ENABLED = _env_bool("CODEX_REPLAY_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("CODEX_REPLAY_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("CODEX_REPLAY_OTEL_SERVICE_NAME", "codex-replay")
PROM_PORT = _env_int("CODEX_REPLAY_PROM_PORT", 0)

# Server settings
HOST = os.getenv("CODEX_REPLAY_HOST", "127.0.0.1")
PORT = _env_int("CODEX_REPLAY_PORT", 31340)

# CORS
FRONTEND_ORIGIN = os.getenv("CODEX_REPLAY_FRONTEND_ORIGIN", "http://localhost:31340")
