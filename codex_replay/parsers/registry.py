"""File-level entry points for transcript parsing."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from codex_replay.errors import ParseError
from codex_replay.models import RuntimeState
from codex_replay.parsers.runtime import parse_transcript_text

logger = logging.getLogger("codex_replay.parser")


def parse_transcript_file(path: Path, *, default_model: Optional[str] = None) -> RuntimeState:
    """Parse a `.jsonl` transcript file, naming it in `meta.fileName`.

    Raises ParseError for malformed content and OSError if the file cannot be read.
    """
    text = path.read_text(encoding="utf-8")
    return parse_transcript_text(text, filename=path.name, default_model=default_model)


def scan_transcripts(sessions_dir: Path, max_files: int = 50) -> list[RuntimeState]:
    """Parse the most recently modified transcripts under a directory.

    Unreadable or malformed files are logged and skipped.
    """
    states: list[RuntimeState] = []
    if not sessions_dir.exists():
        return states

    candidates: list[tuple[float, Path]] = []
    for path in sessions_dir.rglob("*.jsonl"):
        try:
            candidates.append((path.stat().st_mtime, path))
        except OSError as exc:
            logger.warning("Skipping transcript %s: %s", path, exc)
    candidates.sort(key=lambda entry: entry[0], reverse=True)
    jsonl_files = [path for _, path in candidates[:max_files]]

    for path in jsonl_files:
        try:
            states.append(parse_transcript_file(path))
        except (OSError, UnicodeDecodeError, ParseError) as exc:
            logger.warning("Skipping transcript %s: %s", path, exc)

    return states
