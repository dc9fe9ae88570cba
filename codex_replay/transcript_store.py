"""Holds the transcript currently loaded into the viewer."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from codex_replay.models import RuntimeState
from codex_replay.parsers.registry import parse_transcript_file
from codex_replay.parsers.runtime import parse_transcript_text
from codex_replay.rpc import RpcAdapter

logger = logging.getLogger("codex_replay")


class TranscriptStore:
    """The single loaded runtime state plus the RPC adapter that serves it.

    A failed load leaves the previously loaded transcript in place.
    """

    def __init__(self) -> None:
        self._state: Optional[RuntimeState] = None
        self._source_path: Optional[Path] = None
        self.rpc = RpcAdapter()

    @property
    def current(self) -> Optional[RuntimeState]:
        return self._state

    @property
    def source_path(self) -> Optional[Path]:
        return self._source_path

    def load_text(self, text: str, file_name: Optional[str] = None) -> RuntimeState:
        state = parse_transcript_text(text, filename=file_name)
        self._replace(state, None)
        return state

    def load_file(self, path: Path) -> RuntimeState:
        state = parse_transcript_file(path)
        self._replace(state, path)
        return state

    def clear(self) -> None:
        self._state = None
        self._source_path = None
        self.rpc.set_runtime_state(None)

    def _replace(self, state: RuntimeState, path: Optional[Path]) -> None:
        self._state = state
        self._source_path = path
        self.rpc.set_runtime_state(state)
        logger.info(
            "Loaded transcript %s (thread=%s turns=%d items=%d fallback=%s)",
            state.meta.fileName or "<upload>",
            state.thread.id,
            state.meta.turnCount,
            state.meta.itemCount,
            state.meta.fallbackUsed,
        )


transcript_store = TranscriptStore()
