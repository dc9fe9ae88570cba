"""Transcript file watcher using watchfiles.

Re-parses the configured transcript whenever it changes on disk and swaps
the result into the store. Every reload reads the whole file.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from watchfiles import Change, awatch

from codex_replay.errors import ParseError
from codex_replay.transcript_store import TranscriptStore

logger = logging.getLogger("codex_replay.watcher")


class TranscriptFileWatcher:
    """Background watcher that reloads one transcript file on change."""

    def __init__(self) -> None:
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._stop_event: Optional[asyncio.Event] = None

    async def start(self, store: TranscriptStore, path: Path) -> None:
        """Start watching `path` in a background task."""
        if self._running:
            logger.warning("Transcript watcher already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(store, path, self._stop_event))
        logger.info("Transcript watcher started for %s", path)

    async def stop(self) -> None:
        """Stop the watcher."""
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Transcript watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def _watch_loop(self, store: TranscriptStore, path: Path, stop_event: asyncio.Event) -> None:
        target = path.resolve()
        watch_dir = target.parent
        if not watch_dir.exists():
            logger.warning("Transcript directory %s does not exist, watcher has nothing to monitor", watch_dir)
            self._running = False
            return

        try:
            async for changes in awatch(watch_dir, stop_event=stop_event, debounce=500):
                if not self._running:
                    break
                if reload_needed(changes, target):
                    self.reload(store, target)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("Transcript watcher error: %s", exc)
        finally:
            self._running = False

    @staticmethod
    def reload(store: TranscriptStore, path: Path) -> bool:
        """Re-parse `path` into the store; returns False if the file was rejected."""
        try:
            store.load_file(path)
        except (OSError, UnicodeDecodeError, ParseError) as exc:
            logger.warning("Keeping previous transcript, reload of %s failed: %s", path, exc)
            return False
        return True


def reload_needed(changes: set[tuple[Change, str]], target: Path) -> bool:
    """True when a batch of changes touches `target` with anything but a delete."""
    for change_type, raw_path in changes:
        if Path(raw_path).resolve() != target:
            continue
        if change_type in (Change.added, Change.modified):
            return True
    return False


transcript_watcher = TranscriptFileWatcher()
