import json
import tempfile
import unittest
from pathlib import Path

from watchfiles import Change

from codex_replay.file_watcher import TranscriptFileWatcher, reload_needed
from codex_replay.transcript_store import TranscriptStore


def _write_transcript(path: Path, message: str) -> None:
    lines = [
        {"type": "session_meta", "payload": {"id": "watched-thread"}},
        {"type": "event_msg", "payload": {"type": "user_message", "message": message}},
    ]
    path.write_text("\n".join(json.dumps(line) for line in lines), encoding="utf-8")


class ReloadNeededTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.target = (Path(self._tmp.name) / "rollout.jsonl").resolve()

    def test_modifications_to_target_trigger_reload(self) -> None:
        self.assertTrue(reload_needed({(Change.modified, str(self.target))}, self.target))
        self.assertTrue(reload_needed({(Change.added, str(self.target))}, self.target))

    def test_deletes_and_other_files_are_ignored(self) -> None:
        other = str(self.target.parent / "other.jsonl")

        self.assertFalse(reload_needed({(Change.deleted, str(self.target))}, self.target))
        self.assertFalse(reload_needed({(Change.modified, other)}, self.target))
        self.assertFalse(reload_needed(set(), self.target))


class WatcherReloadTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "rollout.jsonl"
        self.store = TranscriptStore()

    def test_reload_replaces_loaded_transcript(self) -> None:
        _write_transcript(self.path, "first")
        self.assertTrue(TranscriptFileWatcher.reload(self.store, self.path))
        self.assertEqual(self.store.current.thread.preview, "first")
        self.assertEqual(self.store.source_path, self.path)

        _write_transcript(self.path, "second")
        self.assertTrue(TranscriptFileWatcher.reload(self.store, self.path))
        self.assertEqual(self.store.current.thread.preview, "second")
        self.assertEqual(self.store.current.meta.fileName, "rollout.jsonl")

    def test_malformed_rewrite_keeps_previous_state(self) -> None:
        _write_transcript(self.path, "good")
        TranscriptFileWatcher.reload(self.store, self.path)

        self.path.write_text('{"type":"event_msg"}\n{not json', encoding="utf-8")

        with self.assertLogs("codex_replay.watcher", level="WARNING"):
            self.assertFalse(TranscriptFileWatcher.reload(self.store, self.path))
        self.assertEqual(self.store.current.thread.preview, "good")

    def test_missing_file_is_rejected(self) -> None:
        with self.assertLogs("codex_replay.watcher", level="WARNING"):
            self.assertFalse(TranscriptFileWatcher.reload(self.store, self.path))
        self.assertIsNone(self.store.current)


class WatcherLifecycleTests(unittest.IsolatedAsyncioTestCase):
    async def test_missing_directory_stops_watcher(self) -> None:
        watcher = TranscriptFileWatcher()

        await watcher.start(TranscriptStore(), Path("/nonexistent/codex-replay/rollout.jsonl"))
        await watcher._task
        self.assertFalse(watcher.is_running)

        await watcher.stop()
        self.assertFalse(watcher.is_running)

    async def test_stop_cancels_running_watch(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            watcher = TranscriptFileWatcher()
            await watcher.start(TranscriptStore(), Path(tmp) / "rollout.jsonl")
            self.assertTrue(watcher.is_running)

            await watcher.stop()

        self.assertFalse(watcher.is_running)


if __name__ == "__main__":
    unittest.main()
