import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

import yaml

from codex_replay.scripts import check_transcript


def _write(path: Path, *records: dict) -> None:
    path.write_text("\n".join(json.dumps(record) for record in records), encoding="utf-8")


class CheckTranscriptTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "rollout.jsonl"

    def _run(self, *argv: str) -> tuple[int, str, str]:
        stdout, stderr = io.StringIO(), io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = check_transcript.main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()

    def test_summary_for_event_transcript(self) -> None:
        _write(
            self.path,
            {"type": "session_meta", "payload": {"id": "s1"}},
            {"type": "event_msg", "payload": {"type": "user_message", "message": "hi"}},
            {"type": "event_msg", "payload": {"type": "agent_message", "message": "hello"}},
        )

        code, out, err = self._run(str(self.path))

        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "ok: turns=1, items=2, lines=3, fallback=false")
        self.assertEqual(err, "")

    def test_summary_marks_fallback(self) -> None:
        _write(
            self.path,
            {"type": "response_item", "payload": {"type": "message", "role": "user", "content": [{"type": "input_text", "text": "q"}]}},
        )

        code, out, _ = self._run(str(self.path))

        self.assertEqual(code, 0)
        self.assertIn("fallback=true", out)

    def test_json_and_yaml_output(self) -> None:
        _write(self.path, {"type": "event_msg", "payload": {"type": "user_message", "message": "hi"}})

        code, out, _ = self._run(str(self.path), "--format", "json")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["meta"]["fileName"], "rollout.jsonl")

        code, out, _ = self._run(str(self.path), "--format", "yaml")
        self.assertEqual(code, 0)
        self.assertEqual(yaml.safe_load(out)["thread"]["preview"], "hi")

    def test_malformed_transcript_fails(self) -> None:
        self.path.write_text('{"type":"session_meta"}\n[]\n', encoding="utf-8")

        code, out, err = self._run(str(self.path))

        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertIn("check failed: Line 2", err)

    def test_transcript_without_turns_fails(self) -> None:
        _write(self.path, {"type": "session_meta", "payload": {"id": "s1"}})

        code, _, err = self._run(str(self.path))

        self.assertEqual(code, 1)
        self.assertIn("No turns were generated", err)

    def test_missing_file_fails(self) -> None:
        code, _, err = self._run(str(self.path.with_name("missing.jsonl")))

        self.assertEqual(code, 1)
        self.assertIn("check failed", err)


if __name__ == "__main__":
    unittest.main()
