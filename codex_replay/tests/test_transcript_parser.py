import json
import unittest

from codex_replay.errors import ParseError, ShapeError
from codex_replay.parsers.transcript import classify_records, normalize_record, parse_jsonl_transcript


def _jsonl(*records: dict) -> str:
    return "\n".join(json.dumps(record) for record in records)


class ParseJsonlTranscriptTests(unittest.TestCase):
    def test_records_keep_line_numbers_and_skip_blank_lines(self) -> None:
        text = "\n".join(
            [
                json.dumps({"type": "session_meta", "timestamp": "2026-02-16T10:00:00Z", "payload": {"id": "s1"}}),
                "   ",
                json.dumps({"type": "event_msg", "payload": {"type": "user_message", "message": "hi"}}),
                "",
            ]
        )

        parsed = parse_jsonl_transcript(text)

        self.assertEqual(parsed.totalLines, 4)
        self.assertEqual(parsed.nonEmptyLines, 2)
        self.assertEqual([r.lineNumber for r in parsed.records], [1, 3])
        self.assertEqual(parsed.records[0].timestamp, "2026-02-16T10:00:00Z")
        self.assertIsNone(parsed.records[1].timestamp)
        self.assertEqual(parsed.records[1].payload["message"], "hi")
        self.assertEqual(parsed.records[1].raw["type"], "event_msg")

    def test_crlf_line_endings_are_normalized(self) -> None:
        text = '{"type":"event_msg","payload":{}}\r\n{"type":"turn_context","payload":{}}\r\n'

        parsed = parse_jsonl_transcript(text)

        self.assertEqual(parsed.totalLines, 3)
        self.assertEqual(parsed.nonEmptyLines, 2)
        self.assertEqual(len(parsed.eventMsgs), 1)
        self.assertEqual(len(parsed.turnContexts), 1)

    def test_invalid_json_reports_its_line_number(self) -> None:
        text = '{"type":"session_meta","payload":{}}\nnot json\n{"type":"event_msg","payload":{}}'

        with self.assertRaises(ParseError) as ctx:
            parse_jsonl_transcript(text)

        self.assertEqual(ctx.exception.line_number, 2)
        self.assertTrue(str(ctx.exception).startswith("Line 2: "))
        self.assertTrue(ctx.exception.reason)

    def test_non_object_lines_are_rejected(self) -> None:
        for line in ("[1, 2]", "42", '"text"', "null"):
            with self.subTest(line=line):
                with self.assertRaises(ParseError) as ctx:
                    parse_jsonl_transcript('{"type":"event_msg"}\n' + line)
                self.assertEqual(ctx.exception.line_number, 2)
                self.assertEqual(ctx.exception.reason, "expected a JSON object")

    def test_missing_or_non_string_type_is_rejected(self) -> None:
        for line in ('{"payload": {}}', '{"type": 3}', '{"type": null}'):
            with self.subTest(line=line):
                with self.assertRaises(ParseError) as ctx:
                    parse_jsonl_transcript(line)
                self.assertEqual(ctx.exception.line_number, 1)
                self.assertEqual(ctx.exception.reason, "missing string field type")
                self.assertEqual(str(ctx.exception), "Line 1: missing string field type")

    def test_first_offending_line_wins(self) -> None:
        text = '{"type":"event_msg"}\n\n{"no_type": true}\nnot json'

        with self.assertRaises(ParseError) as ctx:
            parse_jsonl_transcript(text)

        self.assertEqual(ctx.exception.line_number, 3)

    def test_non_string_input_raises_shape_error(self) -> None:
        with self.assertRaises(ShapeError):
            parse_jsonl_transcript(b'{"type":"event_msg"}')  # type: ignore[arg-type]

    def test_empty_text_has_one_blank_line(self) -> None:
        parsed = parse_jsonl_transcript("")

        self.assertEqual(parsed.totalLines, 1)
        self.assertEqual(parsed.nonEmptyLines, 0)
        self.assertEqual(parsed.records, [])
        self.assertIsNone(parsed.sessionMeta)


class ClassifyRecordsTests(unittest.TestCase):
    def test_buckets_preserve_encounter_order(self) -> None:
        parsed = parse_jsonl_transcript(
            _jsonl(
                {"type": "session_meta", "payload": {"id": "first"}},
                {"type": "turn_context", "payload": {"model": "a"}},
                {"type": "event_msg", "payload": {"type": "user_message", "message": "1"}},
                {"type": "compacted", "payload": {}},
                {"type": "response_item", "payload": {"type": "message"}},
                {"type": "session_meta", "payload": {"id": "second"}},
                {"type": "turn_context", "payload": {"model": "b"}},
                {"type": "event_msg", "payload": {"type": "user_message", "message": "2"}},
            )
        )

        self.assertEqual([r.lineNumber for r in parsed.eventMsgs], [3, 8])
        self.assertEqual([r.lineNumber for r in parsed.turnContexts], [2, 7])
        self.assertEqual([r.lineNumber for r in parsed.responseItems], [5])
        self.assertEqual([r.type for r in parsed.unknown], ["compacted"])
        self.assertEqual(len(parsed.sessionMetas), 2)
        self.assertEqual(parsed.sessionMeta.payload["id"], "first")
        self.assertEqual(parsed.latest_turn_context.payload["model"], "b")

    def test_classify_records_returns_every_bucket(self) -> None:
        buckets = classify_records([normalize_record({"type": "mystery"}, 1)])

        self.assertEqual(set(buckets), {"sessionMetas", "turnContexts", "eventMsgs", "responseItems", "unknown"})
        self.assertEqual(len(buckets["unknown"]), 1)

    def test_normalize_record_defaults_missing_payload(self) -> None:
        record = normalize_record({"type": "event_msg", "timestamp": 12}, 4)

        self.assertEqual(record.lineNumber, 4)
        self.assertIsNone(record.payload)
        self.assertIsNone(record.timestamp)


if __name__ == "__main__":
    unittest.main()
