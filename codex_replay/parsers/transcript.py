"""Split JSONL transcript text into typed records and classify them by type."""
from __future__ import annotations

import json
import logging
from typing import Any

from codex_replay.errors import ParseError, ShapeError
from codex_replay.models import ParsedTranscript, Record

logger = logging.getLogger("codex_replay.parser")

SESSION_META = "session_meta"
TURN_CONTEXT = "turn_context"
EVENT_MSG = "event_msg"
RESPONSE_ITEM = "response_item"

# Record type -> ParsedTranscript bucket; anything else lands in `unknown`.
_BUCKET_BY_TYPE: dict[str, str] = {
    SESSION_META: "sessionMetas",
    TURN_CONTEXT: "turnContexts",
    EVENT_MSG: "eventMsgs",
    RESPONSE_ITEM: "responseItems",
}


def _decode_line(raw_line: str, line_number: int) -> Any:
    try:
        return json.loads(raw_line)
    except json.JSONDecodeError as exc:
        raise ParseError(line_number, exc.msg or "invalid JSON syntax") from exc


def normalize_record(value: Any, line_number: int) -> Record:
    """Validate the minimal record shape and wrap it as a Record."""
    if not isinstance(value, dict):
        raise ParseError(line_number, "expected a JSON object")

    record_type = value.get("type")
    if not isinstance(record_type, str):
        raise ParseError(line_number, "missing string field type")

    timestamp = value.get("timestamp")
    return Record(
        lineNumber=line_number,
        timestamp=timestamp if isinstance(timestamp, str) else None,
        type=record_type,
        payload=value.get("payload"),
        raw=value,
    )


def classify_records(records: list[Record]) -> dict[str, list[Record]]:
    """Partition records into type buckets, preserving encounter order."""
    buckets: dict[str, list[Record]] = {
        "sessionMetas": [],
        "turnContexts": [],
        "eventMsgs": [],
        "responseItems": [],
        "unknown": [],
    }
    for record in records:
        buckets[_BUCKET_BY_TYPE.get(record.type, "unknown")].append(record)
    return buckets


def parse_jsonl_transcript(text: str) -> ParsedTranscript:
    """Parse a whole JSONL transcript.

    Fails on the first offending line with a ParseError carrying its 1-based
    line number; no partial result is returned.
    """
    if not isinstance(text, str):
        raise ShapeError("Transcript content must be a string")

    lines = text.replace("\r\n", "\n").split("\n")
    records: list[Record] = []
    non_empty_lines = 0

    for line_number, raw_line in enumerate(lines, start=1):
        if not raw_line.strip():
            continue
        non_empty_lines += 1
        records.append(normalize_record(_decode_line(raw_line, line_number), line_number))

    buckets = classify_records(records)
    session_metas = buckets["sessionMetas"]
    logger.debug(
        "Parsed transcript: %d lines, %d records, %d events, %d response items, %d unknown",
        len(lines),
        len(records),
        len(buckets["eventMsgs"]),
        len(buckets["responseItems"]),
        len(buckets["unknown"]),
    )

    return ParsedTranscript(
        text=text,
        totalLines=len(lines),
        nonEmptyLines=non_empty_lines,
        records=records,
        sessionMeta=session_metas[0] if session_metas else None,
        **buckets,
    )
