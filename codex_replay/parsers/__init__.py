"""Transcript parsing pipeline."""

from codex_replay.parsers.registry import parse_transcript_file, scan_transcripts
from codex_replay.parsers.runtime import build_thread_runtime_state, parse_transcript_text
from codex_replay.parsers.transcript import parse_jsonl_transcript

__all__ = [
    "build_thread_runtime_state",
    "parse_jsonl_transcript",
    "parse_transcript_file",
    "parse_transcript_text",
    "scan_transcripts",
]
