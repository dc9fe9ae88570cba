"""Rebuild Codex conversation threads from JSONL session transcripts."""

__version__ = "0.1.0"
