#!/usr/bin/env python3
"""Parse a transcript and report what the viewer would render.

Usage:
  python -m codex_replay.scripts.check_transcript example.jsonl
  python -m codex_replay.scripts.check_transcript example.jsonl --format json
  python -m codex_replay.scripts.check_transcript example.jsonl --format yaml
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import yaml

from codex_replay.errors import ParseError, ShapeError
from codex_replay.models import ITEM_TYPES, RuntimeState
from codex_replay.parsers.registry import parse_transcript_file


def validate_runtime_state(state: RuntimeState) -> None:
    """Raise ValueError if the state could not be rendered by the viewer."""
    if not state.thread.id:
        raise ValueError("Thread id is missing")
    if not state.thread.turns:
        raise ValueError("No turns were generated")
    for turn in state.thread.turns:
        for item in turn.items:
            if item.type not in ITEM_TYPES:
                raise ValueError(f"Unsupported item type: {item.type}")


def summarize(state: RuntimeState) -> str:
    return (
        f"ok: turns={state.meta.turnCount}, items={state.meta.itemCount}, "
        f"lines={state.meta.nonEmptyLines}, fallback={str(state.meta.fallbackUsed).lower()}"
    )


def render(state: RuntimeState, output_format: str) -> str:
    if output_format == "json":
        return json.dumps(state.to_payload(), indent=2, ensure_ascii=False)
    if output_format == "yaml":
        return yaml.safe_dump(state.to_payload(), sort_keys=False, allow_unicode=True)
    return summarize(state)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check a Codex JSONL transcript")
    parser.add_argument("path", type=Path, help="Transcript file (.jsonl)")
    parser.add_argument("--format", choices=("summary", "json", "yaml"), default="summary")
    args = parser.parse_args(argv)

    try:
        state = parse_transcript_file(args.path)
        validate_runtime_state(state)
    except (OSError, UnicodeDecodeError, ParseError, ShapeError, ValueError) as exc:
        print(f"check failed: {exc}", file=sys.stderr)
        return 1

    print(render(state, args.format))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
