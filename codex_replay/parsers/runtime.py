"""Assemble the runtime state value consumers read from a parsed transcript."""
from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import ValidationError

from codex_replay import config
from codex_replay.errors import ParseError, ShapeError
from codex_replay.models import ParsedTranscript, RuntimeMeta, RuntimeState, Thread
from codex_replay.observability import record_parse, record_parser_failure, start_span
from codex_replay.parsers.aliases import as_object
from codex_replay.parsers.fallback import build_fallback_turns
from codex_replay.parsers.metadata import (
    find_first_user_preview,
    normalize_thread_config,
    sandbox_mode_from_policy,
    timestamp_range,
)
from codex_replay.parsers.transcript import parse_jsonl_transcript
from codex_replay.parsers.turns import build_turns_from_event_messages

logger = logging.getLogger("codex_replay.parser")


def _coerce_parsed(parsed: Any) -> ParsedTranscript:
    if isinstance(parsed, ParsedTranscript):
        return parsed
    if isinstance(parsed, Mapping):
        try:
            return ParsedTranscript.model_validate(dict(parsed))
        except ValidationError as exc:
            raise ShapeError(f"Parsed transcript is malformed: {exc.error_count()} invalid field(s)") from exc
    raise ShapeError("Parsed transcript must be an object")


def build_thread_runtime_state(
    parsed: ParsedTranscript | Mapping[str, Any],
    *,
    filename: Optional[str] = None,
    default_model: Optional[str] = None,
) -> RuntimeState:
    """Reconstruct turns and thread metadata from a parsed transcript.

    Falls back to response items when the event stream yields no turns.
    """
    transcript = _coerce_parsed(parsed)

    created_at, updated_at = timestamp_range(transcript.records)

    turns = build_turns_from_event_messages(transcript.eventMsgs)
    fallback_used = False
    if not turns:
        turns = build_fallback_turns(transcript.responseItems)
        fallback_used = True
        logger.debug("No turns from event messages; fallback produced %d turn(s)", len(turns))

    session_meta = as_object(transcript.sessionMeta.payload) if transcript.sessionMeta else None
    latest_context = transcript.latest_turn_context
    turn_context = as_object(latest_context.payload) if latest_context else None
    thread_config = normalize_thread_config(
        session_meta,
        turn_context,
        default_model=default_model or config.DEFAULT_MODEL,
    )

    thread = Thread(
        id=thread_config.threadId or f"thread-{uuid.uuid4()}",
        preview=find_first_user_preview(turns),
        modelProvider=thread_config.modelProvider,
        createdAt=created_at,
        updatedAt=updated_at,
        cwd=thread_config.cwd,
        cliVersion=thread_config.cliVersion,
        source=thread_config.source,
        gitInfo=thread_config.gitInfo,
        turns=turns,
    )

    return RuntimeState(
        thread=thread,
        model=thread_config.model,
        modelProvider=thread_config.modelProvider,
        approvalPolicy=thread_config.approvalPolicy,
        sandbox=thread_config.sandbox,
        sandboxMode=sandbox_mode_from_policy(thread_config.sandbox),
        reasoningEffort=thread_config.reasoningEffort,
        meta=RuntimeMeta(
            fileName=filename or None,
            totalLines=transcript.totalLines,
            nonEmptyLines=transcript.nonEmptyLines,
            turnCount=len(turns),
            itemCount=sum(len(turn.items) for turn in turns),
            fallbackUsed=fallback_used,
        ),
    )


def parse_transcript_text(
    text: str,
    *,
    filename: Optional[str] = None,
    default_model: Optional[str] = None,
) -> RuntimeState:
    """Run the whole pipeline: text -> records -> turns -> runtime state."""
    started = time.perf_counter()
    with start_span("codex_replay.parse_transcript", {"file.name": filename}):
        try:
            parsed = parse_jsonl_transcript(text)
            state = build_thread_runtime_state(parsed, filename=filename, default_model=default_model)
        except (ParseError, ShapeError) as exc:
            record_parser_failure(type(exc).__name__)
            raise
    duration_ms = (time.perf_counter() - started) * 1000
    record_parse(
        "fallback" if state.meta.fallbackUsed else "events",
        duration_ms,
        turns=state.meta.turnCount,
    )
    logger.debug(
        "Parsed %s: %d turns, %d items in %.1fms",
        filename or "<text>",
        state.meta.turnCount,
        state.meta.itemCount,
        duration_ms,
    )
    return state
