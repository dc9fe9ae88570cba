"""Best-effort turns built from raw `response_item` records.

Used only when the event stream yields no turns at all, e.g. for transcripts
recorded before event messages were written. Every produced turn is reported
as completed.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional

from codex_replay.models import (
    AGENT_MESSAGE_PHASES,
    AgentMessageItem,
    ReasoningItem,
    Record,
    TextUserInput,
    Turn,
    TurnStatus,
    UserMessageItem,
)
from codex_replay.parsers.aliases import as_object, first_present
from codex_replay.parsers.turns import ItemIdCounter, TurnBuilder

_TEXT_PART_TYPES = {"input_text", "output_text", "text"}


def extract_response_message_text(content: Any) -> str:
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for part in content:
        part = as_object(part)
        if part and part.get("type") in _TEXT_PART_TYPES and isinstance(part.get("text"), str):
            parts.append(part["text"])
    return "\n".join(parts).strip()


def extract_reasoning_text(entries: Any) -> list[str]:
    """Collect non-blank strings or `{text}` objects from a reasoning array."""
    if not isinstance(entries, list):
        return []
    values: list[str] = []
    for entry in entries:
        if isinstance(entry, str):
            text = entry
        else:
            text = first_present(as_object(entry), "text", default="")
        if text.strip():
            values.append(text)
    return values


def build_fallback_turns(response_items: Iterable[Record]) -> list[Turn]:
    turns: list[Turn] = []
    item_ids = ItemIdCounter()
    current: Optional[TurnBuilder] = None

    def flush() -> None:
        if current is not None and current.items:
            turns.append(current.to_turn())

    for record in response_items:
        payload = as_object(record.payload)
        kind = first_present(payload, "type")

        if kind == "message":
            text = extract_response_message_text(payload.get("content"))
            if not text:
                continue
            role = first_present(payload, "role", default="assistant")
            if role == "user":
                flush()
                current = TurnBuilder(status=TurnStatus.COMPLETED)
                current.items.append(
                    UserMessageItem(id=item_ids.next(), content=[TextUserInput(text=text)])
                )
                continue
            if current is None:
                current = TurnBuilder(status=TurnStatus.COMPLETED)
            phase = first_present(payload, "phase")
            current.items.append(
                AgentMessageItem(
                    id=item_ids.next(),
                    text=text,
                    phase=phase if phase in AGENT_MESSAGE_PHASES else None,
                )
            )
        elif kind == "reasoning":
            summary = extract_reasoning_text(payload.get("summary"))
            content = extract_reasoning_text(payload.get("content"))
            if not summary and not content:
                continue
            if current is None:
                current = TurnBuilder(status=TurnStatus.COMPLETED)
            current.items.append(ReasoningItem(id=item_ids.next(), summary=summary, content=content))

    flush()
    return turns
