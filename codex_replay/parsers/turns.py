"""Rebuild thread turns by replaying `event_msg` records through a state machine.

The reconstructor is either idle (no active turn) or holds one active turn
under construction. Closed turns stay mutable until the end of the replay
because completion and abort events may arrive for a turn that was already
closed by a later `task_started` or `user_message`.
"""
from __future__ import annotations

import logging
import math
import sys
import uuid
from typing import Any, Callable, Iterable, Optional

from codex_replay.models import (
    AgentMessageItem,
    ImageUserInput,
    LocalImageUserInput,
    ReasoningItem,
    Record,
    TextUserInput,
    Turn,
    TurnError,
    TurnStatus,
    UserMessageItem,
)
from codex_replay.parsers.aliases import as_object, first_present

logger = logging.getLogger("codex_replay.parser")


def new_turn_id() -> str:
    return f"turn-{uuid.uuid4()}"


def coerce_turn_status(value: Any) -> TurnStatus:
    """Map anything outside the four known statuses to completed."""
    try:
        return TurnStatus(value)
    except ValueError:
        return TurnStatus.COMPLETED


def event_turn_id(payload: dict[str, Any]) -> Optional[str]:
    return first_present(payload, "turn_id", "turnId")


class ItemIdCounter:
    """Sequential `item-<n>` ids, scoped to one reconstruction pass."""

    def __init__(self, start: int = 1) -> None:
        self.current = start

    def next(self) -> str:
        value = self.current
        self.current += 1
        return f"item-{value}"

    def reset(self, start: int) -> None:
        self.current = start


class TurnBuilder:
    """A turn under construction plus the bookkeeping flags the closing rule needs."""

    def __init__(
        self,
        turn_id: Optional[str] = None,
        *,
        opened_explicitly: bool = False,
        status: TurnStatus = TurnStatus.COMPLETED,
    ) -> None:
        self.event_id = turn_id
        self.id = turn_id or new_turn_id()
        self.items: list[Any] = []
        self.status = status
        self.error: Optional[TurnError] = None
        self.opened_explicitly = opened_explicitly
        self.saw_compaction = False

    @property
    def is_disposable(self) -> bool:
        """Implicit, empty turns that never saw a compaction are never emitted."""
        return not self.items and not self.opened_explicitly and not self.saw_compaction

    def mark_completed(self) -> None:
        # Completion never overrides an interrupted or failed turn.
        if self.status in (TurnStatus.IN_PROGRESS, TurnStatus.COMPLETED):
            self.status = TurnStatus.COMPLETED

    def mark_interrupted(self) -> None:
        self.status = TurnStatus.INTERRUPTED

    def to_turn(self) -> Turn:
        return Turn(
            id=self.id,
            items=list(self.items),
            status=coerce_turn_status(self.status),
            error=self.error,
        )


def build_user_message_content(payload: dict[str, Any]) -> list[Any]:
    content: list[Any] = []
    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        content.append(
            TextUserInput(
                text=message,
                text_elements=first_present(payload, "text_elements", "textElements", kind=list, default=[]),
            )
        )
    images = payload.get("images")
    if isinstance(images, list):
        for image in images:
            if isinstance(image, str) and image:
                content.append(ImageUserInput(url=image))
    local_images = payload.get("local_images")
    if isinstance(local_images, list):
        for image_path in local_images:
            if isinstance(image_path, str) and image_path:
                content.append(LocalImageUserInput(path=image_path))
    return content


class TurnReconstructor:
    """Finite-state replay of event messages into turns.

    Create one instance per parse; `run` may only be called once.
    """

    def __init__(self) -> None:
        self._turns: list[TurnBuilder] = []
        self._current: Optional[TurnBuilder] = None
        self._item_ids = ItemIdCounter()
        self._kept_turn_ids: set[str] = set()
        self._consumed = False
        self._handlers: dict[str, Callable[[dict[str, Any]], None]] = {
            "user_message": self._on_user_message,
            "agent_message": self._on_agent_message,
            "agent_reasoning": self._on_agent_reasoning,
            "agent_reasoning_raw_content": self._on_agent_reasoning_raw_content,
            "context_compacted": self._on_context_compacted,
            "task_started": self._on_turn_started,
            "turn_started": self._on_turn_started,
            "task_complete": self._on_turn_complete,
            "turn_complete": self._on_turn_complete,
            "turn_aborted": self._on_turn_aborted,
            "thread_rolled_back": self._on_thread_rolled_back,
        }

    @property
    def has_active_turn(self) -> bool:
        return self._current is not None

    def run(self, event_msgs: Iterable[Record]) -> list[Turn]:
        if self._consumed:
            raise RuntimeError("TurnReconstructor instances are single-use")
        self._consumed = True

        for record in event_msgs:
            payload = as_object(record.payload)
            kind = first_present(payload, "type")
            if not kind:
                continue
            handler = self._handlers.get(kind)
            # token_count and unrecognized kinds carry no turn content.
            if handler is not None:
                handler(payload)

        self._finish_current()
        return [turn.to_turn() for turn in self._turns]

    # ── state transitions ──────────────────────────────────────────

    def _open_turn(self, turn_id: Optional[str] = None, *, explicit: bool = False) -> TurnBuilder:
        turn = TurnBuilder(
            turn_id,
            opened_explicitly=explicit,
            status=TurnStatus.IN_PROGRESS if explicit else TurnStatus.COMPLETED,
        )
        # Output ids stay unique even when a log reuses a turn id.
        suffix = 2
        while turn.id in self._kept_turn_ids:
            turn.id = f"{turn_id}-{suffix}"
            suffix += 1
        self._current = turn
        return turn

    def _ensure_turn(self) -> TurnBuilder:
        if self._current is None:
            return self._open_turn()
        return self._current

    def _finish_current(self) -> None:
        turn = self._current
        if turn is None:
            return
        self._current = None
        if turn.is_disposable:
            return
        self._turns.append(turn)
        self._kept_turn_ids.add(turn.id)

    def _find_closed_turn(self, turn_id: Optional[str]) -> Optional[TurnBuilder]:
        if not turn_id:
            return None
        for turn in reversed(self._turns):
            if turn.event_id == turn_id or turn.id == turn_id:
                return turn
        return None

    def _matches_current(self, turn_id: Optional[str]) -> bool:
        current = self._current
        if not turn_id or current is None:
            return False
        return current.event_id == turn_id or current.id == turn_id

    # ── handlers ───────────────────────────────────────────────────

    def _on_user_message(self, payload: dict[str, Any]) -> None:
        current = self._current
        if (
            current is not None
            and not current.opened_explicitly
            and not (current.saw_compaction and not current.items)
        ):
            self._finish_current()
        turn = self._ensure_turn()
        turn.items.append(
            UserMessageItem(id=self._item_ids.next(), content=build_user_message_content(payload))
        )

    def _on_agent_message(self, payload: dict[str, Any]) -> None:
        text = first_present(payload, "message", default="")
        if not text:
            return
        self._ensure_turn().items.append(AgentMessageItem(id=self._item_ids.next(), text=text))

    def _on_agent_reasoning(self, payload: dict[str, Any]) -> None:
        self._append_reasoning(payload, summary=True)

    def _on_agent_reasoning_raw_content(self, payload: dict[str, Any]) -> None:
        self._append_reasoning(payload, summary=False)

    def _append_reasoning(self, payload: dict[str, Any], *, summary: bool) -> None:
        text = first_present(payload, "text", default="")
        if not text:
            return
        turn = self._ensure_turn()
        last_item = turn.items[-1] if turn.items else None
        if isinstance(last_item, ReasoningItem):
            (last_item.summary if summary else last_item.content).append(text)
            return
        turn.items.append(
            ReasoningItem(
                id=self._item_ids.next(),
                summary=[text] if summary else [],
                content=[] if summary else [text],
            )
        )

    def _on_context_compacted(self, payload: dict[str, Any]) -> None:
        if self._current is not None:
            self._current.saw_compaction = True

    def _on_turn_started(self, payload: dict[str, Any]) -> None:
        self._finish_current()
        self._open_turn(event_turn_id(payload), explicit=True)

    def _on_turn_complete(self, payload: dict[str, Any]) -> None:
        turn_id = event_turn_id(payload)
        if self._matches_current(turn_id):
            self._current.mark_completed()
            self._finish_current()
            return

        previous = self._find_closed_turn(turn_id)
        if previous is not None:
            previous.mark_completed()
            return

        # Best effort: an unmatched id still completes whatever turn is open.
        if self._current is not None:
            self._current.mark_completed()
            self._finish_current()
            return
        logger.debug("Completion event for unknown turn %r ignored", turn_id)

    def _on_turn_aborted(self, payload: dict[str, Any]) -> None:
        turn_id = event_turn_id(payload)
        if self._matches_current(turn_id):
            self._current.mark_interrupted()
            return

        previous = self._find_closed_turn(turn_id)
        if previous is not None:
            previous.mark_interrupted()
            return

        if self._current is not None:
            self._current.mark_interrupted()
            return
        logger.debug("Abort event for unknown turn %r ignored", turn_id)

    def _on_thread_rolled_back(self, payload: dict[str, Any]) -> None:
        self._finish_current()
        raw_count = first_present(payload, "num_turns", "numTurns", kind=(int, float), default=0)
        count = rollback_count(raw_count)
        removed = min(count, len(self._turns))
        if removed:
            for turn in self._turns[len(self._turns) - removed:]:
                self._kept_turn_ids.discard(turn.id)
            del self._turns[len(self._turns) - removed:]
        remaining_items = sum(len(turn.items) for turn in self._turns)
        self._item_ids.reset(remaining_items + 1)
        logger.debug("Rolled back %d turn(s); %d remain", removed, len(self._turns))


def rollback_count(raw_count: float) -> int:
    """Floor the requested rollback size and clamp it at zero."""
    if math.isnan(raw_count):
        return 0
    if math.isinf(raw_count):
        return sys.maxsize if raw_count > 0 else 0
    return max(0, math.floor(raw_count))


def build_turns_from_event_messages(event_msgs: Iterable[Record]) -> list[Turn]:
    return TurnReconstructor().run(event_msgs)
