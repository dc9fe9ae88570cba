import unittest

from codex_replay.models import AgentMessageItem, ReasoningItem, TurnStatus, UserMessageItem
from codex_replay.parsers.fallback import (
    build_fallback_turns,
    extract_reasoning_text,
    extract_response_message_text,
)
from codex_replay.parsers.transcript import normalize_record


def _items(*payloads):
    return [
        normalize_record({"type": "response_item", "payload": payload}, index)
        for index, payload in enumerate(payloads, start=1)
    ]


def _message(role: str, *texts: str, part_type: str = "input_text", **extra):
    return {
        "type": "message",
        "role": role,
        "content": [{"type": part_type, "text": text} for text in texts],
        **extra,
    }


class FallbackTurnTests(unittest.TestCase):
    def test_user_then_assistant_message_forms_one_turn(self) -> None:
        turns = build_fallback_turns(
            _items(_message("user", "hello"), _message("assistant", "hi there", part_type="output_text"))
        )

        self.assertEqual(len(turns), 1)
        self.assertEqual([type(i) for i in turns[0].items], [UserMessageItem, AgentMessageItem])
        self.assertEqual(turns[0].items[0].content[0].text, "hello")
        self.assertEqual(turns[0].items[1].text, "hi there")
        self.assertEqual(turns[0].status, TurnStatus.COMPLETED)
        self.assertIsNone(turns[0].error)

    def test_each_user_message_starts_a_new_turn(self) -> None:
        turns = build_fallback_turns(
            _items(
                _message("user", "one"),
                _message("assistant", "a"),
                _message("user", "two"),
                _message("user", "three"),
            )
        )

        self.assertEqual(len(turns), 3)
        self.assertEqual([len(t.items) for t in turns], [2, 1, 1])
        ids = [item.id for turn in turns for item in turn.items]
        self.assertEqual(ids, ["item-1", "item-2", "item-3", "item-4"])

    def test_assistant_message_without_user_opens_a_turn(self) -> None:
        turns = build_fallback_turns(_items(_message("assistant", "unprompted")))

        self.assertEqual(len(turns), 1)
        self.assertIsInstance(turns[0].items[0], AgentMessageItem)

    def test_missing_role_counts_as_assistant(self) -> None:
        turns = build_fallback_turns(_items({"type": "message", "content": [{"type": "text", "text": "x"}]}))

        self.assertIsInstance(turns[0].items[0], AgentMessageItem)

    def test_phase_is_restricted(self) -> None:
        turns = build_fallback_turns(
            _items(
                _message("assistant", "c", phase="commentary"),
                _message("assistant", "f", phase="finalAnswer"),
                _message("assistant", "o", phase="other"),
            )
        )

        self.assertEqual([i.phase for i in turns[0].items], ["commentary", "finalAnswer", None])

    def test_reasoning_items_are_appended(self) -> None:
        turns = build_fallback_turns(
            _items(
                _message("user", "q"),
                {
                    "type": "reasoning",
                    "summary": [{"type": "summary_text", "text": "plan"}, {"text": "  "}],
                    "content": ["raw thought", ""],
                },
                {"type": "reasoning", "summary": [], "content": None},
            )
        )

        self.assertEqual(len(turns[0].items), 2)
        reasoning = turns[0].items[1]
        self.assertIsInstance(reasoning, ReasoningItem)
        self.assertEqual(reasoning.summary, ["plan"])
        self.assertEqual(reasoning.content, ["raw thought"])

    def test_empty_and_unrelated_payloads_are_skipped(self) -> None:
        turns = build_fallback_turns(
            _items(
                _message("user", "   "),
                {"type": "function_call", "name": "shell"},
                {"role": "user"},
                None,
            )
        )

        self.assertEqual(turns, [])


class FallbackTextExtractionTests(unittest.TestCase):
    def test_message_text_joins_known_parts(self) -> None:
        text = extract_response_message_text(
            [
                {"type": "input_text", "text": "a"},
                {"type": "input_image", "image_url": "data:"},
                {"type": "output_text", "text": "b"},
                "stray",
                {"type": "text", "text": "c "},
            ]
        )

        self.assertEqual(text, "a\nb\nc")

    def test_message_text_requires_a_list(self) -> None:
        self.assertEqual(extract_response_message_text("plain"), "")

    def test_reasoning_text_accepts_strings_and_objects(self) -> None:
        self.assertEqual(extract_reasoning_text(["x", {"text": "y"}, {"text": 3}, 4, " "]), ["x", "y"])
        self.assertEqual(extract_reasoning_text({"text": "x"}), [])


if __name__ == "__main__":
    unittest.main()
