"""Errors raised while turning transcript text into a runtime state."""
from __future__ import annotations


class ParseError(ValueError):
    """Raised when a transcript line is malformed or missing required fields."""

    def __init__(self, line_number: int, reason: str) -> None:
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}")


class ShapeError(TypeError):
    """Raised when reconstruction receives something other than a parsed transcript."""
