"""Observability helpers."""

from codex_replay.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_parse,
    record_parser_failure,
    record_rpc_call,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_parse",
    "record_parser_failure",
    "record_rpc_call",
]
