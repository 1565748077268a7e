"""Telemetry helpers and metrics."""

from .metrics import (
    AI_CALL_COUNTER,
    ERROR_COUNTER,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    STATEMENT_EDIT_COUNTER,
    increment_statement_edit,
    observe_request,
    record_ai_call,
)

__all__ = [
    "AI_CALL_COUNTER",
    "ERROR_COUNTER",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "STATEMENT_EDIT_COUNTER",
    "increment_statement_edit",
    "observe_request",
    "record_ai_call",
]
