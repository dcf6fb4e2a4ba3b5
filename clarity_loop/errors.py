"""Errors surfaced by the clarity-loop core.

Only InputError and ContextLost ever reach a caller as rejections.
ParseDegraded is raised by providers and absorbed by the orchestrator.
"""

from __future__ import annotations


class InputError(ValueError):
    """Raised when request text is rejected at the validation boundary."""

    EMPTY = "empty_request"
    TOO_LONG = "too_long"
    UNKNOWN_INTERPRETATION = "unknown_interpretation"

    def __init__(self, reason: str, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class ParseDegraded(Exception):
    """Raised when no text-understanding provider produced a usable parse."""


class ContextLost(LookupError):
    """Raised when a context id is unknown to the store or already closed."""

    def __init__(self, context_id: str, reason: str = "unknown") -> None:
        self.context_id = context_id
        self.reason = reason
        super().__init__(
            f"Conversation {context_id} is {reason}; start a new conversation"
        )
