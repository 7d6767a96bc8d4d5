# src/logging/context.py — v2
"""Contextual logging support — attach conversation_id, backend, attempt to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Context variables for structured logging, set per request.
_conversation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "conversation_id", default=None
)
_backend: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "backend", default=None
)
_attempt: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "attempt", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    conversation_id: str | None = None
    backend: str | None = None
    attempt: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        conversation_id=_conversation_id.get(),
        backend=_backend.get(),
        attempt=_attempt.get(),
    )


def set_conversation_context(conversation_id: str) -> None:
    """Set conversation-level context (called once per request)."""
    _conversation_id.set(conversation_id)


def set_backend_context(backend: str, attempt: int | None = None) -> None:
    """Set backend-level context (called per provider attempt)."""
    _backend.set(backend)
    _attempt.set(attempt)


def clear_context() -> None:
    """Reset all context variables."""
    _conversation_id.set(None)
    _backend.set(None)
    _attempt.set(None)
