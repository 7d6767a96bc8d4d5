# src/conversation/errors.py — v1
"""Conversation storage errors."""

from __future__ import annotations


class ConversationError(Exception):
    """Base class for conversation storage errors."""


class ConversationNotFoundError(ConversationError):
    """Raised when an id, index or prefix matches no persisted conversation."""

    def __init__(self, ref: str, detail: str = "") -> None:
        self.ref = ref
        message = f"Conversation with ID '{ref}' not found"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ConversationStorageError(ConversationError):
    """Raised when a conversation record cannot be written."""
