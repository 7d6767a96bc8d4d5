# src/conversation/models.py — v2
"""Conversation domain models: Message, Conversation, ConversationSummary.

Records written by older versions may lack newer fields; every field added
after the first release has a default so those records still load.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from askpipe.content.models import ResourceInfo

MessageRole = Literal["User", "Assistant"]

# Per-message overhead (role prefix and formatting) used by size estimates.
MESSAGE_OVERHEAD_CHARS = 20
PREVIEW_CHARS = 50


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Older records may carry naive timestamps; they were always written in UTC.
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class TokenUsage(BaseModel):
    """Token counts reported by the backend, when available."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    @property
    def is_known(self) -> bool:
        return any(
            v is not None for v in (self.prompt_tokens, self.completion_tokens, self.total_tokens)
        )

    def format_short(self) -> str:
        p, c, t = self.prompt_tokens, self.completion_tokens, self.total_tokens
        if p is not None and c is not None and t is not None:
            return f"{p}+{c}={t}"
        if p is not None and c is not None:
            return f"{p}+{c}"
        if t is not None:
            return str(t)
        return "N/A"


class Message(BaseModel):
    """Single persisted turn."""

    model_config = ConfigDict(extra="ignore")

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    resources: list[ResourceInfo] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    prompt: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, v: datetime) -> datetime:  # noqa: N805
        return _as_utc(v)

    def headline(self) -> str:
        """What the user asked: the typed prompt when recorded, else the content."""
        if self.prompt and self.prompt.strip():
            return self.prompt
        return self.content


class Conversation(BaseModel):
    """Append-only list of messages with identity and timestamps."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    messages: list[Message] = Field(default_factory=list)
    model: str | None = None
    credential_index: int | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _stamps_utc(cls, v: datetime) -> datetime:  # noqa: N805
        return _as_utc(v)

    def append(self, message: Message) -> None:
        """Append a message, keeping timestamps monotonically non-decreasing.

        Raises:
            ValueError: If the message is older than the last one.
        """
        if self.messages and message.timestamp < self.messages[-1].timestamp:
            raise ValueError(
                f"Message timestamp {message.timestamp.isoformat()} precedes "
                f"last message {self.messages[-1].timestamp.isoformat()}"
            )
        self.messages.append(message)
        self.updated_at = max(self.updated_at, message.timestamp, self.created_at)

    def estimate_size(self) -> int:
        """Approximate size in characters including per-message overhead."""
        return sum(len(m.content) + MESSAGE_OVERHEAD_CHARS for m in self.messages)

    def first_user_message(self) -> Message | None:
        return next((m for m in self.messages if m.role == "User"), None)


class ConversationSummary(BaseModel):
    """Listing row for a persisted conversation."""

    id: str
    message_count: int
    created_at: datetime
    updated_at: datetime
    preview: str | None = None

    @classmethod
    def from_conversation(cls, conversation: Conversation) -> ConversationSummary:
        first = conversation.first_user_message()
        preview = None
        if first is not None:
            content = first.headline()
            if len(content) > PREVIEW_CHARS:
                content = f"{content[:PREVIEW_CHARS - 3]}..."
            preview = content
        return cls(
            id=conversation.id,
            message_count=len(conversation.messages),
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
            preview=preview,
        )

    def age(self, now: datetime | None = None) -> str:
        """Compact age string: days, hours or minutes (at least 1m)."""
        delta = (now or utc_now()) - self.updated_at
        seconds = int(delta.total_seconds())
        if seconds >= 86400:
            return f"{seconds // 86400}d"
        if seconds >= 3600:
            return f"{seconds // 3600}h"
        return f"{max(seconds // 60, 1)}m"
