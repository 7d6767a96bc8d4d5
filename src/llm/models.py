# src/llm/models.py — v2
"""LLM-specific types: ChatMessage, LLMResponse."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from askpipe.content.models import ContentPart, TextPart

ChatRole = Literal["user", "assistant", "system", "tool"]


class ChatMessage(BaseModel):
    """Provider-agnostic chat turn made of ordered content parts."""

    role: ChatRole
    parts: list[ContentPart] = Field(default_factory=list)

    @classmethod
    def text(cls, role: ChatRole, text: str) -> ChatMessage:
        return cls(role=role, parts=[TextPart(text=text)])


class LLMResponse(BaseModel):
    """Normalized response from any backend."""

    content: str
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    model: str
    provider: str
    latency_ms: int = 0
    credential_index: int | None = None
    raw_response: Any = None
