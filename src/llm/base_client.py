# src/llm/base_client.py — v2
"""Abstract LLM client interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from askpipe.llm.models import ChatMessage, LLMResponse


class BaseLLMClient(ABC):
    """Unified interface for all backends."""

    @abstractmethod
    async def send(self, messages: list[ChatMessage]) -> LLMResponse:
        """Send the full message list and return the normalized response.

        Raises:
            ProviderError: Or one of its subclasses on any backend failure.
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Backend identifier (gemini, ollama)."""

    @property
    @abstractmethod
    def model(self) -> str:
        """Model name sent to the backend."""
