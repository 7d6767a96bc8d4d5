# src/llm/adapters/ollama_adapter.py — v2
"""Ollama local LLM adapter implementing BaseLLMClient.

Uses the ollama Python SDK. Ollama messages carry a single content string
plus an optional list of base64 images, so text parts are merged and only
image binaries are forwarded.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from askpipe.content.models import BinaryPart, TextPart
from askpipe.llm.base_client import BaseLLMClient
from askpipe.llm.errors import EmptyResponseError
from askpipe.llm.models import ChatMessage, LLMResponse
from askpipe.llm.retry import to_provider_error
from askpipe.logging.context import set_backend_context

logger = logging.getLogger(__name__)

PROVIDER = "ollama"

_IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})
_ROLE_MAP = {"user": "user", "assistant": "assistant", "system": "system"}


def to_ollama_messages(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Convert chat messages to the ollama chat format."""
    converted: list[dict[str, Any]] = []
    for m in messages:
        role = _ROLE_MAP.get(m.role)
        if role is None:
            logger.warning("Ollama has no '%s' role, sending as user", m.role)
            role = "user"

        texts: list[str] = []
        images: list[str] = []
        for part in m.parts:
            if isinstance(part, TextPart):
                texts.append(part.text)
            elif isinstance(part, BinaryPart):
                if part.mime_type in _IMAGE_MIME_TYPES:
                    images.append(part.data)
                else:
                    logger.warning("Ollama does not accept %s content, dropping it", part.mime_type)

        entry: dict[str, Any] = {"role": role, "content": "\n\n".join(texts)}
        if images:
            entry["images"] = images
        converted.append(entry)
    return converted


class OllamaAdapter(BaseLLMClient):
    """Ollama local inference adapter."""

    def __init__(
        self,
        model: str,
        host: str = "http://localhost:11434",
        timeout_s: float = 600,
        client: Any = None,
    ) -> None:
        self._model = model
        self._host = host
        self._timeout_s = timeout_s
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            import ollama

            self._client = ollama.AsyncClient(host=self._host, timeout=self._timeout_s)
        return self._client

    async def send(self, messages: list[ChatMessage]) -> LLMResponse:
        msgs = to_ollama_messages(messages)
        set_backend_context(PROVIDER, 1)
        logger.info("Sending %d message(s) to ollama model %s at %s", len(msgs), self._model, self._host)

        t0 = time.monotonic()
        try:
            resp = await self._get_client().chat(model=self._model, messages=msgs)
        except Exception as exc:
            error = to_provider_error(exc, PROVIDER)
            logger.error("Ollama request failed (%s): %s", error.kind.value, exc)
            if error is exc:
                raise
            raise error from exc
        latency = int((time.monotonic() - t0) * 1000)

        text = resp["message"]["content"] or ""
        if not text.strip():
            raise EmptyResponseError(PROVIDER)

        prompt_tokens = resp.get("prompt_eval_count")
        completion_tokens = resp.get("eval_count")
        total = (
            prompt_tokens + completion_tokens
            if prompt_tokens is not None and completion_tokens is not None
            else None
        )
        logger.info("Received %d chars from %s in %d ms", len(text), self._model, latency)
        return LLMResponse(
            content=text,
            input_tokens=prompt_tokens,
            output_tokens=completion_tokens,
            total_tokens=total,
            model=self._model,
            provider=PROVIDER,
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return PROVIDER

    @property
    def model(self) -> str:
        return self._model
