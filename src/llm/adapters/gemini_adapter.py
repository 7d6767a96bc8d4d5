# src/llm/adapters/gemini_adapter.py — v2
"""Google Gemini adapter implementing BaseLLMClient.

Uses the google-generativeai SDK through an injectable transport. Holds a
CredentialPool and performs at most one key failover on a rate limit.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from typing import Any, Awaitable, Callable

from askpipe.content.models import BinaryPart, TextPart
from askpipe.llm.base_client import BaseLLMClient
from askpipe.llm.credentials import AuthRemediationHook, CredentialPool, RouterState
from askpipe.llm.errors import EmptyResponseError, ErrorKind
from askpipe.llm.models import ChatMessage, LLMResponse
from askpipe.llm.retry import to_provider_error
from askpipe.logging.context import set_backend_context

logger = logging.getLogger(__name__)

PROVIDER = "gemini"

# (api_key, model, contents, system_instruction) -> SDK response
GeminiTransport = Callable[[str, str, list[dict[str, Any]], "str | None"], Awaitable[Any]]


async def genai_transport(
    api_key: str,
    model: str,
    contents: list[dict[str, Any]],
    system_instruction: str | None,
) -> Any:
    """Default transport: one generate_content_async call."""
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    generative_model = genai.GenerativeModel(model, system_instruction=system_instruction)
    return await generative_model.generate_content_async(contents)


def to_gemini_contents(messages: list[ChatMessage]) -> tuple[list[dict[str, Any]], str | None]:
    """Convert chat messages to Gemini contents plus an optional system instruction."""
    contents: list[dict[str, Any]] = []
    system_texts: list[str] = []
    for m in messages:
        if m.role == "system":
            system_texts.extend(p.text for p in m.parts if isinstance(p, TextPart))
            continue
        parts: list[dict[str, Any]] = []
        for part in m.parts:
            if isinstance(part, TextPart):
                if part.text.strip():
                    parts.append({"text": part.text})
            elif isinstance(part, BinaryPart):
                parts.append({
                    "inline_data": {
                        "mime_type": part.mime_type,
                        "data": base64.b64decode(part.data),
                    }
                })
        if not parts:
            continue
        role = "model" if m.role == "assistant" else "user"
        contents.append({"role": role, "parts": parts})
    system = "\n\n".join(system_texts) if system_texts else None
    return contents, system


def _response_text(resp: Any) -> str:
    try:
        return resp.text or ""
    except ValueError:
        # .text raises when the candidate has no parts (e.g. blocked output)
        return ""


class GeminiAdapter(BaseLLMClient):
    """Gemini adapter with credential-pool failover."""

    def __init__(
        self,
        model: str,
        pool: CredentialPool,
        timeout_s: float = 300,
        preferred_index: int | None = None,
        transport: GeminiTransport | None = None,
        on_auth_error: AuthRemediationHook | None = None,
    ) -> None:
        self._model = model
        self._pool = pool
        self._timeout_s = timeout_s
        self._preferred_index = preferred_index
        self._transport = transport or genai_transport
        self._on_auth_error = on_auth_error

    async def send(self, messages: list[ChatMessage]) -> LLMResponse:
        contents, system = to_gemini_contents(messages)
        state = RouterState(
            current_key_index=self._pool.start_index(self._preferred_index),
            pool_size=len(self._pool),
        )
        failed_over = False
        attempt = 0

        while True:
            attempt += 1
            set_backend_context(PROVIDER, attempt)
            logger.info(
                "Sending %d message(s) to %s using key #%d (attempt %d)",
                len(contents), self._model, state.current_key_index + 1, attempt,
            )
            t0 = time.monotonic()
            try:
                resp = await asyncio.wait_for(
                    self._transport(self._pool[state.current_key_index], self._model, contents, system),
                    timeout=self._timeout_s,
                )
            except Exception as exc:
                error = to_provider_error(exc, PROVIDER)
                if error.kind is ErrorKind.RATE_LIMIT and len(self._pool) >= 2 and not failed_over:
                    failed_over = True
                    previous = state.current_key_index
                    state.advance()
                    logger.warning(
                        "Rate limit on key #%d, failing over to key #%d",
                        previous + 1, state.current_key_index + 1,
                    )
                    continue
                if error.kind is ErrorKind.AUTH and self._on_auth_error is not None:
                    self._on_auth_error()
                logger.error("Gemini request failed (%s): %s", error.kind.value, exc)
                if error is exc:
                    raise
                raise error from exc
            break

        latency = int((time.monotonic() - t0) * 1000)
        text = _response_text(resp)
        if not text.strip():
            raise EmptyResponseError(PROVIDER)

        usage = getattr(resp, "usage_metadata", None)
        logger.info("Received %d chars from %s in %d ms", len(text), self._model, latency)
        return LLMResponse(
            content=text,
            input_tokens=getattr(usage, "prompt_token_count", None) if usage else None,
            output_tokens=getattr(usage, "candidates_token_count", None) if usage else None,
            total_tokens=getattr(usage, "total_token_count", None) if usage else None,
            model=self._model,
            provider=PROVIDER,
            latency_ms=latency,
            credential_index=state.current_key_index,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return PROVIDER

    @property
    def model(self) -> str:
        return self._model
