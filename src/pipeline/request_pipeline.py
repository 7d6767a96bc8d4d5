# src/pipeline/request_pipeline.py — v2
"""Request pipeline — one prompt/response round trip.

Chains:
  1. Conversation resolution (new, latest, by reference, or unsaved)
  2. Ordered content assembly
  3. History projection and context-window truncation
  4. Backend routing and send
  5. Append User + Assistant messages
  6. Persistence

A backend failure leaves the conversation untouched. A persistence failure
does not discard the response; it is reported on the result instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable

from askpipe.content.builder import (
    InputOptions,
    message_text,
    prompt_text,
    resources_for,
    to_content_parts,
)
from askpipe.content.models import ContentSource
from askpipe.conversation.errors import ConversationStorageError
from askpipe.conversation.models import Conversation, Message, TokenUsage, utc_now
from askpipe.llm.models import ChatMessage, LLMResponse
from askpipe.llm.router import route
from askpipe.logging.context import set_conversation_context

if TYPE_CHECKING:
    from pathlib import Path

    from askpipe.config.settings import Settings
    from askpipe.content.builder import OrderedContentBuilder
    from askpipe.conversation.store import ConversationStore
    from askpipe.llm.base_client import BaseLLMClient
    from askpipe.llm.credentials import AuthRemediationHook

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., "BaseLLMClient"]


class PersistenceError(Exception):
    """The response was produced but the conversation could not be saved."""


@dataclass
class PipelineRequest:
    """Everything one invocation asks for."""

    options: InputOptions = field(default_factory=InputOptions)
    model_spec: str | None = None
    resume_ref: str | None = None
    resume_latest: bool = False
    save: bool = True


@dataclass
class PipelineResult:
    """Outcome of a successful backend round trip."""

    response: LLMResponse
    conversation: Conversation
    sources: list[ContentSource]
    persisted: bool = False
    markdown_path: Path | None = None
    persistence_error: PersistenceError | None = None


def history_to_messages(conversation: Conversation) -> list[ChatMessage]:
    """Project stored turns onto chat messages, one text part each.

    Blank turns are dropped; providers reject empty text parts.
    """
    return [
        ChatMessage.text("user" if m.role == "User" else "assistant", m.content)
        for m in conversation.messages
        if m.content.strip()
    ]


class RequestPipeline:
    """Glue between content builder, router and conversation store.

    Usage:
        pipeline = RequestPipeline(settings, store, builder)
        result = await pipeline.run(PipelineRequest(options=InputOptions(prompt="hi")))
    """

    def __init__(
        self,
        settings: Settings,
        store: ConversationStore,
        builder: OrderedContentBuilder,
        client_factory: ClientFactory | None = None,
        on_auth_error: AuthRemediationHook | None = None,
        client_kwargs: dict[str, Any] | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._builder = builder
        self._client_factory = client_factory or route
        self._on_auth_error = on_auth_error
        self._client_kwargs = client_kwargs or {}

    def resolve_conversation(self, request: PipelineRequest) -> Conversation:
        """Pick the conversation this request continues, or start a new one.

        Raises:
            ConversationNotFoundError: If resume_ref matches nothing.
        """
        if request.resume_ref:
            conversation = self._store.load(request.resume_ref)
            logger.info(
                "Resuming conversation %s (%d messages)",
                conversation.id, len(conversation.messages),
            )
            return conversation
        if request.resume_latest:
            latest = self._store.latest()
            if latest is not None:
                logger.info(
                    "Resuming latest conversation %s (%d messages)",
                    latest.id, len(latest.messages),
                )
                return latest
            logger.warning("No previous conversation found, starting a new one")
        return self._store.create()

    async def run(self, request: PipelineRequest) -> PipelineResult:
        """Execute one round trip.

        Raises:
            ConfigurationError: Unknown backend, missing credentials.
            ContentError: No input or failed audio recording.
            ConversationNotFoundError: Unknown resume reference.
            ProviderError: Any backend failure (nothing is appended).
        """
        conversation = self.resolve_conversation(request)
        set_conversation_context(conversation.id)
        model_spec = request.model_spec or conversation.model or self._settings.default_model

        sources = await self._builder.build(request.options, history=conversation)
        started_at = utc_now()

        context = self._store.truncate(conversation, self._settings.context_window_limit)
        messages = history_to_messages(context)
        messages.append(ChatMessage(role="user", parts=to_content_parts(sources)))
        logger.info(
            "Prepared %d message(s) (%d history) for %s",
            len(messages), len(context.messages), model_spec,
        )

        client = self._client_factory(
            model_spec,
            self._settings,
            preferred_index=conversation.credential_index,
            on_auth_error=self._on_auth_error,
            **self._client_kwargs,
        )
        response = await client.send(messages)

        self._append_exchange(conversation, sources, response, started_at)
        conversation.model = model_spec
        if response.credential_index is not None:
            conversation.credential_index = response.credential_index

        result = PipelineResult(response=response, conversation=conversation, sources=sources)
        if not request.save:
            logger.info("Not saving conversation %s (--no-save)", conversation.id)
            return result

        try:
            result.markdown_path = self._store.save(conversation)
            result.persisted = True
        except ConversationStorageError as exc:
            logger.error("Failed to save conversation %s: %s", conversation.id, exc)
            result.persistence_error = PersistenceError(str(exc))
        return result

    @staticmethod
    def _append_exchange(
        conversation: Conversation,
        sources: list[ContentSource],
        response: LLMResponse,
        started_at: datetime,
    ) -> None:
        # Clamp to the last stored timestamp so a skewed clock cannot reorder turns.
        last = conversation.messages[-1].timestamp if conversation.messages else started_at
        user_ts = max(started_at, last)
        conversation.append(Message(
            role="User",
            content=message_text(sources),
            timestamp=user_ts,
            resources=resources_for(sources),
            prompt=prompt_text(sources),
        ))
        conversation.append(Message(
            role="Assistant",
            content=response.content,
            timestamp=max(utc_now(), user_ts),
            usage=TokenUsage(
                prompt_tokens=response.input_tokens,
                completion_tokens=response.output_tokens,
                total_tokens=response.total_tokens,
            ),
        ))
