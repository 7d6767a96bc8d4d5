# src/conversation/store.py — v2
"""ConversationStore — JSON records plus markdown twins on the local filesystem.

Layout under the askpipe home:
    conversations/<id>.json      canonical record (authoritative)
    outputs/<id8>_<slug>.md      rendering, regenerated on every save

The JSON record is always written first and atomically, so a rendering is
never newer than the state it was produced from.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from askpipe.conversation.errors import ConversationNotFoundError, ConversationStorageError
from askpipe.conversation.models import Conversation, ConversationSummary
from askpipe.conversation.render import markdown_filename, render_markdown

logger = logging.getLogger(__name__)

DEFAULT_KEEP_MESSAGES = 20


def truncate_conversation(
    conversation: Conversation,
    max_chars: int,
    keep_messages: int = DEFAULT_KEEP_MESSAGES,
) -> Conversation:
    """Return a copy trimmed from the head to fit max_chars.

    The most recent keep_messages messages are never dropped, even if they
    alone exceed the budget.
    """
    current = conversation.estimate_size()
    if current <= max_chars:
        return conversation.model_copy(deep=True)

    logger.info(
        "Conversation too long (%d chars > %d), truncating to fit context window",
        current, max_chars,
    )
    trimmed = conversation.model_copy(deep=True)
    messages = trimmed.messages

    while trimmed.estimate_size() > max_chars and len(messages) > keep_messages:
        messages.pop(0)
        logger.debug("Removed oldest message to fit context window")

    if trimmed.estimate_size() > max_chars:
        logger.warning(
            "Conversation still over budget (%d chars) at the %d-message retention floor",
            trimmed.estimate_size(), keep_messages,
        )

    return trimmed


def _write_atomic(path: Path, content: str) -> None:
    """Write text via a temp file in the same directory and os.replace()."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class ConversationStore:
    """Create, persist and retrieve conversations."""

    def __init__(
        self,
        conversations_dir: Path,
        outputs_dir: Path,
        keep_messages: int = DEFAULT_KEEP_MESSAGES,
    ) -> None:
        self._conversations_dir = Path(conversations_dir).expanduser()
        self._outputs_dir = Path(outputs_dir).expanduser()
        self._keep_messages = keep_messages

    @property
    def conversations_dir(self) -> Path:
        return self._conversations_dir

    def create(self, model: str | None = None, credential_index: int | None = None) -> Conversation:
        """Fresh conversation with a new UUID and no messages (not persisted)."""
        conversation = Conversation(model=model, credential_index=credential_index)
        logger.info("Starting new conversation %s", conversation.id)
        return conversation

    def record_path(self, conversation_id: str) -> Path:
        return self._conversations_dir / f"{conversation_id}.json"

    def markdown_path(self, conversation: Conversation) -> Path:
        return self._outputs_dir / markdown_filename(conversation)

    # --- writes ---

    def save(self, conversation: Conversation) -> Path:
        """Write the canonical record, then regenerate the markdown rendering.

        Returns:
            Path of the markdown rendering.

        Raises:
            ConversationStorageError: If either file cannot be written.
        """
        record = self.record_path(conversation.id)
        try:
            self._conversations_dir.mkdir(parents=True, exist_ok=True)
            _write_atomic(record, conversation.model_dump_json(indent=2))
        except OSError as exc:
            raise ConversationStorageError(
                f"Failed to write conversation record {record}: {exc}"
            ) from exc
        logger.debug("Saved conversation to %s", record)

        md_path = self.markdown_path(conversation)
        try:
            self._outputs_dir.mkdir(parents=True, exist_ok=True)
            _write_atomic(md_path, render_markdown(conversation))
        except OSError as exc:
            raise ConversationStorageError(
                f"Conversation saved but markdown rendering failed at {md_path}: {exc}"
            ) from exc
        logger.debug("Saved markdown to %s", md_path)
        return md_path

    # --- reads ---

    def _read(self, path: Path) -> Conversation:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Conversation(**data)

    def _iter_records(self) -> list[Conversation]:
        """Load every readable record; corrupt ones are skipped with a warning."""
        conversations: list[Conversation] = []
        if not self._conversations_dir.is_dir():
            return conversations
        for path in sorted(self._conversations_dir.glob("*.json")):
            try:
                conversations.append(self._read(path))
            except (OSError, json.JSONDecodeError, ValidationError, TypeError) as exc:
                logger.warning("Failed to load conversation from %s: %s", path, exc)
        return conversations

    def load(self, ref: str) -> Conversation:
        """Load by full id, list index ("0" = most recent) or unique id prefix.

        Raises:
            ConversationNotFoundError: If nothing matches or a prefix is ambiguous.
        """
        ref = ref.strip()
        if not ref:
            raise ConversationNotFoundError(ref)

        path = self.record_path(ref)
        if path.is_file():
            try:
                conversation = self._read(path)
            except (OSError, json.JSONDecodeError, ValidationError, TypeError) as exc:
                raise ConversationNotFoundError(ref, f"unreadable record: {exc}") from exc
            logger.debug("Loaded conversation from %s", path)
            return conversation

        if ref.isdigit():
            summaries = self.list()
            index = int(ref)
            if index >= len(summaries):
                raise ConversationNotFoundError(
                    ref, f"index out of range, have {len(summaries)} conversations"
                )
            return self.load(summaries[index].id)

        matches = [c for c in self._iter_records() if c.id.startswith(ref)]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise ConversationNotFoundError(ref, f"prefix is ambiguous ({len(matches)} matches)")
        raise ConversationNotFoundError(ref)

    def latest(self) -> Conversation | None:
        """Most recently updated conversation, or None if there is none."""
        latest: Conversation | None = None
        for conversation in self._iter_records():
            if latest is None or conversation.updated_at > latest.updated_at:
                latest = conversation
        return latest

    def list(self) -> list[ConversationSummary]:
        """Summaries sorted by updated_at, newest first."""
        summaries = [ConversationSummary.from_conversation(c) for c in self._iter_records()]
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries

    def truncate(self, conversation: Conversation, max_chars: int) -> Conversation:
        """Context-window copy of conversation using this store's retention floor."""
        return truncate_conversation(conversation, max_chars, self._keep_messages)
