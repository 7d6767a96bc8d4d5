# src/content/builder.py — v2
"""OrderedContentBuilder — assemble local inputs into an ordered source list.

Assembly order is fixed:
  0. Conversation history marker (resumed conversations only)
  1. Role/task definitions, in the order their names were given
  2. Prompt text (placeholder when only audio is given)
  3. Audio recording
  4. Clipboard (image first, text fallback)
  5. Piped stdin
  6. File/directory arguments, directories expanded in sorted order

An empty result (NoInputError), a failed recording (AudioRecordingError) and
an image argument with an unknown extension (UnsupportedMediaError) abort;
every other input problem is logged and skipped.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from askpipe.content.collectors import encode_png_base64
from askpipe.content.errors import (
    AudioRecordingError,
    ClipboardUnavailableError,
    NoInputError,
    UnsupportedMediaError,
)
from askpipe.content.models import (
    AudioRecordingSource,
    BinaryPart,
    ClipboardImageSource,
    ClipboardTextSource,
    ContentPart,
    ContentSource,
    ConversationHistorySource,
    ImageFileSource,
    PromptSource,
    ResourceInfo,
    RoleOrTaskSource,
    StdinTextSource,
    TextFileSource,
    TextPart,
)
from askpipe.content.sniffing import (
    classify_file,
    collect_files_recursive,
    decode_text,
    media_mime_type,
    read_media_as_base64,
)

if TYPE_CHECKING:
    from askpipe.content.collectors import BaseAudioRecorder, BaseClipboard
    from askpipe.content.roles import RoleLibrary
    from askpipe.conversation.models import Conversation

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_PROMPT = "Your instructions are in prompt.opus"

# Errors a platform clipboard backend may raise while probing for an image.
_CLIPBOARD_PROBE_ERRORS = (ClipboardUnavailableError, OSError, NotImplementedError, RuntimeError, ValueError)


@dataclass(frozen=True)
class FileArgument:
    """One -f or -i argument; media arguments skip content sniffing."""

    path: str
    media: bool = False

    @classmethod
    def image(cls, path: str) -> FileArgument:
        return cls(path, media=True)


@dataclass
class InputOptions:
    """Snapshot of the input-related command line options."""

    prompt: str = ""
    use_clipboard: bool = False
    record_audio: bool = False
    files: list[FileArgument | str] = field(default_factory=list)
    roles: list[str] = field(default_factory=list)
    stdin_piped: bool = False
    clipboard_output: bool = False


def _read_stdin() -> str:
    data = sys.stdin.buffer.read()
    return data.decode("utf-8", errors="replace")


class OrderedContentBuilder:
    """Build the ordered ContentSource list for one request."""

    def __init__(
        self,
        roles: RoleLibrary | None = None,
        clipboard: BaseClipboard | None = None,
        recorder: BaseAudioRecorder | None = None,
        stdin_reader: Callable[[], str] | None = None,
    ) -> None:
        self._roles = roles
        self._clipboard = clipboard
        self._recorder = recorder
        self._stdin_reader = stdin_reader or _read_stdin

    async def build(
        self,
        options: InputOptions,
        history: Conversation | None = None,
    ) -> list[ContentSource]:
        """Assemble sources in the fixed priority order.

        Raises:
            NoInputError: If nothing besides history was collected.
            AudioRecordingError: If audio was requested and recording failed.
        """
        sources: list[ContentSource] = []

        if history is not None and history.messages:
            sources.append(
                ConversationHistorySource(message_count=len(history.messages))
            )

        sources.extend(self._collect_roles(options.roles))

        if options.prompt.strip():
            logger.info("Adding command line prompt (%d chars)", len(options.prompt))
            sources.append(PromptSource(text=options.prompt))
        elif options.record_audio:
            logger.info("Using default audio prompt: %s", DEFAULT_AUDIO_PROMPT)
            sources.append(PromptSource(text=DEFAULT_AUDIO_PROMPT))

        if options.record_audio:
            sources.append(await self._collect_audio(options))

        if options.use_clipboard:
            clip = self._collect_clipboard()
            if clip is not None:
                sources.append(clip)

        if options.stdin_piped:
            stdin_source = self._collect_stdin()
            if stdin_source is not None:
                sources.append(stdin_source)

        sources.extend(await self._collect_files(options.files))

        if not any(s.kind != "conversation_history" for s in sources):
            raise NoInputError()

        logger.info("Assembled %d content source(s)", len(sources))
        return sources

    # --- steps ---

    def _collect_roles(self, names: list[str]) -> list[ContentSource]:
        if not names:
            return []
        if self._roles is None:
            logger.warning("Role/task names given but no role library configured: %s", names)
            return []
        return [
            RoleOrTaskSource(name=item.name, body=item.body, is_task=item.is_task)
            for item in self._roles.load_all(names)
        ]

    async def _collect_audio(self, options: InputOptions) -> AudioRecordingSource:
        if self._recorder is None:
            raise AudioRecordingError("Audio recording requested but no recorder is available")
        try:
            path = await self._recorder.record()
            mime_type = media_mime_type(path)
            data = await asyncio.to_thread(read_media_as_base64, path)
        except (AudioRecordingError, UnsupportedMediaError, OSError) as exc:
            if options.clipboard_output and self._clipboard is not None:
                try:
                    self._clipboard.clear()
                except ClipboardUnavailableError as clear_exc:
                    logger.warning("Could not clear clipboard: %s", clear_exc)
            if isinstance(exc, AudioRecordingError):
                raise
            raise AudioRecordingError(f"Audio recording failed: {exc}") from exc
        logger.info("Adding audio recording: %s", path)
        return AudioRecordingSource(path=str(path), mime_type=mime_type, data=data)

    def _collect_clipboard(self) -> ContentSource | None:
        if self._clipboard is None:
            logger.warning("Clipboard input requested but no clipboard is available")
            return None

        try:
            has_image = self._clipboard.has_image()
        except _CLIPBOARD_PROBE_ERRORS as exc:
            logger.debug("Clipboard image probe failed, falling back to text: %s", exc)
            return self._clipboard_text()

        if has_image:
            try:
                png = self._clipboard.read_image_png()
            except _CLIPBOARD_PROBE_ERRORS as exc:
                logger.warning("Failed to read clipboard image, trying text: %s", exc)
                return self._clipboard_text()
            logger.info("Adding clipboard image (%d bytes)", len(png))
            return ClipboardImageSource(data=encode_png_base64(png))

        return self._clipboard_text()

    def _clipboard_text(self) -> ContentSource | None:
        try:
            text = self._clipboard.read_text()  # type: ignore[union-attr]
        except ClipboardUnavailableError as exc:
            logger.warning("%s", exc)
            return None
        if not text.strip():
            logger.info("Clipboard text is empty, skipping")
            return None
        logger.info("Adding clipboard text (%d chars)", len(text))
        return ClipboardTextSource(text=text)

    def _collect_stdin(self) -> ContentSource | None:
        try:
            text = self._stdin_reader()
        except OSError as exc:
            logger.warning("Failed to read stdin: %s", exc)
            return None
        if not text.strip():
            return None
        logger.info("Adding stdin text (%d chars)", len(text))
        return StdinTextSource(text=text)

    async def _collect_files(self, arguments: list[FileArgument | str]) -> list[ContentSource]:
        """Expand arguments in order.

        Raises:
            UnsupportedMediaError: If an image argument has an unknown extension.
        """
        targets: list[tuple[Path, bool]] = []
        for arg in arguments:
            if isinstance(arg, str):
                arg = FileArgument(arg)
            expanded = collect_files_recursive(arg.path)
            if not expanded:
                logger.warning("No readable files found for '%s'", arg.path)
            for path in expanded:
                if arg.media:
                    # Validated up front so a bad extension fails before any read.
                    media_mime_type(path)
                targets.append((path, arg.media))

        if not targets:
            return []

        # Reads run concurrently; gather preserves argument order.
        loaded = await asyncio.gather(
            *(asyncio.to_thread(_load_file, path, media) for path, media in targets)
        )
        return [s for s in loaded if s is not None]


def _load_file(path: Path, media: bool = False) -> ContentSource | None:
    try:
        kind = "media" if media else classify_file(path)
        if kind == "media":
            return ImageFileSource(
                path=str(path),
                mime_type=media_mime_type(path),
                data=read_media_as_base64(path),
            )
        if kind == "binary":
            logger.warning("Skipping binary file: %s", path)
            return None
        text = decode_text(path.read_bytes())
    except (OSError, UnsupportedMediaError) as exc:
        logger.warning("Failed to read file '%s': %s", path, exc)
        return None

    if not text.strip():
        logger.info("Skipping empty text file: %s", path)
        return None
    logger.info("Adding text file %s (%d chars)", path, len(text))
    return TextFileSource(path=str(path), text=text)


# === PROJECTIONS ===


def _with_trailing_newline(text: str) -> str:
    return text if text.endswith("\n") else f"{text}\n"


def to_content_part(source: ContentSource) -> ContentPart | None:
    """Project one source onto its provider-facing part (None for history)."""
    if isinstance(source, PromptSource):
        return TextPart(text=f"### Prompt\n\n{source.text}")
    if isinstance(source, RoleOrTaskSource):
        header = f"### {'Task' if source.is_task else 'Role'}: {source.name}"
        return TextPart(text=f"{header}\n{_with_trailing_newline(source.body)}")
    if isinstance(source, TextFileSource):
        return TextPart(text=f"### Content from: {source.path}\n\n{_with_trailing_newline(source.text)}")
    if isinstance(source, ClipboardTextSource):
        return TextPart(text=f"### Content from: clipboard\n\n{source.text}")
    if isinstance(source, StdinTextSource):
        return TextPart(text=f"### Content from: stdin\n\n{source.text}")
    if isinstance(source, (ImageFileSource, ClipboardImageSource, AudioRecordingSource)):
        return BinaryPart(mime_type=source.mime_type, data=source.data)
    return None


def to_content_parts(sources: list[ContentSource]) -> list[ContentPart]:
    """Project sources onto parts, one per source, history excluded."""
    parts: list[ContentPart] = []
    for index, source in enumerate(sources, start=1):
        part = to_content_part(source)
        if part is None:
            continue
        if isinstance(part, TextPart):
            logger.debug("[%d] %s: %d characters", index, source.kind, len(part.text))
        else:
            logger.debug("[%d] %s: %s, %d base64 chars", index, source.kind, part.mime_type, len(part.data))
        parts.append(part)
    return parts


def resources_for(sources: list[ContentSource]) -> list[ResourceInfo]:
    """Audit records for retained sources (prompt and history excluded)."""
    resources: list[ResourceInfo] = []
    for source in sources:
        if isinstance(source, ImageFileSource):
            resources.append(ResourceInfo(resource_type="Image", path=source.path))
        elif isinstance(source, AudioRecordingSource):
            resources.append(ResourceInfo(resource_type="Audio", path=source.path))
        elif isinstance(source, TextFileSource):
            resources.append(ResourceInfo(resource_type="TextFile", path=source.path))
        elif isinstance(source, ClipboardTextSource):
            resources.append(ResourceInfo(resource_type="ClipboardText"))
        elif isinstance(source, ClipboardImageSource):
            resources.append(ResourceInfo(resource_type="ClipboardImage"))
        elif isinstance(source, StdinTextSource):
            resources.append(ResourceInfo(resource_type="Stdin"))
        elif isinstance(source, RoleOrTaskSource):
            resources.append(
                ResourceInfo(resource_type="Task" if source.is_task else "Role", path=source.name)
            )
    return resources


def _binary_label(source: ContentSource) -> str | None:
    if isinstance(source, ImageFileSource):
        return f"[Image: {source.path}]"
    if isinstance(source, ClipboardImageSource):
        return "[Clipboard image]"
    if isinstance(source, AudioRecordingSource):
        return f"[Audio: {source.path}]"
    return None


def message_text(sources: list[ContentSource]) -> str:
    """Plain text stored as the User message content.

    Binary inputs are not stored; each is named by a bracketed label so the
    turn is never blank when replayed as history.
    """
    texts: list[str] = []
    for source in sources:
        if isinstance(source, PromptSource):
            texts.append(source.text)
        elif isinstance(source, RoleOrTaskSource):
            texts.append(source.body)
        elif isinstance(source, (TextFileSource, ClipboardTextSource, StdinTextSource)):
            texts.append(source.text)
        else:
            label = _binary_label(source)
            if label is not None:
                texts.append(label)
    return "\n".join(texts)


def prompt_text(sources: list[ContentSource]) -> str | None:
    """The prompt the user typed (or the audio placeholder), if any."""
    for source in sources:
        if isinstance(source, PromptSource):
            return source.text
    return None
