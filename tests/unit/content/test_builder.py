# tests/unit/content/test_builder.py — v2
"""Tests for content/builder.py — ordered assembly and projections."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from askpipe.content.builder import (
    DEFAULT_AUDIO_PROMPT,
    FileArgument,
    InputOptions,
    OrderedContentBuilder,
    message_text,
    prompt_text,
    resources_for,
    to_content_part,
    to_content_parts,
)
from askpipe.content.errors import AudioRecordingError, NoInputError, UnsupportedMediaError
from askpipe.content.models import (
    AudioRecordingSource,
    BinaryPart,
    ClipboardImageSource,
    ClipboardTextSource,
    ConversationHistorySource,
    ImageFileSource,
    PromptSource,
    RoleOrTaskSource,
    StdinTextSource,
    TextFileSource,
    TextPart,
)
from askpipe.content.roles import RoleLibrary
from askpipe.conversation.models import Conversation


@pytest.fixture
def role_library(tmp_path: Path) -> RoleLibrary:
    roles = tmp_path / "roles"
    tasks = tmp_path / "tasks"
    roles.mkdir()
    tasks.mkdir()
    (roles / "reviewer.md").write_text("You review code.")
    (tasks / "summarize.md").write_text("Summarize the input.\n")
    return RoleLibrary(roles, tasks)


def _kinds(sources) -> list[str]:
    return [s.kind for s in sources]


class TestBuildOrdering:
    @pytest.mark.asyncio
    async def test_prompt_only(self):
        builder = OrderedContentBuilder(stdin_reader=lambda: "")
        sources = await builder.build(InputOptions(prompt="hello"))
        assert sources == [PromptSource(text="hello")]

    @pytest.mark.asyncio
    async def test_full_order(self, tmp_path: Path, role_library, clipboard_factory, recorder_factory):
        audio = tmp_path / "prompt.opus"
        audio.write_bytes(b"OggS-audio")
        notes = tmp_path / "notes.txt"
        notes.write_text("file body")
        builder = OrderedContentBuilder(
            roles=role_library,
            clipboard=clipboard_factory(text="clip text"),
            recorder=recorder_factory(path=audio),
            stdin_reader=lambda: "piped",
        )
        options = InputOptions(
            prompt="do it",
            use_clipboard=True,
            record_audio=True,
            files=[str(notes)],
            roles=["summarize", "reviewer"],
            stdin_piped=True,
        )

        sources = await builder.build(options)

        assert _kinds(sources) == [
            "role_or_task",
            "role_or_task",
            "prompt",
            "audio_recording",
            "clipboard_text",
            "stdin_text",
            "text_file",
        ]
        assert [s.name for s in sources[:2]] == ["summarize", "reviewer"]
        assert sources[0].is_task is True
        assert sources[1].is_task is False

    @pytest.mark.asyncio
    async def test_history_always_first(self, conversation_factory, role_library):
        history = conversation_factory(turns=1)
        builder = OrderedContentBuilder(roles=role_library, stdin_reader=lambda: "")
        sources = await builder.build(InputOptions(prompt="next", roles=["reviewer"]), history=history)
        assert isinstance(sources[0], ConversationHistorySource)
        assert sources[0].message_count == 2
        assert sum(1 for s in sources if s.kind == "conversation_history") == 1
        assert _kinds(sources[1:]) == ["role_or_task", "prompt"]

    @pytest.mark.asyncio
    async def test_empty_history_adds_no_marker(self):
        builder = OrderedContentBuilder()
        sources = await builder.build(InputOptions(prompt="hi"), history=Conversation())
        assert _kinds(sources) == ["prompt"]

    @pytest.mark.asyncio
    async def test_files_keep_argument_order_and_expand_dirs_sorted(self, tmp_path: Path):
        d = tmp_path / "dir"
        d.mkdir()
        (d / "b.txt").write_text("B")
        (d / "a.txt").write_text("A")
        single = tmp_path / "first.txt"
        single.write_text("F")
        builder = OrderedContentBuilder()
        sources = await builder.build(InputOptions(files=[str(single), str(d)]))
        assert [Path(s.path).name for s in sources] == ["first.txt", "a.txt", "b.txt"]

    @pytest.mark.asyncio
    async def test_media_file_becomes_image_source(self, tmp_path: Path):
        img = tmp_path / "pic.png"
        img.write_bytes(b"\x89PNG\r\n")
        sources = await OrderedContentBuilder().build(InputOptions(files=[str(img)]))
        assert isinstance(sources[0], ImageFileSource)
        assert sources[0].mime_type == "image/png"
        assert base64.b64decode(sources[0].data) == b"\x89PNG\r\n"

    @pytest.mark.asyncio
    async def test_image_argument_keeps_position_among_files(self, tmp_path: Path):
        first = tmp_path / "first.txt"
        first.write_text("F")
        img = tmp_path / "shot.jpg"
        img.write_bytes(b"\xff\xd8\xff")
        last = tmp_path / "last.txt"
        last.write_text("L")
        sources = await OrderedContentBuilder().build(
            InputOptions(files=[FileArgument(str(first)), FileArgument.image(str(img)), str(last)])
        )
        assert _kinds(sources) == ["text_file", "image_file", "text_file"]
        assert sources[1].mime_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_image_argument_with_unknown_extension_is_fatal(self, tmp_path: Path):
        bmp = tmp_path / "shot.bmp"
        bmp.write_text("plain enough to pass as text")
        with pytest.raises(UnsupportedMediaError, match="bmp"):
            await OrderedContentBuilder().build(
                InputOptions(prompt="x", files=[FileArgument.image(str(bmp))])
            )

    @pytest.mark.asyncio
    async def test_same_file_via_file_flag_is_sniffed(self, tmp_path: Path):
        bmp = tmp_path / "notes.bmp"
        bmp.write_text("plain enough to pass as text")
        sources = await OrderedContentBuilder().build(
            InputOptions(prompt="x", files=[FileArgument(str(bmp))])
        )
        assert _kinds(sources) == ["prompt", "text_file"]


class TestBuildSkipsAndErrors:
    @pytest.mark.asyncio
    async def test_no_input_raises(self):
        with pytest.raises(NoInputError):
            await OrderedContentBuilder().build(InputOptions())

    @pytest.mark.asyncio
    async def test_history_alone_is_no_input(self, conversation_factory):
        with pytest.raises(NoInputError):
            await OrderedContentBuilder().build(InputOptions(prompt="   "), history=conversation_factory())

    @pytest.mark.asyncio
    async def test_binary_and_empty_files_skipped(self, tmp_path: Path):
        (tmp_path / "blob.bin").write_bytes(b"\x00\x01\x02")
        (tmp_path / "empty.txt").write_text("   \n")
        (tmp_path / "ok.txt").write_text("content")
        sources = await OrderedContentBuilder().build(InputOptions(files=[str(tmp_path)]))
        assert [Path(s.path).name for s in sources] == ["ok.txt"]

    @pytest.mark.asyncio
    async def test_missing_file_skipped(self, tmp_path: Path):
        sources = await OrderedContentBuilder().build(
            InputOptions(prompt="p", files=[str(tmp_path / "missing.txt")])
        )
        assert _kinds(sources) == ["prompt"]

    @pytest.mark.asyncio
    async def test_missing_role_skipped(self, role_library):
        builder = OrderedContentBuilder(roles=role_library)
        sources = await builder.build(InputOptions(prompt="p", roles=["nope", "reviewer"]))
        assert [s.name for s in sources if s.kind == "role_or_task"] == ["reviewer"]

    @pytest.mark.asyncio
    async def test_empty_stdin_skipped(self):
        builder = OrderedContentBuilder(stdin_reader=lambda: "  \n")
        sources = await builder.build(InputOptions(prompt="p", stdin_piped=True))
        assert _kinds(sources) == ["prompt"]

    @pytest.mark.asyncio
    async def test_stdin_alone_is_enough(self):
        builder = OrderedContentBuilder(stdin_reader=lambda: "log line")
        sources = await builder.build(InputOptions(stdin_piped=True))
        assert sources == [StdinTextSource(text="log line")]


class TestClipboard:
    @pytest.mark.asyncio
    async def test_image_preferred(self, clipboard_factory):
        clip = clipboard_factory(text="ignored", image_png=b"png-bytes")
        sources = await OrderedContentBuilder(clipboard=clip).build(InputOptions(use_clipboard=True))
        assert isinstance(sources[0], ClipboardImageSource)
        assert base64.b64decode(sources[0].data) == b"png-bytes"

    @pytest.mark.asyncio
    async def test_probe_error_falls_back_to_text(self, clipboard_factory):
        clip = clipboard_factory(text="words", probe_error=OSError("no display"))
        sources = await OrderedContentBuilder(clipboard=clip).build(InputOptions(use_clipboard=True))
        assert sources == [ClipboardTextSource(text="words")]

    @pytest.mark.asyncio
    async def test_empty_clipboard_skipped(self, clipboard_factory):
        clip = clipboard_factory(text="")
        sources = await OrderedContentBuilder(clipboard=clip).build(
            InputOptions(prompt="p", use_clipboard=True)
        )
        assert _kinds(sources) == ["prompt"]


class TestAudio:
    @pytest.mark.asyncio
    async def test_placeholder_prompt_when_only_audio(self, tmp_path: Path, recorder_factory):
        audio = tmp_path / "prompt.opus"
        audio.write_bytes(b"OggS")
        builder = OrderedContentBuilder(recorder=recorder_factory(path=audio))
        sources = await builder.build(InputOptions(record_audio=True))
        assert sources[0] == PromptSource(text=DEFAULT_AUDIO_PROMPT)
        assert sources[1].kind == "audio_recording"
        assert sources[1].mime_type == "audio/ogg"

    @pytest.mark.asyncio
    async def test_recording_failure_is_fatal_and_clears_clipboard(self, recorder_factory, clipboard_factory):
        clip = clipboard_factory(text="stale answer")
        builder = OrderedContentBuilder(clipboard=clip, recorder=recorder_factory(fail=True))
        with pytest.raises(AudioRecordingError):
            await builder.build(InputOptions(record_audio=True, clipboard_output=True))
        assert clip.written == [""]

    @pytest.mark.asyncio
    async def test_recording_failure_keeps_clipboard_without_clipboard_output(
        self, recorder_factory, clipboard_factory
    ):
        clip = clipboard_factory(text="keep")
        builder = OrderedContentBuilder(clipboard=clip, recorder=recorder_factory(fail=True))
        with pytest.raises(AudioRecordingError):
            await builder.build(InputOptions(prompt="p", record_audio=True))
        assert clip.written == []


class TestProjections:
    def test_headers(self):
        assert to_content_part(PromptSource(text="hi")) == TextPart(text="### Prompt\n\nhi")
        assert to_content_part(RoleOrTaskSource(name="r", body="be nice")) == TextPart(
            text="### Role: r\nbe nice\n"
        )
        assert to_content_part(RoleOrTaskSource(name="t", body="do\n", is_task=True)) == TextPart(
            text="### Task: t\ndo\n"
        )
        assert to_content_part(TextFileSource(path="a.txt", text="x")) == TextPart(
            text="### Content from: a.txt\n\nx\n"
        )
        assert to_content_part(ClipboardTextSource(text="c")) == TextPart(
            text="### Content from: clipboard\n\nc"
        )
        assert to_content_part(StdinTextSource(text="s")) == TextPart(
            text="### Content from: stdin\n\ns"
        )

    def test_binary_part(self):
        part = to_content_part(ImageFileSource(path="p.png", mime_type="image/png", data="QUJD"))
        assert part == BinaryPart(mime_type="image/png", data="QUJD")

    def test_history_has_no_part(self):
        sources = [ConversationHistorySource(message_count=2), PromptSource(text="next")]
        assert to_content_part(sources[0]) is None
        assert len(to_content_parts(sources)) == 1

    def test_resources_exclude_prompt_and_history(self):
        sources = [
            ConversationHistorySource(message_count=2),
            RoleOrTaskSource(name="t", body="b", is_task=True),
            PromptSource(text="p"),
            ImageFileSource(path="i.png", mime_type="image/png", data=""),
            ClipboardTextSource(text="c"),
            StdinTextSource(text="s"),
            TextFileSource(path="f.txt", text="f"),
        ]
        resources = resources_for(sources)
        assert [(r.resource_type, r.path) for r in resources] == [
            ("Task", "t"),
            ("Image", "i.png"),
            ("ClipboardText", None),
            ("Stdin", None),
            ("TextFile", "f.txt"),
        ]

    def test_message_text_labels_binaries(self):
        sources = [
            PromptSource(text="question"),
            ImageFileSource(path="i.png", mime_type="image/png", data="QUJD"),
            StdinTextSource(text="data"),
        ]
        assert message_text(sources) == "question\n[Image: i.png]\ndata"

    def test_message_text_never_blank_for_binary_only_input(self):
        sources = [
            ClipboardImageSource(data="QUJD"),
            AudioRecordingSource(path="rec.opus", mime_type="audio/ogg", data="QUJD"),
        ]
        assert message_text(sources) == "[Clipboard image]\n[Audio: rec.opus]"

    def test_prompt_text(self):
        sources = [RoleOrTaskSource(name="coder", body="You are a senior engineer."), PromptSource(text="fix it")]
        assert prompt_text(sources) == "fix it"
        assert prompt_text([StdinTextSource(text="log")]) is None
