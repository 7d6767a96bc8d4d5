# src/content/models.py — v2
"""Content types: ContentSource variants, ContentPart, ResourceInfo.

A ContentSource is one retained input in the order it was assembled. A
ContentPart is its provider-facing projection. ResourceInfo is the audit
record kept on the persisted User message.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


# === CONTENT SOURCES ===


class PromptSource(BaseModel):
    """Literal prompt text typed on the command line."""

    kind: Literal["prompt"] = "prompt"
    text: str


class RoleOrTaskSource(BaseModel):
    """Role or task definition loaded from the askpipe home."""

    kind: Literal["role_or_task"] = "role_or_task"
    name: str
    body: str
    is_task: bool = False


class TextFileSource(BaseModel):
    """Decoded content of a text file argument."""

    kind: Literal["text_file"] = "text_file"
    path: str
    text: str


class ImageFileSource(BaseModel):
    """Media file argument (image, pdf, audio or video), already base64-encoded."""

    kind: Literal["image_file"] = "image_file"
    path: str
    mime_type: str
    data: str


class ClipboardTextSource(BaseModel):
    kind: Literal["clipboard_text"] = "clipboard_text"
    text: str


class ClipboardImageSource(BaseModel):
    kind: Literal["clipboard_image"] = "clipboard_image"
    mime_type: str = "image/png"
    data: str


class StdinTextSource(BaseModel):
    kind: Literal["stdin_text"] = "stdin_text"
    text: str


class AudioRecordingSource(BaseModel):
    """Microphone recording captured for this request."""

    kind: Literal["audio_recording"] = "audio_recording"
    path: str
    mime_type: str
    data: str


class ConversationHistorySource(BaseModel):
    """Marker for prior turns; folded into the message list, never a part."""

    kind: Literal["conversation_history"] = "conversation_history"
    message_count: int = 0


ContentSource = Annotated[
    Union[
        PromptSource,
        RoleOrTaskSource,
        TextFileSource,
        ImageFileSource,
        ClipboardTextSource,
        ClipboardImageSource,
        StdinTextSource,
        AudioRecordingSource,
        ConversationHistorySource,
    ],
    Field(discriminator="kind"),
]


# === CONTENT PARTS ===


class TextPart(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class BinaryPart(BaseModel):
    kind: Literal["binary"] = "binary"
    mime_type: str
    data: str  # base64


ContentPart = Annotated[Union[TextPart, BinaryPart], Field(discriminator="kind")]


# === RESOURCES ===

ResourceType = Literal[
    "Image", "Audio", "TextFile", "ClipboardText", "ClipboardImage", "Stdin", "Role", "Task",
]


class ResourceInfo(BaseModel):
    """Audit metadata for one retained input source."""

    resource_type: ResourceType
    path: str | None = None

    def label(self) -> str:
        """Short human-readable label for markdown rendering."""
        names = {
            "Image": "Image",
            "Audio": "Audio",
            "TextFile": "File",
            "ClipboardText": "Clipboard text",
            "ClipboardImage": "Clipboard image",
            "Stdin": "Stdin input",
            "Role": "Role",
            "Task": "Task",
        }
        name = names[self.resource_type]
        if self.path and self.resource_type not in ("ClipboardText", "ClipboardImage", "Stdin"):
            return f"{name}: {self.path}"
        return name
