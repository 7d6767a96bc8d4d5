# src/content/collectors.py — v1
"""Clipboard and audio collaborators consumed by the content builder.

The builder only talks to the abstract interfaces; the default system
implementations import their third-party libraries lazily so that a missing
clipboard backend or ffmpeg binary only matters when the feature is used.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
import sys
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from askpipe.content.errors import AudioRecordingError, ClipboardUnavailableError

logger = logging.getLogger(__name__)


class BaseClipboard(ABC):
    """System clipboard access."""

    @abstractmethod
    def has_image(self) -> bool:
        """Whether the clipboard currently holds an image. May raise."""

    @abstractmethod
    def read_image_png(self) -> bytes:
        """Return the clipboard image encoded as PNG."""

    @abstractmethod
    def read_text(self) -> str:
        """Return clipboard text (empty string when none)."""

    @abstractmethod
    def write_text(self, text: str) -> None:
        """Replace clipboard content with text."""

    def clear(self) -> None:
        """Clear the clipboard so stale content is not mistaken for output."""
        self.write_text("")


class BaseAudioRecorder(ABC):
    """Microphone recorder producing a media file on disk."""

    @abstractmethod
    async def record(self) -> Path:
        """Record until stopped and return the file path.

        Raises:
            AudioRecordingError: If recording fails or produces no file.
        """


class SystemClipboard(BaseClipboard):
    """Clipboard backed by pyperclip (text) and Pillow ImageGrab (images)."""

    def has_image(self) -> bool:
        return self._grab_image() is not None

    def read_image_png(self) -> bytes:
        image = self._grab_image()
        if image is None:
            raise ClipboardUnavailableError("Clipboard does not contain an image")
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        data = buffer.getvalue()
        logger.info("Read clipboard image: %dx%d pixels, %d PNG bytes", image.width, image.height, len(data))
        return data

    def read_text(self) -> str:
        import pyperclip

        try:
            text = pyperclip.paste()
        except pyperclip.PyperclipException as exc:
            raise ClipboardUnavailableError(f"Failed to read clipboard text: {exc}") from exc
        logger.info("Read %d characters from clipboard", len(text or ""))
        return text or ""

    def write_text(self, text: str) -> None:
        import pyperclip

        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as exc:
            raise ClipboardUnavailableError(f"Failed to write clipboard text: {exc}") from exc
        logger.debug("Wrote %d characters to clipboard", len(text))

    @staticmethod
    def _grab_image():
        from PIL import Image, ImageGrab

        grabbed = ImageGrab.grabclipboard()
        # grabclipboard() may return a list of copied file names instead of an image
        if isinstance(grabbed, Image.Image):
            return grabbed
        return None


def encode_png_base64(png: bytes) -> str:
    return base64.b64encode(png).decode("ascii")


def _default_input_args(device: str) -> list[str]:
    """ffmpeg capture arguments for the current platform."""
    if sys.platform == "darwin":
        return ["-f", "avfoundation", "-i", device or ":0"]
    if sys.platform.startswith("win"):
        return ["-f", "dshow", "-i", f"audio={device}" if device else "audio=default"]
    return ["-f", "pulse", "-i", device or "default"]


class FfmpegRecorder(BaseAudioRecorder):
    """Record microphone input to Ogg/Opus by running ffmpeg as a subprocess.

    Recording stops when the user presses Enter (interactive terminals) or
    when max_seconds elapses.
    """

    def __init__(
        self,
        output_dir: Path,
        ffmpeg_binary: str = "ffmpeg",
        max_seconds: int = 300,
        device: str = "",
    ) -> None:
        self._output_dir = Path(output_dir).expanduser()
        self._ffmpeg = ffmpeg_binary
        self._max_seconds = max_seconds
        self._device = device

    def _output_path(self) -> Path:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return self._output_dir / f"prompt_{stamp}.opus"

    async def record(self) -> Path:
        self._output_dir.mkdir(parents=True, exist_ok=True)
        out = self._output_path()
        cmd = [
            self._ffmpeg, "-hide_banner", "-loglevel", "error", "-y",
            *_default_input_args(self._device),
            "-t", str(self._max_seconds),
            "-ac", "1", "-ar", "48000", "-c:a", "libopus",
            str(out),
        ]
        logger.info("Starting audio recording: %s", " ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise AudioRecordingError(f"Cannot start {self._ffmpeg}: {exc}") from exc

        if sys.stdin.isatty():
            print("Recording... press Enter to stop.", file=sys.stderr)
            await asyncio.to_thread(sys.stdin.readline)
            if proc.returncode is None and proc.stdin is not None:
                # ffmpeg finalizes the container when it receives "q"
                proc.stdin.write(b"q")
                await proc.stdin.drain()

        _, stderr = await proc.communicate()
        if proc.returncode not in (0, 255):
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise AudioRecordingError(f"ffmpeg exited with {proc.returncode}: {detail}")
        if not out.exists() or out.stat().st_size == 0:
            raise AudioRecordingError(f"Recording produced no audio at {out}")

        logger.info("Audio recorded to %s (%d bytes)", out, out.stat().st_size)
        return out
