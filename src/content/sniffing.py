# src/content/sniffing.py — v1
"""File discovery and text/binary/media classification.

Classification does not trust extensions except for the media allow-list;
everything else is decided by sniffing an 8 KiB prefix.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Literal

from askpipe.content.errors import UnsupportedMediaError

logger = logging.getLogger(__name__)

SNIFF_BYTES = 8192

# Extension → MIME type for files sent as inline binary parts.
MEDIA_MIME_TYPES: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "heic": "image/heic",
    "pdf": "application/pdf",
    "ogg": "audio/ogg",
    "opus": "audio/ogg",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "mp4": "video/mp4",
}

_BOMS: tuple[bytes, ...] = (
    b"\xef\xbb\xbf",  # UTF-8
    b"\xff\xfe\x00\x00",  # UTF-32 LE
    b"\x00\x00\xfe\xff",  # UTF-32 BE
    b"\xff\xfe",  # UTF-16 LE
    b"\xfe\xff",  # UTF-16 BE
)

# ASCII printable plus whitespace (\t \n \v \f \r) and backspace.
_PRINTABLE = frozenset(range(0x20, 0x7F)) | {0x08, 0x09, 0x0A, 0x0B, 0x0C, 0x0D}

FileKind = Literal["media", "text", "binary"]


def is_text_content(data: bytes) -> bool:
    """Return True if the byte prefix looks like text.

    Order matters: BOM wins over NUL bytes (UTF-16/32 text contains NULs),
    NUL wins over everything else.
    """
    sample = data[:SNIFF_BYTES]
    if not sample:
        return True
    if sample.startswith(_BOMS):
        return True
    if b"\x00" in sample:
        return False
    try:
        sample.decode("utf-8")
        return True
    except UnicodeDecodeError:
        pass

    total = len(sample)
    printable = sum(1 for b in sample if b in _PRINTABLE)
    high = sum(1 for b in sample if b >= 0x80)
    control = total - printable - high

    printable_ratio = printable / total
    if printable_ratio > 0.80:
        return True
    if high / total > 0.50:
        return False
    return printable_ratio > 0.60 and control / total < 0.10


def media_mime_type(path: str | Path) -> str:
    """Map a media file extension to its MIME type.

    Raises:
        UnsupportedMediaError: If the extension is missing or not allow-listed.
    """
    suffix = Path(path).suffix.lower().lstrip(".")
    if not suffix:
        raise UnsupportedMediaError(f"File has no extension: {path}")
    try:
        return MEDIA_MIME_TYPES[suffix]
    except KeyError:
        raise UnsupportedMediaError(
            f"Unsupported file format: {suffix}. "
            f"Supported formats: {', '.join(MEDIA_MIME_TYPES)}"
        ) from None


def is_media_file(path: str | Path) -> bool:
    return Path(path).suffix.lower().lstrip(".") in MEDIA_MIME_TYPES


def classify_file(path: Path) -> FileKind:
    """Classify a regular file as media, text or binary."""
    if is_media_file(path):
        return "media"
    with path.open("rb") as fh:
        prefix = fh.read(SNIFF_BYTES)
    return "text" if is_text_content(prefix) else "binary"


def collect_files_recursive(root: str | Path) -> list[Path]:
    """Return every regular file under root, sorted by full path.

    A plain file argument yields itself. Symlinked directories are not
    followed to avoid cycles.
    """
    root_path = Path(root)
    if root_path.is_file():
        return [root_path]
    if not root_path.is_dir():
        return []

    files: list[Path] = []
    stack = [root_path]
    while stack:
        current = stack.pop()
        try:
            entries = list(current.iterdir())
        except OSError as exc:
            logger.warning("Cannot list directory %s: %s", current, exc)
            continue
        for entry in entries:
            if entry.is_dir() and not entry.is_symlink():
                stack.append(entry)
            elif entry.is_file():
                files.append(entry)

    return sorted(files, key=lambda p: str(p))


def decode_text(data: bytes) -> str:
    """Decode file bytes as text, honouring a BOM when present."""
    if data.startswith(b"\xef\xbb\xbf"):
        return data[3:].decode("utf-8", errors="replace")
    if data.startswith((b"\xff\xfe\x00\x00", b"\x00\x00\xfe\xff")):
        return data.decode("utf-32", errors="replace")
    if data.startswith((b"\xff\xfe", b"\xfe\xff")):
        return data.decode("utf-16", errors="replace")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Falling back to cp1252 decoding")
        return data.decode("cp1252", errors="replace")


def read_media_as_base64(path: str | Path) -> str:
    """Read a media file and return its standard base64 encoding."""
    data = Path(path).read_bytes()
    encoded = base64.b64encode(data).decode("ascii")
    logger.info("Encoded media %s: %d bytes -> %d base64 chars", path, len(data), len(encoded))
    return encoded
