# src/content/errors.py — v1
"""Input-assembly errors.

Only NoInputError and AudioRecordingError abort a request; the others are
raised by helpers and turned into warnings by the builder.
"""

from __future__ import annotations


class ContentError(Exception):
    """Base class for input-assembly errors."""


class NoInputError(ContentError):
    """Raised when the ordered content sequence ends up empty."""

    def __init__(self) -> None:
        super().__init__(
            "No input content provided. Pass a prompt, or use -c/-f/-i/-a/-t "
            "or piped stdin for additional input."
        )


class AudioRecordingError(ContentError):
    """Raised when the audio recorder fails; fatal for the request."""


class UnsupportedMediaError(ContentError):
    """Raised when a file on the media path has an unknown extension."""


class RoleNotFoundError(ContentError):
    """Raised when a role/task name resolves to no definition file."""

    def __init__(self, name: str, searched: list[str]) -> None:
        self.name = name
        self.searched = searched
        super().__init__(
            f"Role/task '{name}' not found at: {' or '.join(searched)}"
        )


class ClipboardUnavailableError(ContentError):
    """Raised when the system clipboard cannot be accessed."""
