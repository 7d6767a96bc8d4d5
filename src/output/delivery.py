# src/output/delivery.py — v1
"""Deliver a response to stdout or the system clipboard."""

from __future__ import annotations

import logging
import sys
from enum import Enum
from typing import TYPE_CHECKING, TextIO

from askpipe.content.errors import ClipboardUnavailableError

if TYPE_CHECKING:
    from askpipe.content.collectors import BaseClipboard

logger = logging.getLogger(__name__)


class OutputMode(str, Enum):
    STDOUT = "stdout"
    CLIPBOARD = "clipboard"


def deliver(
    response: str,
    mode: OutputMode = OutputMode.STDOUT,
    clipboard: BaseClipboard | None = None,
    stream: TextIO | None = None,
) -> None:
    """Write the response text to its destination.

    Raises:
        ClipboardUnavailableError: Clipboard mode without a working clipboard.
    """
    if mode is OutputMode.CLIPBOARD:
        if clipboard is None:
            raise ClipboardUnavailableError("Clipboard output requested but no clipboard is available")
        logger.info("Writing response to clipboard (%d chars)", len(response))
        clipboard.write_text(response)
        return

    out = stream or sys.stdout
    logger.debug("Writing response to stdout (%d chars)", len(response))
    out.write(response)
    if not response.endswith("\n"):
        out.write("\n")
    out.flush()
