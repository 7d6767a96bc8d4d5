# src/llm/credentials.py — v1
"""API-key pool, failover state and the authentication remediation hook."""

from __future__ import annotations

import logging
import random
import re
import sys
import webbrowser
from dataclasses import dataclass
from typing import Callable, TextIO

from askpipe.llm.errors import MissingCredentialsError

logger = logging.getLogger(__name__)

GEMINI_API_KEY_URL = "https://makersuite.google.com/app/apikey"
GEMINI_DOCS_URL = "https://ai.google.dev/gemini-api/docs/api-key"

API_KEY_LENGTH = 39
API_KEY_PREFIX = "AIza"
_KEY_CHARS = re.compile(r"^[A-Za-z0-9_-]+$")


def validate_key_format(api_key: str) -> bool:
    """Check the usual Google API key shape. Only ever warns."""
    if len(api_key) != API_KEY_LENGTH:
        logger.warning("API key length is not %d characters (expected for Google API keys)", API_KEY_LENGTH)
        return False
    if not api_key.startswith(API_KEY_PREFIX):
        logger.warning("API key does not start with '%s' (expected for Google API keys)", API_KEY_PREFIX)
        return False
    if not _KEY_CHARS.match(api_key):
        logger.warning("API key contains invalid characters")
        return False
    logger.debug("API key format validation passed")
    return True


class CredentialPool:
    """Ordered, de-duplicated set of API keys for one backend."""

    def __init__(self, keys: list[str]) -> None:
        seen: set[str] = set()
        self._keys: list[str] = []
        for key in keys:
            key = key.strip()
            if key and key not in seen:
                seen.add(key)
                self._keys.append(key)
        if not self._keys:
            raise MissingCredentialsError(
                "GEMINI_API_KEY is not set. Visit "
                f"{GEMINI_API_KEY_URL} to get an API key, then export it "
                "(several keys may be separated by '|')."
            )
        for key in self._keys:
            validate_key_format(key)

    def __len__(self) -> int:
        return len(self._keys)

    def __getitem__(self, index: int) -> str:
        return self._keys[index]

    def start_index(self, preferred: int | None = None) -> int:
        """Preferred slot when valid, otherwise a pseudo-random one."""
        if preferred is not None and 0 <= preferred < len(self._keys):
            return preferred
        if preferred is not None:
            logger.debug("Preferred credential index %d out of range, choosing randomly", preferred)
        return random.randrange(len(self._keys))  # noqa: S311


@dataclass
class RouterState:
    """Mutable failover cursor into a CredentialPool."""

    current_key_index: int
    pool_size: int

    def advance(self) -> int:
        """Move round-robin to the next key and return its index."""
        self.current_key_index = (self.current_key_index + 1) % self.pool_size
        return self.current_key_index


AuthRemediationHook = Callable[[], None]


class AuthRemediation:
    """Print API-key guidance and offer to open the key page.

    The browser prompt is only shown when both stdin and the output stream
    are terminals.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        read_line: Callable[[], str] | None = None,
        open_url: Callable[[str], bool] | None = None,
        interactive: bool | None = None,
    ) -> None:
        self._stream = stream or sys.stderr
        self._read_line = read_line or sys.stdin.readline
        self._open_url = open_url or webbrowser.open
        self._interactive = interactive

    def _is_interactive(self) -> bool:
        if self._interactive is not None:
            return self._interactive
        return sys.stdin.isatty() and self._stream.isatty()

    def __call__(self) -> None:
        out = self._stream
        print("", file=out)
        print("API key rejected", file=out)
        print("================", file=out)
        print("The Gemini API rejected the configured key (invalid, expired or revoked).", file=out)
        print(f"Create a new key at: {GEMINI_API_KEY_URL}", file=out)
        print('Then set it:  export GEMINI_API_KEY="your_api_key_here"', file=out)
        print(f"Documentation: {GEMINI_DOCS_URL}", file=out)
        print("", file=out)

        if not self._is_interactive():
            return

        print("Would you like to open the API key page in your browser? (y/N)", file=out)
        try:
            answer = self._read_line().strip().lower()
        except OSError as exc:
            logger.debug("Could not read answer: %s", exc)
            return
        if answer not in ("y", "yes"):
            return

        logger.info("Attempting to open browser to: %s", GEMINI_API_KEY_URL)
        if self._open_url(GEMINI_API_KEY_URL):
            print(f"Opened {GEMINI_API_KEY_URL} in your default browser", file=out)
        else:
            logger.warning("Failed to open browser")
            print(f"Could not open browser automatically. Please visit: {GEMINI_API_KEY_URL}", file=out)
