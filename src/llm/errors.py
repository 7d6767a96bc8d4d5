# src/llm/errors.py — v1
"""Provider error taxonomy.

Every failure coming out of a backend is normalized into a ProviderError
carrying an ErrorKind, so routing decisions never depend on message text.
"""

from __future__ import annotations

from enum import Enum

from askpipe.config.settings import ConfigurationError


class ErrorKind(str, Enum):
    """Structural classification of a backend failure."""

    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    TIMEOUT = "timeout"
    EMPTY = "empty"
    SERVER_ERROR = "server_error"
    OTHER = "other"


class ProviderError(Exception):
    """A backend call failed."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.OTHER,
        status: int | None = None,
        provider: str = "",
    ) -> None:
        self.kind = kind
        self.status = status
        self.provider = provider
        super().__init__(message)


class RateLimitError(ProviderError):
    """Quota exhausted (HTTP 429) and no further failover is allowed."""

    def __init__(self, message: str, status: int | None = 429, provider: str = "") -> None:
        super().__init__(message, ErrorKind.RATE_LIMIT, status, provider)


class AuthenticationError(ProviderError):
    """Credential rejected (HTTP 401/403); never retried."""

    def __init__(self, message: str, status: int | None = None, provider: str = "") -> None:
        super().__init__(message, ErrorKind.AUTH, status, provider)


class EmptyResponseError(ProviderError):
    """Backend answered with blank content."""

    def __init__(self, provider: str = "") -> None:
        super().__init__(
            "No content was generated by the AI. The response was empty or "
            "contained only whitespace.",
            ErrorKind.EMPTY,
            None,
            provider,
        )


class UnsupportedBackendError(ConfigurationError):
    """Model spec names a backend that is not registered."""

    def __init__(self, backend: str, available: list[str]) -> None:
        self.backend = backend
        super().__init__(
            f"Unsupported backend: {backend!r}. Available: {', '.join(sorted(available))}"
        )


class MissingCredentialsError(ConfigurationError):
    """A cloud backend was selected but no API key is configured."""
