# src/llm/retry.py — v2
"""Structural error classification for backend failures.

Only status codes and exception types are inspected:
  - google-api-core exceptions expose the HTTP status as ``.code``
  - ollama.ResponseError exposes ``.status_code``
  - httpx.HTTPStatusError exposes ``.response.status_code``
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from askpipe.llm.errors import (
    AuthenticationError,
    ErrorKind,
    ProviderError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

_TIMEOUT_STATUSES = frozenset({408, 504})
_AUTH_STATUSES = frozenset({401, 403})


def status_code_of(error: BaseException) -> int | None:
    """Extract an HTTP status code from an SDK exception, if it carries one."""
    if isinstance(error, ProviderError):
        return error.status
    for attr in ("status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def classify_status(status: int | None) -> ErrorKind:
    if status is None:
        return ErrorKind.OTHER
    if status == 429:
        return ErrorKind.RATE_LIMIT
    if status in _AUTH_STATUSES:
        return ErrorKind.AUTH
    if status in _TIMEOUT_STATUSES:
        return ErrorKind.TIMEOUT
    if 500 <= status < 600:
        return ErrorKind.SERVER_ERROR
    return ErrorKind.OTHER


def classify_error(error: BaseException) -> ErrorKind:
    """Classify an exception into an ErrorKind."""
    if isinstance(error, ProviderError):
        return error.kind
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return ErrorKind.TIMEOUT
    return classify_status(status_code_of(error))


def to_provider_error(error: BaseException, provider: str) -> ProviderError:
    """Wrap an SDK exception in the matching ProviderError subclass."""
    if isinstance(error, ProviderError):
        return error
    kind = classify_error(error)
    status = status_code_of(error)
    message = f"{provider} request failed ({kind.value}): {error}"
    if kind is ErrorKind.RATE_LIMIT:
        return RateLimitError(message, status=status, provider=provider)
    if kind is ErrorKind.AUTH:
        return AuthenticationError(message, status=status, provider=provider)
    return ProviderError(message, kind=kind, status=status, provider=provider)
