# tests/unit/llm/test_credentials.py — v1
"""Tests for llm/credentials.py — key pool, router state, auth remediation."""

from __future__ import annotations

import io
import logging

import pytest

from askpipe.llm.credentials import (
    GEMINI_API_KEY_URL,
    AuthRemediation,
    CredentialPool,
    RouterState,
    validate_key_format,
)
from askpipe.llm.errors import MissingCredentialsError


class TestValidateKeyFormat:
    def test_valid(self, api_keys):
        assert validate_key_format(api_keys[0]) is True

    def test_wrong_length_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert validate_key_format("AIzaShort") is False
        assert "length" in caplog.text

    def test_wrong_prefix(self):
        assert validate_key_format("XXza" + "a" * 35) is False

    def test_invalid_characters(self):
        assert validate_key_format("AIzaSyDummy@Key#ForTesting1234567890123") is False


class TestCredentialPool:
    def test_deduplicates_and_strips(self, api_keys):
        a, b = api_keys
        pool = CredentialPool([a, f" {b} ", a, ""])
        assert len(pool) == 2
        assert pool[1] == b

    def test_empty_raises(self):
        with pytest.raises(MissingCredentialsError, match="GEMINI_API_KEY"):
            CredentialPool(["", "  "])

    def test_malformed_key_still_accepted(self):
        pool = CredentialPool(["not-a-google-key"])
        assert len(pool) == 1

    def test_preferred_index_used_when_valid(self, api_keys):
        pool = CredentialPool(list(api_keys))
        assert pool.start_index(1) == 1

    def test_out_of_range_preferred_falls_back(self, api_keys):
        pool = CredentialPool(list(api_keys))
        assert pool.start_index(9) in (0, 1)

    def test_random_start_in_range(self, api_keys):
        pool = CredentialPool(list(api_keys))
        assert {pool.start_index() for _ in range(50)} <= {0, 1}


class TestRouterState:
    def test_advance_wraps(self):
        state = RouterState(current_key_index=2, pool_size=3)
        assert state.advance() == 0
        assert state.advance() == 1


class TestAuthRemediation:
    def test_non_interactive_prints_guidance_only(self):
        out = io.StringIO()
        opened: list[str] = []
        AuthRemediation(stream=out, open_url=lambda u: opened.append(u) or True, interactive=False)()
        assert GEMINI_API_KEY_URL in out.getvalue()
        assert "open the API key page" not in out.getvalue()
        assert opened == []

    def test_interactive_yes_opens_browser(self):
        out = io.StringIO()
        opened: list[str] = []
        hook = AuthRemediation(
            stream=out,
            read_line=lambda: "y\n",
            open_url=lambda u: opened.append(u) or True,
            interactive=True,
        )
        hook()
        assert opened == [GEMINI_API_KEY_URL]
        assert "Opened" in out.getvalue()

    def test_interactive_no(self):
        opened: list[str] = []
        AuthRemediation(
            stream=io.StringIO(),
            read_line=lambda: "\n",
            open_url=lambda u: opened.append(u) or True,
            interactive=True,
        )()
        assert opened == []

    def test_browser_failure_reported(self):
        out = io.StringIO()
        AuthRemediation(stream=out, read_line=lambda: "yes", open_url=lambda u: False, interactive=True)()
        assert "Please visit" in out.getvalue()
