# tests/unit/llm/test_router.py — v1
"""Tests for llm/router.py — model spec parsing and backend routing."""

from __future__ import annotations

import pytest

from askpipe.config.settings import ConfigurationError, Settings
from askpipe.llm.adapters.gemini_adapter import GeminiAdapter
from askpipe.llm.adapters.ollama_adapter import OllamaAdapter
from askpipe.llm.errors import MissingCredentialsError, UnsupportedBackendError
from askpipe.llm.router import available_backends, parse_model_spec, route


class TestParseModelSpec:
    def test_bare_model_defaults_to_gemini(self):
        assert parse_model_spec("gemini-2.5-pro") == ("gemini", "gemini-2.5-pro")

    def test_backend_prefix(self):
        assert parse_model_spec("ollama::llama3.2:3b") == ("ollama", "llama3.2:3b")

    def test_backend_case_insensitive(self):
        assert parse_model_spec("Ollama::qwen") == ("ollama", "qwen")

    def test_unknown_backend(self):
        with pytest.raises(UnsupportedBackendError, match="openai"):
            parse_model_spec("openai::gpt-4o")

    def test_unknown_backend_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_model_spec("nope::x")

    def test_missing_model(self):
        with pytest.raises(ConfigurationError, match="does not name a model"):
            parse_model_spec("ollama::")

    def test_available(self):
        assert available_backends() == ["gemini", "ollama"]


class TestRoute:
    def test_gemini(self, settings: Settings):
        client = route("gemini-2.5-flash", settings, preferred_index=1)
        assert isinstance(client, GeminiAdapter)
        assert client.provider_name == "gemini"
        assert client.model == "gemini-2.5-flash"

    def test_ollama(self, askpipe_home):
        settings = Settings(_env_file=None, home_dir=askpipe_home, ollama_base_url="http://gpu-box:11434")
        client = route("ollama::llama3", settings)
        assert isinstance(client, OllamaAdapter)
        assert client.model == "llama3"

    def test_ollama_needs_no_key(self, askpipe_home):
        settings = Settings(_env_file=None, home_dir=askpipe_home, gemini_api_key="")
        assert route("ollama::llama3", settings).provider_name == "ollama"

    def test_gemini_without_key(self, askpipe_home):
        settings = Settings(_env_file=None, home_dir=askpipe_home, gemini_api_key="")
        with pytest.raises(MissingCredentialsError):
            route("gemini-2.5-flash", settings)
