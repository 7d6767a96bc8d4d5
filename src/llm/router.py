# src/llm/router.py — v1
"""ProviderRouter: resolve a model spec to a configured backend client.

A model spec is either ``"<model>"`` (Gemini) or ``"<backend>::<model>"``.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from askpipe.config.settings import ConfigurationError, Settings
from askpipe.llm.base_client import BaseLLMClient
from askpipe.llm.credentials import AuthRemediationHook, CredentialPool
from askpipe.llm.errors import UnsupportedBackendError

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = "gemini"
SPEC_SEPARATOR = "::"

# Registry of backend name → adapter class path (lazy import).
_BACKEND_REGISTRY: dict[str, str] = {
    "gemini": "askpipe.llm.adapters.gemini_adapter.GeminiAdapter",
    "ollama": "askpipe.llm.adapters.ollama_adapter.OllamaAdapter",
}


def available_backends() -> list[str]:
    return sorted(_BACKEND_REGISTRY)


def parse_model_spec(model_spec: str) -> tuple[str, str]:
    """Split a model spec into (backend, model).

    Raises:
        UnsupportedBackendError: If the backend prefix is not registered.
    """
    spec = model_spec.strip()
    if SPEC_SEPARATOR in spec:
        backend, model = spec.split(SPEC_SEPARATOR, 1)
        backend = backend.strip().lower()
        model = model.strip()
    else:
        backend, model = DEFAULT_BACKEND, spec

    if backend not in _BACKEND_REGISTRY:
        raise UnsupportedBackendError(backend, list(_BACKEND_REGISTRY))
    if not model:
        raise ConfigurationError(f"Model spec {model_spec!r} does not name a model")
    return backend, model


def route(
    model_spec: str,
    settings: Settings,
    preferred_index: int | None = None,
    on_auth_error: AuthRemediationHook | None = None,
    **kwargs: Any,
) -> BaseLLMClient:
    """Instantiate the adapter for model_spec.

    Args:
        model_spec: ``"<model>"`` or ``"<backend>::<model>"``.
        settings: Application settings (keys, endpoints, timeouts).
        preferred_index: Credential slot to start from (Gemini only).
        on_auth_error: Remediation hook called before AuthenticationError.
        **kwargs: Extra adapter arguments (e.g. an injected transport).

    Raises:
        UnsupportedBackendError: Unknown backend prefix.
        MissingCredentialsError: Gemini selected without any API key.
    """
    backend, model = parse_model_spec(model_spec)
    adapter_cls = _import_class(_BACKEND_REGISTRY[backend])

    init_kwargs = dict(kwargs)
    init_kwargs["model"] = model
    if backend == "gemini":
        init_kwargs.setdefault("pool", CredentialPool(settings.gemini_api_keys))
        init_kwargs.setdefault("timeout_s", settings.gemini_timeout_s)
        init_kwargs.setdefault("preferred_index", preferred_index)
        init_kwargs.setdefault("on_auth_error", on_auth_error)
    elif backend == "ollama":
        init_kwargs.setdefault("host", settings.ollama_base_url)
        init_kwargs.setdefault("timeout_s", settings.ollama_timeout_s)

    logger.debug("Routing model spec %r: backend=%s, model=%s", model_spec, backend, model)
    return adapter_cls(**init_kwargs)


def register_backend(name: str, class_path: str) -> None:
    """Register a custom backend adapter.

    Args:
        name: Backend prefix used in model specs.
        class_path: Fully qualified class path implementing BaseLLMClient.
    """
    _BACKEND_REGISTRY[name] = class_path
    logger.info("Registered backend: %s → %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
