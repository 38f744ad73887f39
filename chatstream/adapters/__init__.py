"""Provider adapter selection helpers."""

from __future__ import annotations

from chatstream.adapters.base import ProviderAdapter
from chatstream.adapters.gemini.adapter import GeminiAdapter
from chatstream.adapters.ollama.adapter import OllamaChatAdapter
from chatstream.adapters.openai_compat.adapter import OpenAIChatAdapter
from chatstream.config.settings import settings
from chatstream.core.errors import ConfigurationError

_ADAPTERS: dict[str, type[ProviderAdapter]] = {
    OpenAIChatAdapter.name: OpenAIChatAdapter,
    OllamaChatAdapter.name: OllamaChatAdapter,
    GeminiAdapter.name: GeminiAdapter,
}


def register_adapter(name: str, adapter_type: type[ProviderAdapter]) -> None:
    _ADAPTERS[name.strip().lower()] = adapter_type


def create_adapter(name: str | None = None) -> ProviderAdapter:
    backend = (name or settings.provider).strip().lower()
    adapter_type = _ADAPTERS.get(backend)
    if adapter_type is None:
        raise ConfigurationError(f"no adapter registered for provider: {backend}")
    return adapter_type()
