"""LLM facade: resolve a provider from a "provider:model" string."""

from __future__ import annotations

from .config import DEFAULT_MODEL, GROQ_BASE_URL
from .errors import ConfigurationError
from .providers import (
    GeminiProvider,
    LLMProvider,
    OllamaProvider,
    OpenAIProvider,
)

_default_provider: LLMProvider | None = None
_provider_cache: dict[str, LLMProvider] = {}


def set_default_provider(provider: LLMProvider | None) -> None:
    """Force every model string to resolve to ``provider`` (None restores lookup)."""
    global _default_provider
    _default_provider = provider


def _build_provider(provider_name: str) -> LLMProvider:
    if provider_name == "groq":
        return OpenAIProvider(base_url=GROQ_BASE_URL, api_key_env="GROQ_API_KEY")
    if provider_name == "openai":
        return OpenAIProvider()
    if provider_name in ("gemini", "google"):
        return GeminiProvider()
    if provider_name == "ollama":
        return OllamaProvider()
    raise ConfigurationError(f"Unknown LLM provider: {provider_name!r}")


def get_provider_for_model(model: str | None) -> tuple[LLMProvider, str]:
    """
    Resolve provider and underlying model name from a model string.

    Expected formats:
    - "provider:model_name" (e.g. "groq:llama3-70b-8192", "gemini:gemini-2.5-flash")
    - "model_name" (no colon) → treated as an Ollama model.
    """
    effective = (model or DEFAULT_MODEL).strip()
    if ":" in effective:
        provider_name, raw_model = effective.split(":", 1)
        provider_name = provider_name.strip().lower()
        model_name = raw_model.strip()
    else:
        provider_name = "ollama"
        model_name = effective
    if not model_name:
        raise ConfigurationError(f"No model name in {effective!r}")

    if _default_provider is not None:
        return _default_provider, model_name

    if provider_name not in _provider_cache:
        _provider_cache[provider_name] = _build_provider(provider_name)
    return _provider_cache[provider_name], model_name
