"""LLM providers: pluggable backends for the completion stream adapter."""

from .base import LLMProvider, ProviderDelta, ToolCallFragment, TOOL_CALLS_FINISHED
from .ollama import OllamaProvider
from .openai_provider import OpenAIProvider
from .gemini_provider import GeminiProvider

__all__ = [
    "LLMProvider",
    "ProviderDelta",
    "ToolCallFragment",
    "TOOL_CALLS_FINISHED",
    "OllamaProvider",
    "OpenAIProvider",
    "GeminiProvider",
]
