"""Abstract LLM provider interface for the streaming core."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

from ..models import Message

TOOL_CALLS_FINISHED = "tool_calls"


@dataclass
class ToolCallFragment:
    """Part of one tool call as observed in a single provider delta."""

    index: int = 0
    call_id: str | None = None
    name: str | None = None
    arguments_delta: str | None = None


@dataclass
class ProviderDelta:
    """One provider delta after the provider's own decoder has run.

    ``finish_reason == "tool_calls"`` marks the point where buffered tool
    calls are complete.
    """

    content: str | None = None
    tool_call_fragments: list[ToolCallFragment] | None = None
    finish_reason: str | None = None


class LLMProvider(ABC):
    """
    Abstract LLM provider. Implement this to plug in any backend (Groq, OpenAI, Ollama, ...).

    The adapter only depends on this interface.
    """

    @abstractmethod
    def stream_deltas(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ProviderDelta]:
        """
        Stream one completion as ProviderDelta objects.

        Raises ConfigurationError for unusable credentials, anything else for
        transport/provider failures.
        """
        ...
