"""Ollama LLM provider implementation."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

from ollama import AsyncClient, ResponseError

from ..errors import provider_error
from ..models import Message
from .base import TOOL_CALLS_FINISHED, LLMProvider, ProviderDelta, ToolCallFragment

# Decoding kwargs that Ollama expects under different option names.
_OPTION_NAMES = {
    "temperature": "temperature",
    "top_p": "top_p",
    "max_tokens": "num_predict",
    "frequency_penalty": "frequency_penalty",
    "presence_penalty": "presence_penalty",
}


def _message_to_chat(m: Message) -> dict[str, Any]:
    """Convert our Message to Ollama chat format."""
    out: dict[str, Any] = {"role": m.role, "content": m.content or ""}
    if m.tool_calls:
        out["tool_calls"] = [
            {
                "function": {
                    "name": tc.get("name", ""),
                    "arguments": tc.get("params") or {},
                },
            }
            for tc in m.tool_calls
        ]
    if m.name:
        out["tool_name"] = m.name
    return out


class OllamaProvider(LLMProvider):
    """Ollama-backed LLM provider.

    Ollama delivers each tool call whole, so every call becomes a single
    fragment and the final ``done`` chunk carries the tool-calls marker.
    """

    def __init__(self, default_model: str = "llama3.2", base_url: str | None = None):
        self.default_model = default_model
        self.base_url = base_url or "http://localhost:11434"

    @staticmethod
    def _to_options(kwargs: dict[str, Any]) -> dict[str, Any]:
        return {
            _OPTION_NAMES[key]: value
            for key, value in kwargs.items()
            if key in _OPTION_NAMES and value is not None
        }

    async def stream_deltas(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ProviderDelta]:
        client = AsyncClient(host=self.base_url)
        tool_index = 0
        try:
            stream = await client.chat(
                model=model or self.default_model,
                messages=[_message_to_chat(m) for m in messages],
                tools=tools or None,
                options=self._to_options(kwargs) or None,
                stream=True,
            )
            async for chunk in stream:
                msg = getattr(chunk, "message", None)
                fragments: list[ToolCallFragment] = []
                for tc in getattr(msg, "tool_calls", None) or []:
                    fn = getattr(tc, "function", None)
                    if fn is None:
                        continue
                    args = getattr(fn, "arguments", None)
                    fragments.append(
                        ToolCallFragment(
                            index=tool_index,
                            name=getattr(fn, "name", None),
                            arguments_delta=args if isinstance(args, str) else json.dumps(args or {}),
                        )
                    )
                    tool_index += 1
                finish_reason = None
                if getattr(chunk, "done", False):
                    finish_reason = TOOL_CALLS_FINISHED if tool_index else (
                        getattr(chunk, "done_reason", None) or "stop"
                    )
                content = getattr(msg, "content", None) if msg is not None else None
                if content or fragments or finish_reason:
                    yield ProviderDelta(
                        content=content or None,
                        tool_call_fragments=fragments or None,
                        finish_reason=finish_reason,
                    )
        except ResponseError as exc:
            raise provider_error(str(exc), exc.status_code) from exc
