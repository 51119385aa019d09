"""OpenAI-compatible provider (OpenAI, Groq) using the Chat Completions streaming API."""

from __future__ import annotations

import json
import os
from collections.abc import AsyncIterator
from typing import Any

import httpx
from openai import APIStatusError, AsyncOpenAI

from ..errors import ConfigurationError, provider_error
from ..models import Message
from .base import LLMProvider, ProviderDelta, ToolCallFragment


class OpenAIProvider(LLMProvider):
    """OpenAI-backed LLM provider. Pass ``base_url`` for compatible endpoints such as Groq."""

    def __init__(
        self,
        default_model: str = "gpt-4.1-nano",
        api_key: str | None = None,
        base_url: str | None = None,
        api_key_env: str = "OPENAI_API_KEY",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.default_model = default_model
        self.api_key_env = api_key_env
        self.api_key = api_key or os.getenv(api_key_env) or ""
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL")
        self.http_client = http_client
        self._client: AsyncOpenAI | None = None

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise ConfigurationError(f"Missing {self.api_key_env} environment variable")
        if not self._client:
            kwargs: dict[str, Any] = {"api_key": self.api_key, "max_retries": 0}
            if self.base_url:
                kwargs["base_url"] = self.base_url
            if self.http_client is not None:
                kwargs["http_client"] = self.http_client
            self._client = AsyncOpenAI(**kwargs)
        return self._client

    @staticmethod
    def _to_openai_messages(messages: list[Message]) -> list[dict[str, Any]]:
        """Convert internal Message objects into OpenAI chat message dicts."""
        out: list[dict[str, Any]] = []
        for m in messages:
            base: dict[str, Any] = {"role": m.role, "content": m.content or ""}
            # Assistant tool calls
            if m.role == "assistant" and m.tool_calls:
                base["tool_calls"] = [
                    {
                        "id": tc.get("id") or "",
                        "type": "function",
                        "function": {
                            "name": tc.get("name", ""),
                            "arguments": json.dumps(tc.get("params") or {}),
                        },
                    }
                    for tc in m.tool_calls
                    if tc.get("name")
                ]
            # Tool response messages
            if m.role == "tool":
                if m.tool_call_id:
                    base["tool_call_id"] = m.tool_call_id
                if m.name:
                    base["name"] = m.name
            out.append(base)
        return out

    @staticmethod
    def decode_chunk(chunk: Any) -> ProviderDelta | None:
        """Map one ChatCompletionChunk to a ProviderDelta. Returns None for empty chunks."""
        if not getattr(chunk, "choices", None):
            return None
        choice = chunk.choices[0]
        delta = getattr(choice, "delta", None)
        fragments: list[ToolCallFragment] = []
        for tc in getattr(delta, "tool_calls", None) or []:
            fn = getattr(tc, "function", None)
            fragments.append(
                ToolCallFragment(
                    index=getattr(tc, "index", 0) or 0,
                    call_id=getattr(tc, "id", None),
                    name=getattr(fn, "name", None) if fn is not None else None,
                    arguments_delta=getattr(fn, "arguments", None) if fn is not None else None,
                )
            )
        return ProviderDelta(
            content=getattr(delta, "content", None) or None,
            tool_call_fragments=fragments or None,
            finish_reason=getattr(choice, "finish_reason", None),
        )

    async def stream_deltas(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ProviderDelta]:
        """Streaming chat; yields one ProviderDelta per non-empty chunk."""
        client = self._get_client()
        params: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": self._to_openai_messages(messages),
            "stream": True,
            **kwargs,
        }
        if tools:
            params["tools"] = tools
            params["tool_choice"] = "auto"

        try:
            stream = await client.chat.completions.create(**params)
            async for chunk in stream:
                delta = self.decode_chunk(chunk)
                if delta is not None:
                    yield delta
        except APIStatusError as exc:
            raise provider_error(str(exc), exc.status_code) from exc
