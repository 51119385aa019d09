"""Google Gemini LLM provider implementation."""

from __future__ import annotations

import json
import os
from collections.abc import AsyncIterator
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from ..errors import ConfigurationError, provider_error
from ..models import Message
from .base import TOOL_CALLS_FINISHED, LLMProvider, ProviderDelta, ToolCallFragment


class GeminiProvider(LLMProvider):
    """Gemini provider using the google-genai SDK."""

    def __init__(
        self,
        default_model: str = "gemini-2.5-flash",
        api_key: str | None = None,
    ) -> None:
        self.default_model = default_model
        self.api_key = api_key or os.getenv("GOOGLE_API_KEY") or os.getenv(
            "GEMINI_API_KEY",
            "",
        )
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not self.api_key:
            raise ConfigurationError("Missing GOOGLE_API_KEY / GEMINI_API_KEY environment variable")
        if not self._client:
            self._client = genai.Client(
                api_key=self.api_key,
                http_options={"api_version": "v1beta"},
            )
        return self._client

    @staticmethod
    def _to_gemini_contents(messages: list[Message]) -> tuple[list[genai_types.Content], str | None]:
        """Convert internal Message objects into Gemini contents and system instruction."""
        contents: list[genai_types.Content] = []
        system_parts: list[str] = []

        for m in messages:
            if m.role == "system":
                if (m.content or "").strip():
                    system_parts.append(m.content.strip())
                continue
            if m.role == "tool":
                try:
                    response = json.loads(m.content or "null")
                except ValueError:
                    response = m.content
                if not isinstance(response, dict):
                    response = {"result": response}
                contents.append(
                    genai_types.Content(
                        role="user",
                        parts=[
                            genai_types.Part(
                                function_response=genai_types.FunctionResponse(
                                    name=m.name or "tool",
                                    response=response,
                                )
                            )
                        ],
                    )
                )
                continue
            role = "model" if m.role == "assistant" else "user"
            parts: list[genai_types.Part] = []
            if m.content:
                # Construct Part directly to avoid signature issues with from_text()
                parts.append(genai_types.Part(text=m.content))
            for tc in m.tool_calls or []:
                parts.append(
                    genai_types.Part(
                        function_call=genai_types.FunctionCall(
                            name=tc.get("name", ""),
                            args=tc.get("params") or {},
                        )
                    )
                )
            if parts:
                contents.append(genai_types.Content(role=role, parts=parts))

        return contents, "\n\n".join(system_parts) or None

    @staticmethod
    def _to_gemini_tools(tools: list[dict[str, Any]] | None) -> list[genai_types.Tool] | None:
        """Convert function tools into Gemini Tool declarations."""
        if not tools:
            return None
        function_declarations: list[genai_types.FunctionDeclaration] = []
        for t in tools:
            fn = t.get("function") if "function" in t else t
            name = fn.get("name")
            if not name:
                continue
            function_declarations.append(
                genai_types.FunctionDeclaration(
                    name=name,
                    description=fn.get("description", ""),
                    parameters=fn.get("parameters") or {},
                )
            )
        if not function_declarations:
            return None
        return [genai_types.Tool(function_declarations=function_declarations)]

    def _build_config(
        self,
        tools: list[dict[str, Any]] | None,
        system_instruction: str | None,
        kwargs: dict[str, Any],
    ) -> genai_types.GenerateContentConfig:
        config_args: dict[str, Any] = {}
        gemini_tools = self._to_gemini_tools(tools)
        if gemini_tools:
            config_args["tools"] = gemini_tools
            config_args["tool_config"] = genai_types.ToolConfig(
                function_calling_config=genai_types.FunctionCallingConfig(
                    mode=genai_types.FunctionCallingConfigMode.AUTO
                )
            )
        if system_instruction:
            config_args["system_instruction"] = system_instruction
        if kwargs.get("temperature") is not None:
            config_args["temperature"] = kwargs["temperature"]
        if kwargs.get("top_p") is not None:
            config_args["top_p"] = kwargs["top_p"]
        if kwargs.get("max_tokens") is not None:
            config_args["max_output_tokens"] = kwargs["max_tokens"]
        return genai_types.GenerateContentConfig(**config_args)

    async def stream_deltas(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[ProviderDelta]:
        """Streaming chat for Gemini. Function calls arrive whole, one fragment each."""
        client = self._get_client()
        contents, system_instruction = self._to_gemini_contents(messages)
        config = self._build_config(tools, system_instruction, kwargs)
        tool_index = 0

        try:
            stream = await client.aio.models.generate_content_stream(
                model=model or self.default_model,
                contents=contents,
                config=config,
            )
            async for chunk in stream:
                fragments: list[ToolCallFragment] = []
                text_parts: list[str] = []
                for cand in getattr(chunk, "candidates", []) or []:
                    content = getattr(cand, "content", None)
                    for part in getattr(content, "parts", None) or []:
                        if getattr(part, "text", None):
                            text_parts.append(part.text)
                        fc = getattr(part, "function_call", None)
                        if not fc:
                            continue
                        fragments.append(
                            ToolCallFragment(
                                index=tool_index,
                                call_id=getattr(fc, "id", None) or f"call_{fc.name}_{tool_index}",
                                name=fc.name,
                                arguments_delta=json.dumps(dict(fc.args) if fc.args else {}),
                            )
                        )
                        tool_index += 1
                if text_parts or fragments:
                    yield ProviderDelta(
                        content="".join(text_parts) or None,
                        tool_call_fragments=fragments or None,
                    )
        except genai_errors.APIError as exc:
            raise provider_error(str(exc), getattr(exc, "code", None)) from exc

        yield ProviderDelta(finish_reason=TOOL_CALLS_FINISHED if tool_index else "stop")
