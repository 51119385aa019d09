"""Provider decoders and model-string resolution."""
from __future__ import annotations

import json
import unittest
from types import SimpleNamespace

import httpx

from src.stream_orchestrator import llm
from src.stream_orchestrator.adapter import CompletionStreamAdapter
from src.stream_orchestrator.chunks import ErrorChunk
from src.stream_orchestrator.config import RetryPolicy
from src.stream_orchestrator.errors import (
    CONFIGURATION_FAILURE_MESSAGE,
    ConfigurationError,
    TransientProviderError,
    provider_error,
)
from src.stream_orchestrator.models import Message
from src.stream_orchestrator.providers import OllamaProvider, OpenAIProvider


def _openai_chunk(content=None, tool_calls=None, finish_reason=None):
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)])


class TestOpenAIDecoder(unittest.TestCase):
    def test_text_delta(self) -> None:
        delta = OpenAIProvider.decode_chunk(_openai_chunk(content="Hi"))
        self.assertEqual(delta.content, "Hi")
        self.assertIsNone(delta.tool_call_fragments)

    def test_tool_call_fragment(self) -> None:
        tc = SimpleNamespace(index=1, id="c9", function=SimpleNamespace(name="t", arguments='{"x"'))
        delta = OpenAIProvider.decode_chunk(_openai_chunk(tool_calls=[tc]))
        fragment = delta.tool_call_fragments[0]
        self.assertEqual((fragment.index, fragment.call_id, fragment.name, fragment.arguments_delta), (1, "c9", "t", '{"x"'))

    def test_finish_reason_and_empty_chunks(self) -> None:
        self.assertEqual(OpenAIProvider.decode_chunk(_openai_chunk(finish_reason="tool_calls")).finish_reason, "tool_calls")
        self.assertIsNone(OpenAIProvider.decode_chunk(SimpleNamespace(choices=[])))

    def test_tool_turns_are_converted(self) -> None:
        out = OpenAIProvider._to_openai_messages(
            [
                Message(role="assistant", content="", tool_calls=[{"id": "c1", "name": "t", "params": {"x": 1}}]),
                Message(role="tool", content='{"y": 2}', tool_call_id="c1", name="t"),
            ]
        )
        self.assertEqual(out[0]["tool_calls"][0]["function"], {"name": "t", "arguments": json.dumps({"x": 1})})
        self.assertEqual(out[1]["tool_call_id"], "c1")


class TestOpenAIConfiguration(unittest.IsolatedAsyncioTestCase):
    async def test_missing_key_is_a_configuration_error(self) -> None:
        provider = OpenAIProvider(api_key_env="STREAM_TEST_MISSING_KEY")
        provider.api_key = ""
        with self.assertRaises(ConfigurationError):
            async for _ in provider.stream_deltas([Message(role="user", content="hi")]):
                pass


class TestOllamaOptions(unittest.TestCase):
    def test_max_tokens_maps_to_num_predict(self) -> None:
        options = OllamaProvider._to_options({"temperature": 0.1, "max_tokens": 8192, "unknown": 1})
        self.assertEqual(options, {"temperature": 0.1, "num_predict": 8192})


class TestProviderResolution(unittest.TestCase):
    def tearDown(self) -> None:
        llm.set_default_provider(None)

    def test_groq_prefix_uses_openai_compatible_endpoint(self) -> None:
        provider, model = llm.get_provider_for_model("groq:llama3-70b-8192")
        self.assertIsInstance(provider, OpenAIProvider)
        self.assertEqual(provider.base_url, llm.GROQ_BASE_URL)
        self.assertEqual(model, "llama3-70b-8192")

    def test_bare_name_is_ollama(self) -> None:
        provider, model = llm.get_provider_for_model("llama3.2")
        self.assertIsInstance(provider, OllamaProvider)
        self.assertEqual(model, "llama3.2")

    def test_unknown_provider_raises(self) -> None:
        with self.assertRaises(ConfigurationError):
            llm.get_provider_for_model("acme:model")

    def test_default_provider_override(self) -> None:
        fake = OllamaProvider()
        llm.set_default_provider(fake)
        self.assertIs(llm.get_provider_for_model("openai:gpt-4o-mini")[0], fake)




class TestRejectedCredentials(unittest.IsolatedAsyncioTestCase):
    async def test_401_is_reported_once_as_configuration_error(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                401,
                json={"error": {"message": "Invalid API Key", "type": "invalid_request_error", "code": "invalid_api_key"}},
            )

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = OpenAIProvider(api_key="bad-key", base_url="https://llm.test/v1", http_client=http)
        adapter = CompletionStreamAdapter(provider=provider, model="m", retry=RetryPolicy(max_attempts=3, delay=0))
        chunks = [c async for c in adapter.stream([Message(role="user", content="hi")])]
        await http.aclose()

        self.assertEqual(len(requests), 1)
        self.assertEqual(chunks, [ErrorChunk(content=CONFIGURATION_FAILURE_MESSAGE)])

    def test_status_classification(self) -> None:
        self.assertIsInstance(provider_error("denied", 401), ConfigurationError)
        self.assertIsInstance(provider_error("forbidden", 403), ConfigurationError)
        self.assertIsInstance(provider_error("unavailable", 503), TransientProviderError)
        self.assertIsInstance(provider_error("reset", None), TransientProviderError)


if __name__ == "__main__":
    unittest.main()
