"""POST /chat end to end with the provider and storage overridden."""
from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

import main
from src.routers.chat import (
    ChatRequest,
    chat,
    get_adapter_factory,
    get_history_factory,
    get_persona,
    get_preferences_loader,
    get_registry_factory,
)
from src.stream_orchestrator.adapter import CompletionStreamAdapter
from src.stream_orchestrator.cancellation import ActiveRequests
from src.stream_orchestrator.config import RetryPolicy
from src.stream_orchestrator.db import ChatHistoryStore
from src.stream_orchestrator.tools import ToolRegistry
from tests.fakes import FakeProvider, text


class TestChatEndpoint(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.history_path = Path(self._tmp.name) / "history.db"
        self.provider = FakeProvider([text("Hello"), text(" world")])
        overrides = main.app.dependency_overrides
        overrides[get_adapter_factory] = lambda: (
            lambda model: CompletionStreamAdapter(provider=self.provider, retry=RetryPolicy(delay=0))
        )
        overrides[get_history_factory] = lambda: (lambda user_id: ChatHistoryStore(user_id, path=self.history_path))
        overrides[get_registry_factory] = lambda: (lambda user_id: ToolRegistry())
        overrides[get_preferences_loader] = lambda: (lambda user_id: None)
        overrides[get_persona] = lambda: "You are a test persona."
        self.client = TestClient(main.app)

    def tearDown(self) -> None:
        main.app.dependency_overrides.clear()
        self._tmp.cleanup()

    def _frames(self, body: str) -> list[dict]:
        return [json.loads(line) for line in body.splitlines() if line.strip()]

    def test_streams_frames_and_persists_both_turns(self) -> None:
        response = self.client.post("/chat", json={"query": "hi", "sessionId": "s1", "userIdentity": "u1"})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("application/octet-stream"))
        self.assertEqual(response.headers["x-session-id"], "s1")
        self.assertEqual(
            self._frames(response.text),
            [{"type": "text", "content": "Hello"}, {"type": "text", "content": " world"}],
        )
        history = ChatHistoryStore("u1", path=self.history_path).history("s1")
        self.assertEqual([(m.role, m.content) for m in history], [("user", "hi"), ("assistant", "Hello world")])

    def test_context_contains_persona_history_and_query(self) -> None:
        self.client.post("/chat", json={"query": "first", "sessionId": "s1"})
        self.client.post("/chat", json={"query": "second", "sessionId": "s1", "simplerMode": True})
        messages = self.provider.calls[-1]["messages"]
        self.assertEqual(messages[0].content, "You are a test persona.")
        self.assertEqual([m.content for m in messages if m.role != "system"], ["first", "Hello world", "second"])
        self.assertTrue(any("Simpler Mode" in m.content for m in messages if m.role == "system"))

    def test_session_id_is_generated_when_missing(self) -> None:
        response = self.client.post("/chat", json={"query": "hi"})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["x-session-id"])

    def test_empty_query_is_rejected_before_streaming(self) -> None:
        response = self.client.post("/chat", json={"query": "   "})
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.headers["content-type"].startswith("text/plain"))
        self.assertEqual(self.provider.calls, [])

    def test_malformed_body_is_rejected(self) -> None:
        response = self.client.post("/chat", content=b"{not json", headers={"content-type": "application/json"})
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.headers["content-type"].startswith("text/plain"))
        response = self.client.post("/chat", json={"sessionId": "s1"})
        self.assertEqual(response.status_code, 400)

    def test_provider_failure_is_an_error_frame_not_a_status(self) -> None:
        self.provider = FakeProvider(RuntimeError("down"))
        response = self.client.post("/chat", json={"query": "hi"})
        self.assertEqual(response.status_code, 200)
        frames = self._frames(response.text)
        self.assertEqual(len(frames), 1)
        self.assertEqual(frames[0]["type"], "error")

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})


class TestChatHandleLifetime(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.active = ActiveRequests()
        self.provider = FakeProvider([text("Hi"), text("!")])

    async def asyncTearDown(self) -> None:
        self._tmp.cleanup()

    async def _response(self):
        history_path = Path(self._tmp.name) / "history.db"
        return await chat(
            ChatRequest(query="hi", sessionId="s9"),
            active=self.active,
            adapter_factory=lambda model: CompletionStreamAdapter(provider=self.provider, retry=RetryPolicy(delay=0)),
            history_factory=lambda user_id: ChatHistoryStore(user_id, path=history_path),
            registry_factory=lambda user_id: ToolRegistry(),
            load_preferences=lambda user_id: None,
            persona="persona",
        )

    async def test_handle_registered_only_while_body_streams(self) -> None:
        response = await self._response()
        self.assertIsNone(self.active.current("s9"))
        frames = response.body_iterator
        first = await frames.__anext__()
        self.assertEqual(json.loads(first), {"type": "text", "content": "Hi"})
        self.assertIsNotNone(self.active.current("s9"))
        rest = [part async for part in frames]
        self.assertEqual(len(rest), 1)
        self.assertIsNone(self.active.current("s9"))

    async def test_body_never_iterated_leaves_no_handle(self) -> None:
        response = await self._response()
        await response.body_iterator.aclose()
        self.assertIsNone(self.active.current("s9"))
        self.assertEqual(self.provider.calls, [])


if __name__ == "__main__":
    unittest.main()
