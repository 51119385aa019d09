"""Client side of the chat stream: read frames, fold them into the store."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable

import httpx

from src.stream_orchestrator.cancellation import ActiveRequests, CancellationToken
from src.stream_orchestrator.chunks import Chunk, ErrorChunk, TextChunk, ToolCodeChunk
from src.stream_orchestrator.errors import RequestCancelled
from src.stream_orchestrator.wire import decode_frames

from .reducer import MessageReducer
from .store import ClientMessage, ConversationStore

logger = logging.getLogger(__name__)

FAILURE_NOTICE = "Error: AI failed to respond. Please check the connection and try again."


async def consume(
    frames: AsyncIterator[Chunk],
    on_text: Callable[[TextChunk], None],
    on_tool_code: Callable[[ToolCodeChunk], None],
    on_error: Callable[[ErrorChunk], None],
    on_done: Callable[[], None],
    cancellation: CancellationToken | None = None,
) -> bool:
    """
    Drive ``frames`` into the callbacks in arrival order.

    An Error chunk is terminal. ``on_done`` runs only when the stream is
    exhausted without error. Returns False if cancelled or failed.
    """
    token = cancellation or CancellationToken()
    try:
        async for chunk in token.iterate(frames):
            if token.cancelled:
                return False
            if isinstance(chunk, TextChunk):
                on_text(chunk)
            elif isinstance(chunk, ToolCodeChunk):
                on_tool_code(chunk)
            else:
                on_error(chunk)
                return False
    except RequestCancelled:
        return False
    if token.cancelled:
        return False
    on_done()
    return True


class ChatClient:
    """Sends chat turns to the server and renders the streamed reply into a store."""

    def __init__(
        self,
        base_url: str,
        store: ConversationStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        user_identity: str | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.store = store or ConversationStore()
        self.user_identity = user_identity
        self._client = http_client or httpx.AsyncClient(timeout=None)
        self._active = ActiveRequests()

    async def aclose(self) -> None:
        await self._client.aclose()

    def cancel(self, conversation_id: str) -> bool:
        """Stop the in-flight reply for a conversation, if any."""
        cancelled = self._active.cancel(conversation_id)
        if cancelled:
            self.store.set_generating(conversation_id, False)
        return cancelled

    async def send_message(
        self,
        conversation_id: str,
        query: str,
        session_id: str | None = None,
        simpler_mode: bool = False,
        model: str | None = None,
    ) -> MessageReducer:
        # Supersede whatever is still streaming on this conversation first.
        handle = self._active.begin(conversation_id)
        self.store.add(conversation_id, ClientMessage(sender="user", text=query, session_id=session_id))
        self.store.set_generating(conversation_id, True)
        reducer = MessageReducer(self.store, conversation_id, handle, session_id=session_id)

        payload: dict[str, object] = {"query": query, "simplerMode": simpler_mode}
        if session_id:
            payload["sessionId"] = session_id
        if self.user_identity:
            payload["userIdentity"] = self.user_identity
        if model:
            payload["model"] = model

        request = self._client.build_request("POST", f"{self.base_url}/chat", json=payload)
        try:
            response = await handle.token.guard(self._client.send(request, stream=True))
            try:
                if not response.is_success:
                    await response.aread()
                    logger.warning("Chat request failed: HTTP %d %s", response.status_code, response.text)
                    reducer.fail(FAILURE_NOTICE)
                    return reducer
                reducer.session_id = response.headers.get("X-Session-Id", session_id)
                await consume(
                    decode_frames(response.aiter_bytes()),
                    reducer.on_text,
                    reducer.on_tool_code,
                    reducer.on_error,
                    reducer.on_done,
                    cancellation=handle.token,
                )
            finally:
                await response.aclose()
        except RequestCancelled:
            logger.info("Reply for %s cancelled before the response arrived", conversation_id)
        except httpx.HTTPError as e:
            logger.warning("Chat transport failed: %s", e)
            if not handle.cancelled:
                reducer.fail(FAILURE_NOTICE)
        finally:
            self._active.release(handle)
        if handle.cancelled:
            reducer.cancel()
        return reducer
