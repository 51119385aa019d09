"""Folds one response stream into a single assistant message in the store."""

from __future__ import annotations

import logging
from enum import Enum

from src.stream_orchestrator.cancellation import RequestHandle
from src.stream_orchestrator.chunks import ErrorChunk, TextChunk, ToolCodeChunk

from .store import ClientMessage, ConversationStore

logger = logging.getLogger(__name__)


class PhaseState(str, Enum):
    AWAITING_FIRST_CHUNK = "awaiting_first_chunk"
    STREAMING = "streaming"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"


class MessageReducer:
    """
    Owns the placeholder message for one response stream.

    The placeholder is created by the first Text or ToolCode chunk, so a
    stream of N chunks yields exactly one message. Every fold first checks
    the request handle; once it is cancelled nothing more reaches the store.
    """

    def __init__(
        self,
        store: ConversationStore,
        conversation_id: str,
        handle: RequestHandle,
        session_id: str | None = None,
    ) -> None:
        self.store = store
        self.conversation_id = conversation_id
        self.handle = handle
        self.session_id = session_id
        self.state = PhaseState.AWAITING_FIRST_CHUNK
        self.message_id: str | None = None

    @property
    def closed(self) -> bool:
        return self.state in (PhaseState.FINISHED, PhaseState.FAILED, PhaseState.CANCELLED)

    def _accepting(self) -> bool:
        if self.closed:
            return False
        if self.handle.cancelled:
            self.cancel()
            return False
        return True

    def _ensure_placeholder(self) -> str:
        if self.message_id is None:
            message = ClientMessage(sender="ai", session_id=self.session_id, status="streaming")
            self.store.add(self.conversation_id, message)
            self.message_id = message.id
            self.state = PhaseState.STREAMING
        return self.message_id

    def on_text(self, chunk: TextChunk) -> None:
        if not self._accepting():
            return
        message_id = self._ensure_placeholder()
        self.store.append_text(self.conversation_id, message_id, chunk.content)

    def on_tool_code(self, chunk: ToolCodeChunk) -> None:
        if not self._accepting():
            return
        self._ensure_placeholder()
        logger.debug("Assistant requested tools: %s", [i.tool_name for i in chunk.invocations])

    def on_error(self, chunk: ErrorChunk) -> None:
        if not self._accepting():
            return
        self.fail(chunk.content)

    def on_done(self) -> None:
        if not self._accepting():
            return
        if self.message_id is not None:
            self.store.set_status(self.conversation_id, self.message_id, "complete")
        self.state = PhaseState.FINISHED
        self.store.set_generating(self.conversation_id, False)

    def fail(self, notice: str) -> None:
        """Show ``notice`` after any text already rendered and mark the message failed."""
        if self.message_id is None:
            message = ClientMessage(sender="ai", text=notice, session_id=self.session_id)
            self.store.add(self.conversation_id, message)
            self.message_id = message.id
        else:
            current = self.store.get(self.conversation_id, self.message_id)
            separator = "\n\n" if current is not None and current.text else ""
            self.store.append_text(self.conversation_id, self.message_id, separator + notice)
        self.store.set_status(self.conversation_id, self.message_id, "failed")
        self.state = PhaseState.FAILED
        self.store.set_generating(self.conversation_id, False)

    def cancel(self) -> None:
        """Stop folding. An empty placeholder is removed; partial text stays."""
        if self.closed:
            return
        self.state = PhaseState.CANCELLED
        if self.message_id is None:
            return
        message = self.store.get(self.conversation_id, self.message_id)
        if message is not None and not message.text:
            self.store.remove(self.conversation_id, self.message_id)
            self.message_id = None
        elif message is not None:
            self.store.set_status(self.conversation_id, self.message_id, "complete")
