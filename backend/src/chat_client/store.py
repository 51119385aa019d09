"""In-memory conversation store the client renders from."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Literal

Sender = Literal["user", "ai"]
MessageStatus = Literal["streaming", "complete", "failed"]


@dataclass
class ClientMessage:
    """One rendered message bubble."""

    sender: Sender
    text: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str | None = None
    status: MessageStatus = "complete"


class ConversationStore:
    """Messages keyed by conversation id, plus a per-conversation generating flag."""

    def __init__(self) -> None:
        self._messages: dict[str, list[ClientMessage]] = {}
        self._generating: dict[str, bool] = {}

    def add(self, conversation_id: str, message: ClientMessage) -> ClientMessage:
        self._messages.setdefault(conversation_id, []).append(message)
        return message

    def get(self, conversation_id: str, message_id: str) -> ClientMessage | None:
        for message in self._messages.get(conversation_id, ()):
            if message.id == message_id:
                return message
        return None

    def append_text(self, conversation_id: str, message_id: str, text: str) -> None:
        message = self.get(conversation_id, message_id)
        if message is not None:
            message.text += text

    def set_status(self, conversation_id: str, message_id: str, status: MessageStatus) -> None:
        message = self.get(conversation_id, message_id)
        if message is not None:
            message.status = status

    def remove(self, conversation_id: str, message_id: str) -> bool:
        messages = self._messages.get(conversation_id, [])
        for i, message in enumerate(messages):
            if message.id == message_id:
                del messages[i]
                return True
        return False

    def messages(self, conversation_id: str) -> list[ClientMessage]:
        """Snapshot copies; mutating them does not touch the store."""
        return [replace(m) for m in self._messages.get(conversation_id, ())]

    def set_generating(self, conversation_id: str, generating: bool) -> None:
        self._generating[conversation_id] = generating

    def is_generating(self, conversation_id: str) -> bool:
        return self._generating.get(conversation_id, False)
