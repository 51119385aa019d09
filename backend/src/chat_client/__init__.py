"""Chat client: streams replies from the chat endpoint into a conversation store."""

from .consumer import FAILURE_NOTICE, ChatClient, consume
from .reducer import MessageReducer, PhaseState
from .store import ClientMessage, ConversationStore

__all__ = [
    "ChatClient",
    "consume",
    "FAILURE_NOTICE",
    "MessageReducer",
    "PhaseState",
    "ClientMessage",
    "ConversationStore",
]
