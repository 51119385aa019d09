"""Streaming orchestrator: two-phase tool-calling completions over a chunk stream."""

from .adapter import CompletionStreamAdapter
from .cancellation import ActiveRequests, CancellationToken, RequestHandle
from .chunks import Chunk, ErrorChunk, TextChunk, ToolCodeChunk
from .context import PromptOptions, build_context
from .llm import get_provider_for_model, set_default_provider
from .models import Message, ToolInvocation, ToolOutcome, UserPreferences
from .orchestrator import OrchestratorState, TwoPhaseOrchestrator
from .providers import LLMProvider, OllamaProvider, ProviderDelta, ToolCallFragment
from .tools import ToolRegistry, get_tools_for_user
from .wire import FrameDecoder, decode_frames, encode_chunk

__all__ = [
    "CompletionStreamAdapter",
    "TwoPhaseOrchestrator",
    "OrchestratorState",
    "ActiveRequests",
    "CancellationToken",
    "RequestHandle",
    "Chunk",
    "TextChunk",
    "ToolCodeChunk",
    "ErrorChunk",
    "PromptOptions",
    "build_context",
    "Message",
    "ToolInvocation",
    "ToolOutcome",
    "UserPreferences",
    "LLMProvider",
    "OllamaProvider",
    "ProviderDelta",
    "ToolCallFragment",
    "ToolRegistry",
    "get_tools_for_user",
    "get_provider_for_model",
    "set_default_provider",
    "FrameDecoder",
    "decode_frames",
    "encode_chunk",
]
