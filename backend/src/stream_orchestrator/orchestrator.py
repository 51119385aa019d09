"""Two-phase orchestration: stream, run requested tools, stream the final answer."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from enum import Enum

from .accumulator import ToolDispatcher
from .adapter import CompletionStreamAdapter
from .cancellation import RequestHandle
from .chunks import Chunk, ErrorChunk, TextChunk, ToolCodeChunk
from .db import Persistence
from .models import Message, ToolInvocation, ToolOutcome
from .tools import ToolRegistry

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    PHASE1_STREAMING = "phase1_streaming"
    TOOLS_EXECUTING = "tools_executing"
    PHASE2_STREAMING = "phase2_streaming"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


def build_phase2_context(
    context: list[Message],
    assistant_text: str,
    outcomes: list[ToolOutcome],
) -> list[Message]:
    """Phase 1 context plus the assistant's tool request and one tool turn per outcome."""
    calls = [
        {
            "id": o.invocation.call_id,
            "name": o.invocation.tool_name,
            "params": o.invocation.args,
        }
        for o in outcomes
    ]
    turns = list(context)
    turns.append(Message(role="assistant", content=assistant_text, tool_calls=calls))
    for o in outcomes:
        turns.append(
            Message(
                role="tool",
                content=json.dumps(o.result, default=str),
                tool_call_id=o.invocation.call_id,
                name=o.invocation.tool_name,
            )
        )
    return turns


class TwoPhaseOrchestrator:
    """
    Drives one request through Phase 1, optional tool execution and Phase 2.

    Every forwarded chunk is yielded in generation order. The final text is
    handed to ``persistence`` only when the run reaches DONE.
    """

    def __init__(
        self,
        adapter: CompletionStreamAdapter,
        registry: ToolRegistry,
        persistence: Persistence | None = None,
    ) -> None:
        self.adapter = adapter
        self.registry = registry
        self.persistence = persistence
        self.state = OrchestratorState.PHASE1_STREAMING

    def _enter(self, state: OrchestratorState) -> None:
        logger.debug("Orchestrator %s -> %s", self.state.value, state.value)
        self.state = state

    async def run(
        self,
        context: list[Message],
        handle: RequestHandle,
        session_id: str,
    ) -> AsyncIterator[Chunk]:
        token = handle.token
        self._enter(OrchestratorState.PHASE1_STREAMING)

        phase1_text: list[str] = []
        invocations: list[ToolInvocation] = []
        async with aclosing(self.adapter.stream(context, self.registry.tool_schemas(), token)) as chunks:
            async for chunk in chunks:
                if token.cancelled:
                    break
                if isinstance(chunk, ErrorChunk):
                    self._enter(OrchestratorState.FAILED)
                    yield chunk
                    return
                if isinstance(chunk, TextChunk):
                    phase1_text.append(chunk.content)
                elif isinstance(chunk, ToolCodeChunk):
                    invocations.extend(chunk.invocations)
                yield chunk
        if token.cancelled:
            self._enter(OrchestratorState.CANCELLED)
            return

        final_text = "".join(phase1_text)
        if invocations:
            self._enter(OrchestratorState.TOOLS_EXECUTING)
            outcomes = await ToolDispatcher(self.registry).dispatch(invocations)
            failed = [o.invocation.tool_name for o in outcomes if not o.success]
            if failed:
                logger.warning("Continuing with failed tools: %s", ", ".join(failed))
            if token.cancelled:
                self._enter(OrchestratorState.CANCELLED)
                return

            self._enter(OrchestratorState.PHASE2_STREAMING)
            phase2_context = build_phase2_context(context, final_text, outcomes)
            phase2_text: list[str] = []
            async with aclosing(self.adapter.stream(phase2_context, None, token)) as chunks:
                async for chunk in chunks:
                    if token.cancelled:
                        break
                    if isinstance(chunk, ErrorChunk):
                        self._enter(OrchestratorState.FAILED)
                        yield chunk
                        return
                    if isinstance(chunk, ToolCodeChunk):
                        logger.info("Ignoring tool request in the final phase")
                        continue
                    phase2_text.append(chunk.content)
                    yield chunk
            if token.cancelled:
                self._enter(OrchestratorState.CANCELLED)
                return
            final_text = "".join(phase2_text)

        self._enter(OrchestratorState.DONE)
        if final_text.strip() and self.persistence is not None:
            await asyncio.to_thread(self.persistence.save, "assistant", final_text, session_id)
