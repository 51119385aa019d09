"""Completion Stream Adapter: provider deltas in, canonical chunks out.

The adapter owns the retry budget for one generation phase and never raises
to its caller. Failures surface as a single :class:`ErrorChunk`; cancellation
ends the stream silently.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any

from .accumulator import ToolCallAccumulator
from .cancellation import CancellationToken
from .chunks import Chunk, ErrorChunk, TextChunk, ToolCodeChunk
from .config import DEFAULT_DECODING, DEFAULT_RETRY_POLICY, DecodingConfig, RetryPolicy
from .errors import ConfigurationError, RequestCancelled, user_message_for
from .llm import get_provider_for_model
from .models import Message
from .providers.base import TOOL_CALLS_FINISHED, LLMProvider

logger = logging.getLogger(__name__)


class CompletionStreamAdapter:
    """Streams one completion as Text / ToolCode / Error chunks."""

    def __init__(
        self,
        provider: LLMProvider | None = None,
        model: str | None = None,
        decoding: DecodingConfig = DEFAULT_DECODING,
        retry: RetryPolicy = DEFAULT_RETRY_POLICY,
    ) -> None:
        self._provider = provider
        self._model = model
        self.decoding = decoding
        self.retry = retry

    def _resolve(self) -> tuple[LLMProvider, str | None]:
        if self._provider is not None:
            return self._provider, self._model
        return get_provider_for_model(self._model)

    async def stream(
        self,
        context: list[Message],
        tools: list[dict[str, Any]] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> AsyncIterator[Chunk]:
        token = cancellation or CancellationToken()
        try:
            provider, model_name = self._resolve()
        except ConfigurationError as e:
            logger.error("Provider configuration failed: %s", e)
            yield ErrorChunk(content=user_message_for(e))
            return

        attempts = max(1, self.retry.max_attempts)
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            if token.cancelled:
                return
            emitted = False
            accumulator = ToolCallAccumulator()
            try:
                deltas = provider.stream_deltas(
                    context, model=model_name, tools=tools or None, **self.decoding.to_kwargs()
                )
                async with aclosing(deltas):
                    async for delta in token.iterate(deltas):
                        if delta.content:
                            emitted = True
                            yield TextChunk(content=delta.content)
                        for fragment in delta.tool_call_fragments or ():
                            accumulator.feed(fragment)
                        if delta.finish_reason == TOOL_CALLS_FINISHED:
                            invocations = accumulator.flush()
                            if invocations:
                                emitted = True
                                yield ToolCodeChunk(invocations=invocations)
                if accumulator:
                    logger.warning("Stream ended with unflushed tool calls; dropping them")
                return
            except RequestCancelled:
                logger.info("Completion stream cancelled")
                return
            except ConfigurationError as e:
                logger.error("Provider configuration failed: %s", e)
                yield ErrorChunk(content=user_message_for(e))
                return
            except Exception as e:
                last_error = e
                if emitted:
                    # Partial output already reached the caller; a restart would duplicate it.
                    yield ErrorChunk(content=user_message_for(e, logger))
                    return
                logger.warning("Provider attempt %d/%d failed: %s", attempt, attempts, e)
            if attempt < attempts and not await token.sleep(self.retry.delay):
                return

        if token.cancelled:
            return
        logger.error("Provider failed after %d attempts", attempts)
        yield ErrorChunk(content=user_message_for(last_error, logger))
