"""Tool-call reassembly and sequential dispatch.

Providers split a tool call across many deltas: the name arrives once, the
argument JSON arrives in pieces. :class:`ToolCallAccumulator` stitches the
pieces back together and :class:`ToolDispatcher` runs the finished calls.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass

from .errors import ToolArgumentParseError, ToolExecutionError
from .models import ToolInvocation, ToolOutcome
from .providers.base import ToolCallFragment
from .tools import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class PendingToolCall:
    """Buffered state for one in-flight call."""

    call_id: str | None = None
    name: str | None = None
    args_text: str = ""


def parse_arguments(args_text: str) -> dict:
    """Parse accumulated argument text. Only a JSON object is accepted."""
    try:
        parsed = json.loads(args_text)
    except ValueError as e:
        raise ToolArgumentParseError(f"invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ToolArgumentParseError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


class ToolCallAccumulator:
    """Assembles complete tool invocations from streaming fragments."""

    def __init__(self) -> None:
        self._pending: dict[int, PendingToolCall] = {}

    def __bool__(self) -> bool:
        return bool(self._pending)

    def feed(self, fragment: ToolCallFragment) -> None:
        call = self._pending.setdefault(fragment.index, PendingToolCall())
        if fragment.call_id and call.call_id is None:
            call.call_id = fragment.call_id
        if fragment.name and call.name is None:
            call.name = fragment.name
        if fragment.arguments_delta:
            call.args_text += fragment.arguments_delta

    def flush(self) -> list[ToolInvocation]:
        """Return every call whose arguments parse, in index order, and reset."""
        invocations: list[ToolInvocation] = []
        for index in sorted(self._pending):
            call = self._pending[index]
            if not call.name:
                logger.warning("Dropping tool call #%d without a name", index)
                continue
            try:
                args = parse_arguments(call.args_text)
            except ToolArgumentParseError as e:
                logger.warning("Dropping tool call %s: %s (raw=%r)", call.name, e, call.args_text)
                continue
            invocations.append(
                ToolInvocation(tool_name=call.name, args=args, call_id=call.call_id or f"call_{index}")
            )
        self._pending.clear()
        return invocations


class ToolDispatcher:
    """Runs invocations one after another against a tool registry."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    async def dispatch(self, invocations: list[ToolInvocation]) -> list[ToolOutcome]:
        outcomes: list[ToolOutcome] = []
        for invocation in invocations:
            runner = self._registry.lookup(invocation.tool_name)
            if runner is None:
                logger.warning("Tool not found: %s", invocation.tool_name)
                continue
            logger.info("Calling %s with %s", invocation.tool_name, invocation.args)
            try:
                result = await self._run(runner, invocation)
            except ToolExecutionError as e:
                logger.error("Tool %s raised: %s", invocation.tool_name, e)
                outcomes.append(
                    ToolOutcome(
                        invocation=invocation,
                        result={"success": False, "error": str(e)},
                        success=False,
                    )
                )
                continue
            outcomes.append(ToolOutcome(invocation=invocation, result=result))
        return outcomes

    @staticmethod
    async def _run(runner, invocation: ToolInvocation):
        try:
            result = runner(dict(invocation.args))
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise ToolExecutionError(str(e) or type(e).__name__) from e
        return result
