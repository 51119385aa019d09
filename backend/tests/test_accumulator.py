"""Tool-call reassembly and sequential dispatch."""
from __future__ import annotations

import unittest

from src.stream_orchestrator.accumulator import ToolCallAccumulator, ToolDispatcher, parse_arguments
from src.stream_orchestrator.errors import ToolArgumentParseError
from src.stream_orchestrator.models import ToolDef, ToolInvocation
from src.stream_orchestrator.providers.base import ToolCallFragment
from src.stream_orchestrator.tools import ToolRegistry


def _registry(**runners) -> ToolRegistry:
    registry = ToolRegistry()
    for name, runner in runners.items():
        registry.register(ToolDef(name=name, description=name, parameters={"type": "object"}), runner)
    return registry


class TestAccumulator(unittest.TestCase):
    def test_fragmented_arguments_accumulate_to_json(self) -> None:
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=0, call_id="c1", name="t", arguments_delta='{"x"'))
        acc.feed(ToolCallFragment(index=0, arguments_delta=":1"))
        acc.feed(ToolCallFragment(index=0, arguments_delta="}"))
        invocations = acc.flush()
        self.assertEqual(len(invocations), 1)
        self.assertEqual(invocations[0].tool_name, "t")
        self.assertEqual(invocations[0].args, {"x": 1})
        self.assertEqual(invocations[0].call_id, "c1")

    def test_never_valid_json_is_dropped(self) -> None:
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=0, name="t", arguments_delta='{"x"'))
        acc.feed(ToolCallFragment(index=0, arguments_delta=":1"))
        self.assertEqual(acc.flush(), [])

    def test_name_is_set_once_and_calls_ordered_by_index(self) -> None:
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=1, name="second", arguments_delta="{}"))
        acc.feed(ToolCallFragment(index=0, name="first", arguments_delta="{}"))
        acc.feed(ToolCallFragment(index=0, name="renamed"))
        invocations = acc.flush()
        self.assertEqual([i.tool_name for i in invocations], ["first", "second"])
        self.assertEqual([i.call_id for i in invocations], ["call_0", "call_1"])

    def test_flush_resets_and_drops_nameless_calls(self) -> None:
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=0, arguments_delta="{}"))
        self.assertTrue(acc)
        self.assertEqual(acc.flush(), [])
        self.assertFalse(acc)

    def test_parse_arguments_requires_object(self) -> None:
        self.assertEqual(parse_arguments('{"a": [1]}'), {"a": [1]})
        with self.assertRaises(ToolArgumentParseError):
            parse_arguments("[1, 2]")
        with self.assertRaises(ToolArgumentParseError):
            parse_arguments("")


class TestDispatcher(unittest.IsolatedAsyncioTestCase):
    async def test_runs_sequentially_in_emission_order(self) -> None:
        order: list[str] = []

        async def slow(args):
            order.append("slow")
            return {"n": args["n"]}

        def fast(args):
            order.append("fast")
            return "ok"

        outcomes = await ToolDispatcher(_registry(slow=slow, fast=fast)).dispatch(
            [ToolInvocation(tool_name="slow", args={"n": 1}), ToolInvocation(tool_name="fast")]
        )
        self.assertEqual(order, ["slow", "fast"])
        self.assertEqual([o.result for o in outcomes], [{"n": 1}, "ok"])
        self.assertTrue(all(o.success for o in outcomes))

    async def test_unknown_tool_is_dropped(self) -> None:
        outcomes = await ToolDispatcher(_registry(known=lambda a: 1)).dispatch(
            [ToolInvocation(tool_name="missing"), ToolInvocation(tool_name="known")]
        )
        self.assertEqual([o.invocation.tool_name for o in outcomes], ["known"])

    async def test_raising_runner_yields_failure_payload(self) -> None:
        def boom(args):
            raise RuntimeError("disk full")

        outcomes = await ToolDispatcher(_registry(boom=boom)).dispatch([ToolInvocation(tool_name="boom")])
        self.assertEqual(len(outcomes), 1)
        self.assertFalse(outcomes[0].success)
        self.assertEqual(outcomes[0].result, {"success": False, "error": "disk full"})


class TestRegistry(unittest.TestCase):
    def test_duplicate_registration_rejected(self) -> None:
        registry = _registry(t=lambda a: None)
        with self.assertRaises(ValueError):
            registry.register(ToolDef(name="t", description="", parameters={}), lambda a: None)

    def test_schemas_use_function_calling_shape(self) -> None:
        schemas = _registry(t=lambda a: None).tool_schemas()
        self.assertEqual(schemas[0]["type"], "function")
        self.assertEqual(schemas[0]["function"]["name"], "t")


if __name__ == "__main__":
    unittest.main()
