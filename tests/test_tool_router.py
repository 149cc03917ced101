"""Tests for tool routing and batch execution."""

from __future__ import annotations

import pytest
from parley.assistant.errors import InvalidToolArgumentsError, ModuleUnavailableError, UnknownToolError
from parley.assistant.messages import ToolCall
from parley.assistant.tool_router import ToolModule, ToolRouter

pytestmark = pytest.mark.anyio


class TestRouting:
    async def test_routes_to_owning_module(self, make_tool_module):
        weather = make_tool_module("weather", ["weather.current"])
        music = make_tool_module("music", ["music.play", "music.pause"])
        router = ToolRouter([weather, music])

        result = await router.call_tool("music.pause", {})

        assert result.content == "ok:music.pause"
        assert music.calls == [("music.pause", {})]
        assert weather.calls == []

    async def test_sanitized_alias_resolves_to_canonical(self, make_tool_module):
        module = make_tool_module("weather", ["weather.current"])
        router = ToolRouter([module])

        await router.call_tool("weather_current", {"city": "Seoul"})

        assert module.calls == [("weather.current", {"city": "Seoul"})]
        assert router.resolve("weather_current") == ("weather.current", module)

    async def test_unknown_tool(self, make_tool_module):
        router = ToolRouter([make_tool_module("weather", ["weather.current"])])
        with pytest.raises(UnknownToolError, match="nope"):
            await router.call_tool("nope", {})

    async def test_module_not_ready(self, make_tool_module):
        module = make_tool_module("calendar", ["calendar.list"], ready=False)
        router = ToolRouter([module])
        with pytest.raises(ModuleUnavailableError):
            await router.call_tool("calendar.list", {})
        assert module.calls == []

    async def test_first_registered_module_wins(self, make_tool_module):
        first = make_tool_module("first", ["shared.tool"], result="first")
        second = make_tool_module("second", ["shared.tool"], result="second")
        router = ToolRouter([first, second])

        result = await router.call_tool("shared.tool", {})

        assert result.content == "first:shared.tool"

    async def test_register_rebuilds_table(self, make_tool_module):
        router = ToolRouter()
        assert router.resolve("late.tool") is None
        module = make_tool_module("late", ["late.tool"])
        router.register(module)
        assert router.resolve("late.tool") == ("late.tool", module)
        assert router.modules == [module]

    async def test_descriptors_in_registration_order(self, make_tool_module):
        router = ToolRouter([make_tool_module("a", ["a.one", "a.two"]), make_tool_module("b", ["b.one"])])
        assert [tool.name for tool in router.descriptors()] == ["a.one", "a.two", "b.one"]

    async def test_base_module_owns_nothing(self):
        module = ToolModule()
        assert module.tools == []
        assert module.is_ready
        assert not module.owns("anything")
        with pytest.raises(UnknownToolError):
            await module.call_tool("anything", {})


class TestExecute:
    async def test_results_in_call_order_with_ids(self, make_tool_module):
        router = ToolRouter([make_tool_module("m", ["m.a", "m.b"])])
        calls = [ToolCall(id="call_2", name="m.b"), ToolCall(id="call_1", name="m.a", arguments='{"x": 1}')]

        results = await router.execute(calls)

        assert [(r.tool_call_id, r.content, r.is_error) for r in results] == [
            ("call_2", "ok:m.b", False),
            ("call_1", "ok:m.a", False),
        ]

    async def test_parsed_arguments_passed(self, make_tool_module):
        module = make_tool_module("m", ["m.a"])
        router = ToolRouter([module])
        await router.execute([ToolCall(id="c", name="m.a", arguments='{"x": 1}')])
        assert module.calls == [("m.a", {"x": 1})]

    async def test_malformed_arguments_become_empty(self, make_tool_module):
        module = make_tool_module("m", ["m.a"])
        router = ToolRouter([module])
        await router.execute([ToolCall(id="c", name="m.a", arguments="{oops")])
        assert module.calls == [("m.a", {})]

    async def test_unknown_tool_becomes_error_result(self, make_tool_module, mock_logger):
        router = ToolRouter([make_tool_module("m", ["m.a"])], logger=mock_logger)

        (result,) = await router.execute([ToolCall(id="c", name="missing")])

        assert result.is_error
        assert result.tool_call_id == "c"
        assert "Unknown tool: missing" in result.content
        mock_logger.warning.assert_called()

    async def test_module_failure_does_not_stop_batch(self, make_tool_module, mock_logger):
        broken = make_tool_module("broken", ["broken.run"], error=RuntimeError("disk on fire"))
        fine = make_tool_module("fine", ["fine.run"])
        router = ToolRouter([broken, fine], logger=mock_logger)

        results = await router.execute([ToolCall(id="1", name="broken.run"), ToolCall(id="2", name="fine.run")])

        assert results[0].is_error and "disk on fire" in results[0].content
        assert results[1].content == "ok:fine.run"
        mock_logger.exception.assert_called_once()

    async def test_tool_error_from_module(self, make_tool_module):
        module = make_tool_module("m", ["m.a"], error=InvalidToolArgumentsError("x must be positive"))
        (result,) = await ToolRouter([module]).execute([ToolCall(id="c", name="m.a")])
        assert result.is_error
        assert result.content == "Error: x must be positive"

    async def test_empty_batch(self):
        assert await ToolRouter().execute([]) == []
