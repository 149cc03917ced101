"""Tests for the capability gate."""

from __future__ import annotations

import pytest
from parley.assistant.capability_gate import CapabilityGate
from parley.assistant.messages import ToolCategory
from parley.assistant.tool_router import ToolRouter


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += minutes * 60


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def modules(make_tool_module):
    return {
        "registry": make_tool_module("registry", ["tools.list", "tools.reset"], category=ToolCategory.REGISTRY),
        "weather": make_tool_module("weather", ["weather.current", "weather.forecast"], category=ToolCategory.SEARCH),
        "calendar": make_tool_module("calendar", ["calendar.list"], category=ToolCategory.PRODUCTIVITY, ready=False),
    }


@pytest.fixture
def gate(modules, clock):
    router = ToolRouter(modules.values())
    return CapabilityGate(router, ["tools.list", "tools.reset"], ttl_minutes=10, clock=clock)


def names(descriptors):
    return [descriptor.name for descriptor in descriptors]


class TestAvailableTools:
    def test_baseline_only(self, gate):
        assert names(gate.available_tools()) == ["tools.list", "tools.reset"]

    def test_enabled_tools_added(self, gate):
        gate.set_enabled_tool_names(["weather.current"])
        assert names(gate.available_tools()) == ["tools.list", "tools.reset", "weather.current"]

    def test_unready_module_hidden_even_when_enabled(self, gate, modules):
        gate.set_enabled_tool_names(["calendar.list"])
        assert "calendar.list" not in names(gate.available_tools())

        modules["calendar"].ready = True
        assert "calendar.list" in names(gate.available_tools())

    def test_sanitized_names_resolve(self, gate):
        enabled = gate.set_enabled_tool_names(["weather_forecast"])
        assert enabled == frozenset({"weather.forecast"})
        assert "weather.forecast" in names(gate.available_tools())

    def test_enable_replaces_previous_grant(self, gate):
        gate.set_enabled_tool_names(["weather.current"])
        gate.set_enabled_tool_names(["weather.forecast"])
        assert gate.enabled_tool_names == frozenset({"weather.forecast"})

    def test_empty_grant_reverts_to_baseline(self, gate):
        gate.set_enabled_tool_names(["weather.current"])
        assert gate.set_enabled_tool_names([]) == frozenset()
        assert names(gate.available_tools()) == ["tools.list", "tools.reset"]

    def test_unknown_name_logged(self, modules, clock, mock_logger):
        gate = CapabilityGate(ToolRouter(modules.values()), [], clock=clock, logger=mock_logger)
        gate.set_enabled_tool_names(["ghost.tool"])
        mock_logger.warning.assert_called_once()
        assert gate.available_tools() == []


class TestExpiry:
    def test_grant_survives_until_ttl(self, gate, clock):
        gate.set_enabled_tool_names(["weather.current"])
        clock.advance(10)
        assert "weather.current" in names(gate.available_tools())

    def test_grant_expires_after_ttl(self, gate, clock):
        gate.set_enabled_tool_names(["weather.current"])
        clock.advance(10.01)
        assert names(gate.available_tools()) == ["tools.list", "tools.reset"]
        assert gate.enabled_tool_names == frozenset()

    def test_new_grant_restarts_timer(self, gate, clock):
        gate.set_enabled_tool_names(["weather.current"])
        clock.advance(8)
        gate.set_enabled_tool_names(["weather.current"])
        clock.advance(8)
        assert "weather.current" in names(gate.available_tools())

    def test_set_ttl_applies_to_current_grant(self, gate, clock):
        gate.set_enabled_tool_names(["weather.current"])
        assert gate.set_ttl(2) == 2
        clock.advance(3)
        assert gate.enabled_tool_names == frozenset()

    def test_ttl_floor(self, gate):
        assert gate.set_ttl(0) == 1
        assert gate.set_ttl(-5) == 1
        assert gate.ttl_minutes == 1

    def test_constructor_ttl_floor(self, modules):
        assert CapabilityGate(ToolRouter(modules.values()), ttl_minutes=0).ttl_minutes == 1


class TestCatalog:
    def test_grouped_by_category_ready_only(self, gate):
        catalog = gate.tool_catalog_by_category()
        assert list(catalog) == ["registry", "search"]
        assert names(catalog["search"]) == ["weather.current", "weather.forecast"]

    def test_catalog_includes_tools_outside_grant(self, gate):
        gate.set_enabled_tool_names(["weather.current"])
        assert "weather.forecast" in names(gate.tool_catalog_by_category()["search"])
