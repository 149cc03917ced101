"""Meta-tools that let the model inspect and broaden its own tool set."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from .errors import UnknownToolError
from .messages import ToolCategory, ToolDescriptor, ToolResult
from .tool_router import ToolModule

if TYPE_CHECKING:  # pragma: no cover
    from .capability_gate import CapabilityGate


def _string_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [item for item in value if isinstance(item, str) and item]


class RegistryTools(ToolModule):
    """``tools.*`` functions backed by a :class:`CapabilityGate`.

    The gate is attached after construction because it needs the router that
    this module is registered with.
    """

    name = "registry"

    def __init__(self, gate: CapabilityGate | None = None) -> None:
        self.gate = gate

    @property
    def is_ready(self) -> bool:
        return self.gate is not None

    @property
    def tools(self) -> list[ToolDescriptor]:
        return [
            ToolDescriptor(
                name="tools.list",
                description="List tools that can be enabled, grouped by category. Does not include full schemas.",
                category=ToolCategory.REGISTRY,
                module=self,
            ),
            ToolDescriptor(
                name="tools.enable",
                description=(
                    "Enable a set of tools by name. Only enabled tools (plus the baseline) are exposed "
                    "in subsequent requests, for a limited time."
                ),
                parameters={
                    "type": "object",
                    "properties": {"names": {"type": "array", "items": {"type": "string"}}},
                    "required": ["names"],
                },
                category=ToolCategory.REGISTRY,
                module=self,
            ),
            ToolDescriptor(
                name="tools.enable_categories",
                description="Enable every tool in the given categories (see tools.list for category names).",
                parameters={
                    "type": "object",
                    "properties": {"categories": {"type": "array", "items": {"type": "string"}}},
                    "required": ["categories"],
                },
                category=ToolCategory.REGISTRY,
                module=self,
            ),
            ToolDescriptor(
                name="tools.enable_ttl",
                description="Set how many minutes enabled tools stay available (minimum 1).",
                parameters={
                    "type": "object",
                    "properties": {"minutes": {"type": "integer"}},
                    "required": ["minutes"],
                },
                category=ToolCategory.REGISTRY,
                module=self,
            ),
            ToolDescriptor(
                name="tools.reset",
                description="Reset enabled tools back to the baseline set.",
                category=ToolCategory.REGISTRY,
                module=self,
            ),
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        gate = self.gate
        if gate is None:
            return ToolResult(tool_call_id="", content="Tool registry is unavailable", is_error=True)

        if name == "tools.list":
            catalog = {
                category: [{"name": tool.name, "description": tool.description} for tool in tools]
                for category, tools in gate.tool_catalog_by_category().items()
            }
            return ToolResult(tool_call_id="", content=json.dumps(catalog, ensure_ascii=False, indent=2))

        if name == "tools.enable":
            names = _string_list(arguments.get("names"))
            if names is None:
                return ToolResult(tool_call_id="", content="names array is required", is_error=True)
            enabled = gate.set_enabled_tool_names(names)
            return ToolResult(tool_call_id="", content=f"Enabled tools: {', '.join(sorted(enabled)) or 'none'}")

        if name == "tools.enable_categories":
            categories = _string_list(arguments.get("categories"))
            if categories is None:
                return ToolResult(tool_call_id="", content="categories array is required", is_error=True)
            catalog = gate.tool_catalog_by_category()
            names = [tool.name for category in categories for tool in catalog.get(category.lower(), [])]
            enabled = gate.set_enabled_tool_names(names)
            return ToolResult(
                tool_call_id="",
                content=f"Enabled categories: {', '.join(categories)} -> tools: {', '.join(sorted(enabled)) or 'none'}",
            )

        if name == "tools.enable_ttl":
            minutes = arguments.get("minutes")
            if isinstance(minutes, bool) or not isinstance(minutes, int):
                return ToolResult(tool_call_id="", content="minutes (integer) is required", is_error=True)
            applied = gate.set_ttl(minutes)
            return ToolResult(tool_call_id="", content=f"Enabled tools TTL set to {applied} minutes")

        if name == "tools.reset":
            gate.set_enabled_tool_names(None)
            return ToolResult(tool_call_id="", content="Enabled tools reset to baseline")

        raise UnknownToolError(name)
