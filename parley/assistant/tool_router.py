"""Tool modules and dispatch of completed tool calls."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from .errors import ModuleUnavailableError, ToolError, UnknownToolError
from .messages import ToolCall, ToolDescriptor, ToolResult, sanitize_tool_name

LOGGER = logging.getLogger(__name__)


class ToolModule:
    """A group of related tools owned by one collaborator.

    Subclasses list their descriptors in ``tools`` and implement ``call_tool``,
    raising :class:`UnknownToolError` only for names they do not own.
    """

    name = "tools"

    @property
    def tools(self) -> list[ToolDescriptor]:
        return []

    @property
    def is_ready(self) -> bool:
        """Whether the module can run right now (credentials, dependencies)."""
        return True

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        raise UnknownToolError(name)

    def owns(self, name: str) -> bool:
        return any(tool.name == name for tool in self.tools)


class ToolRouter:
    """Route tool calls to their owning module through a flat name table.

    The table is built when modules are registered and rebuilt on demand; the
    first module registered for a name wins. Sanitized aliases (``tools_list``
    for ``tools.list``) resolve to the same module, since that is the form
    providers echo back.
    """

    def __init__(self, modules: Iterable[ToolModule] = (), logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER
        self._modules: list[ToolModule] = list(modules)
        self._routes: dict[str, tuple[str, ToolModule]] = {}
        self.rebuild()

    @property
    def modules(self) -> list[ToolModule]:
        return list(self._modules)

    def register(self, module: ToolModule) -> None:
        self._modules.append(module)
        self.rebuild()

    def rebuild(self) -> None:
        routes: dict[str, tuple[str, ToolModule]] = {}
        for module in self._modules:
            for tool in module.tools:
                for key in (tool.name, sanitize_tool_name(tool.name)):
                    if key in routes:
                        if routes[key][1] is not module:
                            self._logger.debug("[tools] %s already routed to %s", key, routes[key][1].name)
                        continue
                    routes[key] = (tool.name, module)
        self._routes = routes
        self._logger.debug("[tools] Routing table rebuilt with %d tool names", len(routes))

    def descriptors(self) -> list[ToolDescriptor]:
        """All descriptors of all registered modules, in registration order."""
        found: list[ToolDescriptor] = []
        for module in self._modules:
            found.extend(module.tools)
        return found

    def resolve(self, name: str) -> tuple[str, ToolModule] | None:
        return self._routes.get(name)

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        route = self._routes.get(name)
        if route is None:
            raise UnknownToolError(name)
        canonical, module = route
        if not module.is_ready:
            raise ModuleUnavailableError(canonical)
        return await module.call_tool(canonical, arguments)

    async def execute(self, calls: Sequence[ToolCall]) -> list[ToolResult]:
        """Run a batch of calls one after another, in arrival order.

        Failures never escape: each becomes an error result for the model.
        """
        results: list[ToolResult] = []
        for call in calls:
            self._logger.info("[tools] Executing %s", call.name)
            try:
                result = await self.call_tool(call.name, call.parsed_arguments())
            except ToolError as exc:
                self._logger.warning("[tools] %s failed: %s", call.name, exc)
                result = ToolResult(tool_call_id=call.id, content=f"Error: {exc}", is_error=True)
            except Exception as exc:
                self._logger.exception("[tools] %s raised", call.name)
                result = ToolResult(tool_call_id=call.id, content=f"Error: {exc}", is_error=True)
            else:
                # Modules do not know the provider's correlation id.
                if result.tool_call_id != call.id:
                    result = ToolResult(tool_call_id=call.id, content=result.content, is_error=result.is_error)
                if result.is_error:
                    self._logger.warning("[tools] %s returned error: %s", call.name, result.content)
            results.append(result)
        return results
