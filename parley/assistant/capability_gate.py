"""Session-scoped gate deciding which tools the model may see."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable

from .config import DEFAULT_TOOLS_TTL_MINUTES, MIN_TOOLS_TTL_MINUTES
from .messages import ToolCategory, ToolDescriptor
from .tool_router import ToolRouter

LOGGER = logging.getLogger(__name__)


class CapabilityGate:
    """Expose a baseline tool set plus a temporary, model-granted extension.

    The extension expires ``ttl_minutes`` after it was granted and the gate
    falls back to the baseline without telling anyone. Module readiness is
    asked for on every call, so a tool appears as soon as its module gains the
    credential or dependency it needs.
    """

    def __init__(
        self,
        router: ToolRouter,
        baseline: Iterable[str] = (),
        *,
        ttl_minutes: int = DEFAULT_TOOLS_TTL_MINUTES,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        self._router = router
        self._baseline = frozenset(baseline)
        self._ttl_minutes = max(MIN_TOOLS_TTL_MINUTES, int(ttl_minutes))
        self._clock = clock
        self._logger = logger or LOGGER
        self._lock = threading.Lock()
        self._enabled: frozenset[str] | None = None
        self._granted_at: float | None = None

    @property
    def baseline(self) -> frozenset[str]:
        return self._baseline

    @property
    def ttl_minutes(self) -> int:
        return self._ttl_minutes

    @property
    def enabled_tool_names(self) -> frozenset[str]:
        with self._lock:
            self._expire_locked()
            return self._enabled or frozenset()

    def set_ttl(self, minutes: int) -> int:
        with self._lock:
            self._ttl_minutes = max(MIN_TOOLS_TTL_MINUTES, int(minutes))
            self._logger.info("[gate] Enabled tools TTL set to %d minutes", self._ttl_minutes)
            return self._ttl_minutes

    def set_enabled_tool_names(self, names: Iterable[str] | None) -> frozenset[str]:
        """Replace the granted tool set; an empty or missing list reverts to baseline."""
        resolved = {self._canonical_name(name) for name in (names or ()) if name}
        with self._lock:
            if not resolved:
                self._enabled = None
                self._granted_at = None
                self._logger.info("[gate] Enabled tools reset to baseline")
                return frozenset()
            self._enabled = frozenset(resolved)
            self._granted_at = self._clock()
            self._logger.info("[gate] Enabled tools: %s", ", ".join(sorted(self._enabled)))
            return self._enabled

    def available_tools(self) -> list[ToolDescriptor]:
        with self._lock:
            self._expire_locked()
            allowed = self._baseline | (self._enabled or frozenset())
            return [descriptor for descriptor in self._ready_descriptors() if descriptor.name in allowed]

    def tool_catalog_by_category(self) -> dict[str, list[ToolDescriptor]]:
        """Everything that could be enabled right now, grouped by category."""
        catalog: dict[str, list[ToolDescriptor]] = {category.value: [] for category in ToolCategory}
        for descriptor in self._ready_descriptors():
            catalog[ToolCategory(descriptor.category).value].append(descriptor)
        return {category: tools for category, tools in catalog.items() if tools}

    def _expire_locked(self) -> None:
        if self._enabled is None or self._granted_at is None:
            return
        if self._clock() - self._granted_at > self._ttl_minutes * 60:
            self._logger.info("[gate] Enabled tools expired after %d minutes", self._ttl_minutes)
            self._enabled = None
            self._granted_at = None

    def _ready_descriptors(self) -> list[ToolDescriptor]:
        seen: set[str] = set()
        ready: list[ToolDescriptor] = []
        for module in self._router.modules:
            if not module.is_ready:
                continue
            for descriptor in module.tools:
                if descriptor.name in seen:
                    continue
                seen.add(descriptor.name)
                ready.append(descriptor)
        return ready

    def _canonical_name(self, name: str) -> str:
        route = self._router.resolve(name)
        if route is None:
            self._logger.warning("[gate] Enabling unknown tool %s", name)
            return name
        return route[0]
