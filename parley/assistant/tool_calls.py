"""Reassembly of tool calls streamed in fragments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .messages import StreamEnd, StreamEvent, ToolCall, ToolCallArgsDelta, ToolCallStart

LOGGER = logging.getLogger(__name__)


@dataclass
class _PendingCall:
    id: str
    name: str
    fragments: list[str] = field(default_factory=list)

    def finalize(self) -> ToolCall:
        return ToolCall(id=self.id, name=self.name, arguments="".join(self.fragments))


class ToolCallAssembler:
    """Collect tool call fragments into complete calls, in arrival order.

    At most one call is open at a time. Starting a new call archives the open
    one; the end of the stream archives whatever is still open.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or LOGGER
        self._current: _PendingCall | None = None
        self._completed: list[ToolCall] = []

    @property
    def completed(self) -> list[ToolCall]:
        return list(self._completed)

    @property
    def in_progress(self) -> bool:
        return self._current is not None

    def feed(self, event: StreamEvent) -> None:
        if isinstance(event, ToolCallStart):
            self._archive_current()
            self._current = _PendingCall(id=event.id, name=event.name)
        elif isinstance(event, ToolCallArgsDelta):
            if self._current is None:
                # Nothing was ever opened, so there is no call to attribute this to.
                self._logger.debug("[tools] Dropping argument fragment with no open tool call")
                return
            self._current.fragments.append(event.text)
        elif isinstance(event, StreamEnd):
            self._archive_current()

    def reset(self) -> None:
        self._current = None
        self._completed = []

    def _archive_current(self) -> None:
        if self._current is None:
            return
        self._completed.append(self._current.finalize())
        self._current = None
