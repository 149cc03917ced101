"""Conversation, tool and stream event types shared across providers."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from .tool_router import ToolModule


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class ToolCategory(str, Enum):
    """Fixed taxonomy used to group tools for introspection."""

    REGISTRY = "registry"
    SEARCH = "search"
    PRODUCTIVITY = "productivity"
    MEDIA = "media"
    DEVICE = "device"
    SETTINGS = "settings"
    WORKSPACE = "workspace"
    AGENT = "agent"
    MESSAGING = "messaging"
    OTHER = "other"


_UNSAFE_TOOL_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_tool_name(name: str) -> str:
    """Map a tool name onto the ``^[a-zA-Z0-9_-]+$`` alphabet providers accept."""
    return _UNSAFE_TOOL_NAME_CHARS.sub("_", name)


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model.

    ``arguments`` holds the raw JSON text exactly as it was streamed; it may be
    empty or malformed when the provider cut the call short.
    """

    id: str
    name: str
    arguments: str = ""

    def parsed_arguments(self) -> dict[str, Any]:
        if not self.arguments.strip():
            return {}
        try:
            parsed = json.loads(self.arguments)
        except (TypeError, ValueError):
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def arguments_json(self) -> str:
        try:
            return json.dumps(self.parsed_arguments(), ensure_ascii=False)
        except (TypeError, ValueError):
            return "{}"


@dataclass(frozen=True)
class ToolResult:
    tool_call_id: str
    content: str
    is_error: bool = False


@dataclass(frozen=True)
class Message:
    role: Role
    content: str = ""
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    is_error: bool = False

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str = "", tool_calls: tuple[ToolCall, ...] | list[ToolCall] = ()) -> Message:
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def tool_result(cls, result: ToolResult) -> Message:
        return cls(
            role=Role.TOOL,
            content=result.content,
            tool_call_id=result.tool_call_id,
            is_error=result.is_error,
        )


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    category: ToolCategory = ToolCategory.OTHER
    module: ToolModule | None = field(default=None, compare=False, repr=False)


# ---------------------------------------------------------------------------
# Normalized stream events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ToolCallStart:
    id: str
    name: str


@dataclass(frozen=True)
class ToolCallArgsDelta:
    text: str


@dataclass(frozen=True)
class UsageDelta:
    """Token counts reported mid-stream; ``None`` means not reported in this payload."""

    input_tokens: int | None = None
    output_tokens: int | None = None


@dataclass(frozen=True)
class StreamEnd:
    pass


StreamEvent = TextDelta | ToolCallStart | ToolCallArgsDelta | UsageDelta | StreamEnd


@dataclass(frozen=True)
class TokenUsage:
    """Token counts for one exchange, as far as the provider reported them."""

    input_tokens: int | None = None
    output_tokens: int | None = None

    @property
    def total_tokens(self) -> int:
        return (self.input_tokens or 0) + (self.output_tokens or 0)

    def merge(self, delta: UsageDelta) -> TokenUsage:
        # Counts are running totals: a later value replaces an earlier one.
        return TokenUsage(
            input_tokens=delta.input_tokens if delta.input_tokens is not None else self.input_tokens,
            output_tokens=delta.output_tokens if delta.output_tokens is not None else self.output_tokens,
        )
