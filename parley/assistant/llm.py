"""LLM provider adapters.

Each adapter owns everything that differs between provider families: auth
headers, body shape, tool schema format and the mapping of one streamed
payload to normalized stream events.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .config import LLMConfig
from .messages import (
    Message,
    Role,
    StreamEnd,
    StreamEvent,
    TextDelta,
    ToolCall,
    ToolCallArgsDelta,
    ToolCallStart,
    ToolDescriptor,
    ToolResult,
    UsageDelta,
    sanitize_tool_name,
)

LOGGER = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
EMPTY_OBJECT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    ZAI = "zai"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Provider.OPENAI: "OpenAI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.ZAI: "Z.AI",
}


@dataclass(frozen=True)
class LLMRequest:
    url: str
    headers: dict[str, str]
    body: dict[str, Any]


class ProviderAdapter:
    """Provider-specific request building and stream payload parsing."""

    provider: Provider
    default_base_url: str = ""
    endpoint_path: str = ""

    def __init__(self, base_url: str | None = None, logger: logging.Logger | None = None) -> None:
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self._logger = logger or LOGGER

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.endpoint_path}"

    def build_request(
        self,
        messages: Sequence[Message],
        system_prompt: str,
        model: str,
        credential: str,
        tools: Sequence[ToolDescriptor] = (),
        tool_results: Sequence[ToolResult] = (),
    ) -> LLMRequest:
        raise NotImplementedError

    def format_tool_schema(self, descriptor: ToolDescriptor) -> dict[str, Any]:
        raise NotImplementedError

    def parse_stream_event(self, payload: dict[str, Any]) -> list[StreamEvent]:
        """Map one decoded data payload to zero or more stream events."""
        raise NotImplementedError

    def error_message(self, payload: dict[str, Any]) -> str | None:
        """Return the provider's in-band error message, if the payload is one."""
        error = payload.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("type") or "unknown error")
        if isinstance(error, str) and error:
            return error
        return None

    def _format_tools(self, tools: Iterable[ToolDescriptor]) -> list[dict[str, Any]]:
        return [self.format_tool_schema(tool) for tool in tools]


# ---------------------------------------------------------------------------
# OpenAI-compatible chat completions (OpenAI, Z.AI)
# ---------------------------------------------------------------------------


class OpenAIAdapter(ProviderAdapter):
    provider = Provider.OPENAI
    default_base_url = "https://api.openai.com/v1"
    endpoint_path = "/chat/completions"
    request_usage = True

    def build_request(
        self,
        messages: Sequence[Message],
        system_prompt: str,
        model: str,
        credential: str,
        tools: Sequence[ToolDescriptor] = (),
        tool_results: Sequence[ToolResult] = (),
    ) -> LLMRequest:
        headers = {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
        }
        return LLMRequest(
            url=self.url,
            headers=headers,
            body=self._build_body(messages, system_prompt, model, tools, tool_results),
        )

    def format_tool_schema(self, descriptor: ToolDescriptor) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": sanitize_tool_name(descriptor.name),
                "description": descriptor.description,
                "parameters": descriptor.parameters or EMPTY_OBJECT_SCHEMA,
            },
        }

    def parse_stream_event(self, payload: dict[str, Any]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        usage = _usage_delta(payload.get("usage"), "prompt_tokens", "completion_tokens")
        if usage is not None:
            events.append(usage)

        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return events
        delta = choices[0].get("delta")
        if not isinstance(delta, dict):
            return events

        content = delta.get("content")
        if isinstance(content, str) and content:
            events.append(TextDelta(content))

        tool_calls = delta.get("tool_calls")
        if isinstance(tool_calls, list):
            for fragment in tool_calls:
                if isinstance(fragment, dict):
                    events.extend(_openai_tool_call_events(fragment))
        return events

    def _build_body(
        self,
        messages: Sequence[Message],
        system_prompt: str,
        model: str,
        tools: Sequence[ToolDescriptor],
        tool_results: Sequence[ToolResult],
    ) -> dict[str, Any]:
        api_messages: list[dict[str, Any]] = []
        if system_prompt:
            api_messages.append({"role": "system", "content": system_prompt})

        for message in messages:
            api_messages.append(_openai_message(message))

        for result in tool_results:
            api_messages.append(
                {
                    "role": "tool",
                    "tool_call_id": result.tool_call_id,
                    "content": result.content,
                }
            )

        body: dict[str, Any] = {
            "model": model,
            "messages": api_messages,
            "stream": True,
        }
        if self.request_usage:
            body["stream_options"] = {"include_usage": True}
        if tools:
            body["tools"] = self._format_tools(tools)
        return body


class ZAIAdapter(OpenAIAdapter):
    provider = Provider.ZAI
    default_base_url = "https://open.bigmodel.cn/api/paas/v4"
    # Z.AI sends usage on the final chunk without being asked.
    request_usage = False

    def _build_body(
        self,
        messages: Sequence[Message],
        system_prompt: str,
        model: str,
        tools: Sequence[ToolDescriptor],
        tool_results: Sequence[ToolResult],
    ) -> dict[str, Any]:
        body = super()._build_body(messages, system_prompt, model, tools, tool_results)
        # Reasoning output is never spoken, so skip generating it.
        body["enable_thinking"] = False
        return body


def _openai_message(message: Message) -> dict[str, Any]:
    if message.role is Role.TOOL:
        return {
            "role": "tool",
            "tool_call_id": message.tool_call_id or "",
            "content": message.content,
        }
    if message.tool_calls:
        entry: dict[str, Any] = {"role": message.role.value}
        if message.content:
            entry["content"] = message.content
        entry["tool_calls"] = [
            {
                "id": call.id,
                "type": "function",
                "function": {
                    "name": sanitize_tool_name(call.name),
                    "arguments": call.arguments_json(),
                },
            }
            for call in message.tool_calls
        ]
        return entry
    return {"role": message.role.value, "content": message.content}


def _openai_tool_call_events(fragment: dict[str, Any]) -> list[StreamEvent]:
    function = fragment.get("function")
    if not isinstance(function, dict):
        function = {}
    arguments = function.get("arguments")
    call_id = fragment.get("id")

    events: list[StreamEvent] = []
    if isinstance(call_id, str) and call_id:
        name = function.get("name")
        events.append(ToolCallStart(id=call_id, name=name if isinstance(name, str) else ""))
    if isinstance(arguments, str) and arguments:
        events.append(ToolCallArgsDelta(arguments))
    return events


# ---------------------------------------------------------------------------
# Anthropic messages API
# ---------------------------------------------------------------------------


class AnthropicAdapter(ProviderAdapter):
    provider = Provider.ANTHROPIC
    default_base_url = "https://api.anthropic.com/v1"
    endpoint_path = "/messages"

    def __init__(
        self,
        base_url: str | None = None,
        logger: logging.Logger | None = None,
        *,
        max_tokens: int = 4096,
    ) -> None:
        super().__init__(base_url, logger)
        self.max_tokens = max_tokens

    def build_request(
        self,
        messages: Sequence[Message],
        system_prompt: str,
        model: str,
        credential: str,
        tools: Sequence[ToolDescriptor] = (),
        tool_results: Sequence[ToolResult] = (),
    ) -> LLMRequest:
        headers = {
            "x-api-key": credential,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        body: dict[str, Any] = {
            "model": model,
            "messages": _anthropic_messages(messages, tool_results),
            "stream": True,
            "max_tokens": self.max_tokens,
        }
        if system_prompt:
            body["system"] = system_prompt
        if tools:
            body["tools"] = self._format_tools(tools)
        return LLMRequest(url=self.url, headers=headers, body=body)

    def format_tool_schema(self, descriptor: ToolDescriptor) -> dict[str, Any]:
        return {
            "name": sanitize_tool_name(descriptor.name),
            "description": descriptor.description,
            "input_schema": descriptor.parameters or EMPTY_OBJECT_SCHEMA,
        }

    def parse_stream_event(self, payload: dict[str, Any]) -> list[StreamEvent]:
        event_type = payload.get("type")
        if event_type == "content_block_start":
            block = payload.get("content_block")
            if not isinstance(block, dict):
                return []
            if block.get("type") == "tool_use":
                call_id = block.get("id")
                name = block.get("name")
                if isinstance(call_id, str) and isinstance(name, str):
                    return [ToolCallStart(id=call_id, name=name)]
            elif block.get("type") == "text":
                text = block.get("text")
                if isinstance(text, str) and text:
                    return [TextDelta(text)]
            return []

        if event_type == "content_block_delta":
            delta = payload.get("delta")
            if not isinstance(delta, dict):
                return []
            text = delta.get("text")
            if isinstance(text, str) and text:
                return [TextDelta(text)]
            partial = delta.get("partial_json")
            if isinstance(partial, str) and partial:
                return [ToolCallArgsDelta(partial)]
            return []

        if event_type == "message_start":
            message = payload.get("message")
            usage = _usage_delta(message.get("usage") if isinstance(message, dict) else None)
            return [usage] if usage is not None else []

        if event_type == "message_delta":
            usage = _usage_delta(payload.get("usage"))
            return [usage] if usage is not None else []

        if event_type == "message_stop":
            return [StreamEnd()]
        return []

    def error_message(self, payload: dict[str, Any]) -> str | None:
        if payload.get("type") != "error":
            return None
        return super().error_message(payload) or "unknown error"


def _usage_delta(
    usage: Any, input_key: str = "input_tokens", output_key: str = "output_tokens"
) -> UsageDelta | None:
    if not isinstance(usage, dict):
        return None
    input_tokens = usage.get(input_key)
    output_tokens = usage.get(output_key)
    delta = UsageDelta(
        input_tokens=input_tokens if _is_count(input_tokens) else None,
        output_tokens=output_tokens if _is_count(output_tokens) else None,
    )
    if delta.input_tokens is None and delta.output_tokens is None:
        return None
    return delta


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _anthropic_messages(messages: Sequence[Message], tool_results: Sequence[ToolResult]) -> list[dict[str, Any]]:
    api_messages: list[dict[str, Any]] = []
    pending_results: list[dict[str, Any]] = []

    def flush_results() -> None:
        if pending_results:
            api_messages.append({"role": "user", "content": list(pending_results)})
            pending_results.clear()

    for message in messages:
        if message.role is Role.SYSTEM:
            continue
        if message.role is Role.TOOL:
            pending_results.append(
                _anthropic_tool_result(message.tool_call_id or "", message.content, message.is_error)
            )
            continue
        flush_results()
        if message.tool_calls:
            content: list[dict[str, Any]] = []
            if message.content:
                content.append({"type": "text", "text": message.content})
            for call in message.tool_calls:
                content.append(
                    {
                        "type": "tool_use",
                        "id": call.id,
                        "name": sanitize_tool_name(call.name),
                        "input": call.parsed_arguments(),
                    }
                )
            api_messages.append({"role": message.role.value, "content": content})
        elif message.content:
            api_messages.append({"role": message.role.value, "content": message.content})

    for result in tool_results:
        pending_results.append(_anthropic_tool_result(result.tool_call_id, result.content, result.is_error))
    flush_results()
    return api_messages


def _anthropic_tool_result(tool_use_id: str, content: str, is_error: bool) -> dict[str, Any]:
    return {
        "type": "tool_result",
        "tool_use_id": tool_use_id,
        "content": content,
        "is_error": is_error,
    }


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


_ADAPTERS: dict[Provider, type[ProviderAdapter]] = {
    Provider.OPENAI: OpenAIAdapter,
    Provider.ANTHROPIC: AnthropicAdapter,
    Provider.ZAI: ZAIAdapter,
}


def build_provider_adapter(
    provider: Provider | str,
    config: LLMConfig | None = None,
    logger: logging.Logger | None = None,
) -> ProviderAdapter:
    """Return the adapter registered for ``provider``, configured from ``config``."""
    tag = Provider(provider)
    adapter_cls = _ADAPTERS[tag]
    base_url = config.base_url_for(tag.value) if config else None
    if adapter_cls is AnthropicAdapter:
        max_tokens = config.anthropic_max_tokens if config else 4096
        return AnthropicAdapter(base_url, logger, max_tokens=max_tokens)
    return adapter_cls(base_url, logger)


def tool_call_summary(calls: Iterable[ToolCall]) -> str:
    """Compact ``name(args)`` rendering used in log lines."""
    return ", ".join(f"{call.name}({call.arguments or ''})" for call in calls)
