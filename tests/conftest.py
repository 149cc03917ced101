"""Shared test fixtures and configuration for the Parley test suite.

This module provides reusable fixtures for common test scenarios including:
- LLM configuration objects
- Streaming HTTP responses served through httpx.MockTransport
- Fake tool modules for routing and gating tests
- Async test utilities
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any
from unittest.mock import Mock

import httpx
import pytest
from parley.assistant.config import LLMConfig
from parley.assistant.messages import ToolCategory, ToolDescriptor, ToolResult
from parley.assistant.tool_router import ToolModule

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    Returns a Mock with spec=logging.Logger to ensure only valid
    logger methods can be called.
    """
    return Mock(spec=logging.Logger)


# ============================================================================
# LLM Configuration Fixtures
# ============================================================================


def build_llm_config(**overrides: Any) -> LLMConfig:
    defaults: dict[str, Any] = {
        "provider": "openai",
        "system_prompt": "You are a helpful assistant.",
        "openai_model": "gpt-4o-mini",
        "openai_api_key": "test_openai_key",
        "openai_base_url": "https://api.openai.com/v1",
        "openai_timeout": 30,
        "anthropic_model": "claude-3-5-haiku-20241022",
        "anthropic_api_key": "test_anthropic_key",
        "anthropic_base_url": "https://api.anthropic.com/v1",
        "anthropic_timeout": 45,
        "anthropic_max_tokens": 4096,
        "zai_model": "glm-4.7",
        "zai_api_key": "test_zai_key",
        "zai_base_url": "https://open.bigmodel.cn/api/paas/v4",
        "zai_timeout": 30,
    }
    defaults.update(overrides)
    return LLMConfig(**defaults)


@pytest.fixture
def make_llm_config():
    """Factory fixture for creating LLM configs with custom overrides.

    Usage:
        config = make_llm_config(provider="anthropic", anthropic_api_key="key")
    """
    return build_llm_config


# ============================================================================
# Streaming HTTP Fixtures
# ============================================================================


def sse_lines(*payloads: Any, done: bool = True) -> list[str]:
    """Render payloads as ``data:`` lines, JSON-encoding anything not a str."""
    lines: list[str] = []
    for payload in payloads:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {text}")
        lines.append("")
    if done:
        lines.append("data: [DONE]")
    return lines


def openai_text_chunk(text: str) -> dict[str, Any]:
    return {"choices": [{"index": 0, "delta": {"content": text}}]}


def openai_tool_chunk(
    *, call_id: str | None = None, name: str | None = None, arguments: str | None = None, index: int = 0
) -> dict[str, Any]:
    fragment: dict[str, Any] = {"index": index, "function": {}}
    if call_id is not None:
        fragment["id"] = call_id
        fragment["type"] = "function"
    if name is not None:
        fragment["function"]["name"] = name
    if arguments is not None:
        fragment["function"]["arguments"] = arguments
    return {"choices": [{"index": 0, "delta": {"tool_calls": [fragment]}}]}


class StreamRecorder:
    """Serve canned streaming bodies and remember the requests that asked for them."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.lines: list[str] = []
        self.body: bytes | None = None
        self.hold: asyncio.Event | None = None
        self.script: list[list[str]] = []

    def json_bodies(self) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    async def _stream(self, lines: list[str]) -> AsyncIterator[bytes]:
        for line in lines:
            yield (line + "\n").encode("utf-8")
            await asyncio.sleep(0)
        if self.hold is not None:
            await self.hold.wait()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.body is not None:
            return httpx.Response(self.status_code, content=self.body)
        # Scripted replies are served one per request, then fall back to ``lines``.
        lines = self.script.pop(0) if self.script else self.lines
        return httpx.Response(self.status_code, content=self._stream(lines))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def stream_recorder():
    return StreamRecorder()


async def streamed_response(lines: list[str], status_code: int = 200) -> httpx.Response:
    """Open a streaming response over canned lines without going through a client."""
    recorder = StreamRecorder()
    recorder.lines = lines
    recorder.status_code = status_code
    request = httpx.Request("POST", "https://llm.test/v1/chat/completions")
    response = await recorder.handler(request)
    response.request = request
    return response


# ============================================================================
# Tool Module Fixtures
# ============================================================================


class FakeToolModule(ToolModule):
    """Tool module double that records calls and returns canned results."""

    def __init__(
        self,
        name: str,
        tool_names: list[str],
        *,
        ready: bool = True,
        category: ToolCategory = ToolCategory.OTHER,
        result: str = "ok",
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.tool_names = tool_names
        self.ready = ready
        self.category = category
        self.result = result
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @property
    def tools(self) -> list[ToolDescriptor]:
        return [
            ToolDescriptor(name=tool, description=f"{tool} tool", category=self.category, module=self)
            for tool in self.tool_names
        ]

    @property
    def is_ready(self) -> bool:
        return self.ready

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        self.calls.append((name, arguments))
        if self.error is not None:
            raise self.error
        return ToolResult(tool_call_id="", content=f"{self.result}:{name}")


@pytest.fixture
def make_tool_module() -> Callable[..., FakeToolModule]:
    return FakeToolModule


# ============================================================================
# Async Test Utilities
# ============================================================================


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)
