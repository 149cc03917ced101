"""
Streaming LLM exchange engine with tool calling and sentence chunking

This package provides the conversational core of the Parley assistant:

- Request building: Provider-specific payloads for OpenAI, Anthropic and Z.AI
- Stream decoding: Server-sent event lines mapped to normalized stream events
- Tool call assembly: Fragmented tool invocations rebuilt in arrival order
- Sentence chunking: Streamed text split into speakable units for TTS
- Capability gate: Session-scoped allowlist of tools visible to the model
- Tool routing: Dispatch of completed tool calls to their owning module

Key modules:
- config: Configuration management from environment variables
- llm: Provider adapters (request shape, tool schema, stream payload parsing)
- orchestrator: Single-flight streaming exchange with typed events
- conversation: Send / execute tools / send loop for one conversation
"""

from __future__ import annotations

__all__ = [
    "capability_gate",
    "config",
    "conversation",
    "errors",
    "llm",
    "messages",
    "orchestrator",
    "registry_tools",
    "sentence_chunker",
    "stream_decoder",
    "tool_calls",
    "tool_router",
]
