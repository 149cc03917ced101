#!/usr/bin/env python3
"""Talk to the configured model from a terminal, one sentence per line."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace

from parley.assistant.capability_gate import CapabilityGate
from parley.assistant.config import AssistantConfig
from parley.assistant.conversation import ConversationSession
from parley.assistant.errors import ExchangeError
from parley.assistant.orchestrator import StreamingOrchestrator
from parley.assistant.registry_tools import RegistryTools
from parley.assistant.tool_router import ToolRouter

LOGGER = logging.getLogger("parley-chat")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("prompt", nargs="*", help="Single prompt to send (interactive when omitted)")
    parser.add_argument("--provider", choices=["openai", "anthropic", "zai"], help="Override PARLEY_PROVIDER")
    parser.add_argument("--list-tools", action="store_true", help="Print the tool catalog and exit")
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args(argv)


def build_session(config: AssistantConfig) -> ConversationSession:
    registry = RegistryTools()
    router = ToolRouter([registry])
    gate = CapabilityGate(router, config.tools.baseline_tools, ttl_minutes=config.tools.ttl_minutes)
    registry.gate = gate
    orchestrator = StreamingOrchestrator(config=config.llm, log_llm_messages=config.log_llm_messages)
    return ConversationSession(
        config=config,
        orchestrator=orchestrator,
        router=router,
        gate=gate,
        sentence_sink=lambda sentence: print(sentence, flush=True),
    )


async def run(args: argparse.Namespace) -> int:
    config = AssistantConfig.from_env()
    if args.provider:
        config = _with_provider(config, args.provider)
    session = build_session(config)

    if args.list_tools:
        for category, tools in session.gate.tool_catalog_by_category().items():
            print(f"[{category}]")
            for tool in tools:
                print(f"  {tool.name}: {tool.description}")
        return 0

    try:
        if args.prompt:
            await session.ask(" ".join(args.prompt))
            return 0
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                return 0
            if not line.strip():
                continue
            try:
                await session.ask(line.strip())
            except ExchangeError as exc:
                print(f"error: {exc}", file=sys.stderr)
    except ExchangeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        await session.orchestrator.aclose()


def _with_provider(config: AssistantConfig, provider: str) -> AssistantConfig:
    return replace(config, llm=replace(config.llm, provider=provider))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
