"""Conversation controller: stream a reply, run requested tools, repeat."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence

from .capability_gate import CapabilityGate
from .config import AssistantConfig
from .errors import ExchangeError
from .messages import Message, ToolCall, ToolResult
from .orchestrator import (
    ExchangeEvent,
    ExchangeFailed,
    ResponseComplete,
    SentenceReady,
    StreamingOrchestrator,
    ToolCallsReceived,
)
from .tool_router import ToolRouter

LOGGER = logging.getLogger(__name__)

SentenceSink = Callable[[str], None]

ROUND_LIMIT_RESULT = "Tool round limit reached"
CANCELLED_RESULT = "Tool call cancelled"


class ToolRoundsExceededError(ExchangeError):
    """The model kept asking for tools past the configured round limit."""


class ConversationSession:
    """Drive one conversation through the streaming orchestrator.

    Owns the message history. Each ``ask`` streams a reply; when the model
    asks for tools instead, the calls are run through the router and their
    results are sent back, until the model answers in text.
    """

    def __init__(
        self,
        *,
        config: AssistantConfig,
        orchestrator: StreamingOrchestrator,
        router: ToolRouter,
        gate: CapabilityGate,
        sentence_sink: SentenceSink | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.orchestrator = orchestrator
        self.router = router
        self.gate = gate
        self.sentence_sink = sentence_sink
        self.logger = logger or LOGGER
        self.history: list[Message] = []
        self.orchestrator.listener = self._on_event

    @property
    def provider(self) -> str:
        return self.config.llm.provider

    async def ask(self, text: str) -> str:
        self.history.append(Message.user(text))
        pending_results: list[ToolResult] = []

        for round_index in range(self.config.max_tool_rounds + 1):
            try:
                task = self.orchestrator.send(
                    list(self.history),
                    self.config.llm.system_prompt,
                    self.provider,
                    self.config.llm.model_for(self.provider),
                    self.config.llm.api_key_for(self.provider),
                    tools=self.gate.available_tools(),
                    tool_results=pending_results,
                )
                outcome = await task
            finally:
                # Executed results belong in history however the exchange ended.
                if pending_results:
                    self.history.extend(Message.tool_result(result) for result in pending_results)
                    pending_results = []

            if isinstance(outcome, ExchangeFailed):
                raise _as_exchange_error(outcome)
            if isinstance(outcome, ResponseComplete):
                self.history.append(Message.assistant(outcome.text))
                return outcome.text

            self.history.append(Message.assistant(self.orchestrator.partial_response, outcome.calls))
            if round_index >= self.config.max_tool_rounds:
                self._answer_unresolved(outcome.calls, ROUND_LIMIT_RESULT)
                break
            self.logger.info(
                "[conversation] Running %d tool call(s), round %d", len(outcome.calls), round_index + 1
            )
            try:
                pending_results = await self.router.execute(outcome.calls)
            except asyncio.CancelledError:
                self._answer_unresolved(outcome.calls, CANCELLED_RESULT)
                raise

        raise ToolRoundsExceededError(f"Model requested tools for more than {self.config.max_tool_rounds} rounds")

    def reset(self) -> None:
        self.orchestrator.cancel()
        self.history.clear()

    def _answer_unresolved(self, calls: Sequence[ToolCall], reason: str) -> None:
        """Close out calls that will never run so the history stays sendable."""
        self.logger.warning("[conversation] %s; answering %d call(s) with an error", reason, len(calls))
        self.history.extend(
            Message.tool_result(ToolResult(tool_call_id=call.id, content=reason, is_error=True)) for call in calls
        )

    def _on_event(self, event: ExchangeEvent) -> None:
        if isinstance(event, SentenceReady) and self.sentence_sink is not None:
            self.sentence_sink(event.text)
        elif isinstance(event, ToolCallsReceived):
            self.logger.debug("[conversation] Model requested %s", ", ".join(call.name for call in event.calls))


def _as_exchange_error(outcome: ExchangeFailed) -> ExchangeError:
    if isinstance(outcome.error, ExchangeError):
        return outcome.error
    wrapped = ExchangeError(outcome.message)
    wrapped.__cause__ = outcome.error
    return wrapped
