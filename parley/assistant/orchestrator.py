"""Single-flight streaming exchange with the language model."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import httpx

from .config import LLMConfig
from .errors import ExchangeError, ValidationError
from .llm import LLMRequest, Provider, ProviderAdapter, build_provider_adapter, tool_call_summary
from .messages import Message, TextDelta, TokenUsage, ToolCall, ToolDescriptor, ToolResult, UsageDelta
from .sentence_chunker import SentenceChunker
from .stream_decoder import decode_stream
from .tool_calls import ToolCallAssembler

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class SentenceReady:
    text: str


@dataclass(frozen=True)
class ResponseComplete:
    text: str
    usage: TokenUsage | None = field(default=None, compare=False)


@dataclass(frozen=True)
class ToolCallsReceived:
    calls: tuple[ToolCall, ...]
    usage: TokenUsage | None = field(default=None, compare=False)


@dataclass(frozen=True)
class ExchangeFailed:
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error) or self.error.__class__.__name__


ExchangeEvent = SentenceReady | ResponseComplete | ToolCallsReceived | ExchangeFailed
ExchangeOutcome = ResponseComplete | ToolCallsReceived | ExchangeFailed
ExchangeListener = Callable[[ExchangeEvent], None]


class StreamingOrchestrator:
    """Run one streamed exchange at a time and publish its progress.

    ``send`` replaces whatever exchange is running. Progress is published as a
    single ordered event stream to ``listener``: zero or more
    :class:`SentenceReady`, then exactly one of :class:`ResponseComplete`,
    :class:`ToolCallsReceived` or :class:`ExchangeFailed`. A cancelled or
    superseded exchange publishes nothing further.
    """

    def __init__(
        self,
        *,
        config: LLMConfig | None = None,
        client: httpx.AsyncClient | None = None,
        listener: ExchangeListener | None = None,
        log_llm_messages: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.listener = listener
        self.log_llm_messages = log_llm_messages
        self._logger = logger or LOGGER
        self._client = client
        self._owns_client = client is None

        self.partial_response = ""
        self.error: str | None = None
        self.is_streaming = False
        self.usage: TokenUsage | None = None

        self._generation = 0
        self._task: asyncio.Task[ExchangeOutcome] | None = None
        self._assembler: ToolCallAssembler | None = None
        self._chunker: SentenceChunker | None = None

    @property
    def current_task(self) -> asyncio.Task[ExchangeOutcome] | None:
        return self._task

    def send(
        self,
        messages: Sequence[Message],
        system_prompt: str,
        provider: Provider | str,
        model: str,
        credential: str | None,
        tools: Sequence[ToolDescriptor] = (),
        tool_results: Sequence[ToolResult] = (),
    ) -> asyncio.Task[ExchangeOutcome]:
        """Start an exchange, cancelling the one in flight.

        Must be called from within a running event loop. Raises
        :class:`ValidationError` without touching the network when the
        credential is missing.
        """
        tag = Provider(provider)
        if not credential or not credential.strip():
            exc = ValidationError(f"{tag.display_name} API key is not configured")
            self.error = str(exc)
            self._logger.warning("[llm] %s", exc)
            raise exc

        self.cancel()
        self._generation += 1
        generation = self._generation
        self.partial_response = ""
        self.error = None
        self.is_streaming = True
        self.usage = None

        adapter = build_provider_adapter(tag, self.config, self._logger)
        request = adapter.build_request(
            messages,
            system_prompt,
            model,
            credential.strip(),
            tools=tools,
            tool_results=tool_results,
        )
        if self.log_llm_messages:
            self._logger.info(
                "[llm] %s request: model=%s messages=%d tools=%s tool_results=%d",
                tag.display_name,
                model,
                len(messages),
                ",".join(tool.name for tool in tools) or "-",
                len(tool_results),
            )

        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run(generation, adapter, request), name=f"llm-exchange-{generation}")
        self._task = task
        return task

    def cancel(self) -> None:
        """Abort the running exchange; no completion event will follow."""
        task = self._task
        self._task = None
        self._generation += 1
        if task is not None and not task.done():
            task.cancel()
            self._logger.debug("[llm] Exchange cancelled")
        self.is_streaming = False
        if self._assembler is not None:
            self._assembler.reset()
        if self._chunker is not None:
            self._chunker.reset()

    async def aclose(self) -> None:
        self.cancel()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT_SECONDS)
            self._owns_client = True
        return self._client

    def _timeout_for(self, provider: Provider) -> float:
        if self.config is None:
            return DEFAULT_TIMEOUT_SECONDS
        return float(self.config.timeout_for(provider.value))

    async def _run(self, generation: int, adapter: ProviderAdapter, request: LLMRequest) -> ExchangeOutcome:
        assembler = ToolCallAssembler(self._logger)
        chunker = SentenceChunker()
        usage: TokenUsage | None = None
        self._assembler = assembler
        self._chunker = chunker

        try:
            client = self._get_client()
            async with client.stream(
                "POST",
                request.url,
                headers=request.headers,
                json=request.body,
                timeout=self._timeout_for(adapter.provider),
            ) as response:
                async for event in decode_stream(response, adapter, self._logger):
                    if isinstance(event, TextDelta):
                        if self._is_current(generation):
                            self.partial_response += event.text
                        for sentence in chunker.feed(event.text):
                            self._emit(generation, SentenceReady(sentence))
                    elif isinstance(event, UsageDelta):
                        usage = (usage or TokenUsage()).merge(event)
                    else:
                        assembler.feed(event)
        except asyncio.CancelledError:
            self._logger.debug("[llm] Exchange %d unwound after cancellation", generation)
            raise
        except (ExchangeError, httpx.HTTPError) as exc:
            self._logger.warning("[llm] %s exchange failed: %s", adapter.provider.display_name, exc)
            return self._fail(generation, exc)
        except Exception as exc:
            self._logger.exception("[llm] %s exchange failed unexpectedly", adapter.provider.display_name)
            return self._fail(generation, exc)

        tail = chunker.flush()
        if tail:
            self._emit(generation, SentenceReady(tail))

        calls = assembler.completed
        outcome: ExchangeOutcome
        if calls:
            outcome = ToolCallsReceived(tuple(calls), usage)
            if self.log_llm_messages:
                self._logger.info("[llm] Tool calls: %s", tool_call_summary(calls))
        else:
            outcome = ResponseComplete(self.partial_response if self._is_current(generation) else "", usage)
            if self.log_llm_messages:
                self._logger.info("[llm] Response: %s", outcome.text)

        if self.log_llm_messages and usage is not None:
            self._logger.info("[llm] Usage: input=%s output=%s", usage.input_tokens, usage.output_tokens)

        if self._is_current(generation):
            self.usage = usage
            self.is_streaming = False
            self._task = None
        self._emit(generation, outcome)
        return outcome

    def _fail(self, generation: int, exc: Exception) -> ExchangeFailed:
        outcome = ExchangeFailed(exc)
        if self._is_current(generation):
            self.error = outcome.message
            self.is_streaming = False
            self._task = None
        self._emit(generation, outcome)
        return outcome

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _emit(self, generation: int, event: ExchangeEvent) -> None:
        if not self._is_current(generation):
            self._logger.debug("[llm] Dropping %s from superseded exchange", type(event).__name__)
            return
        if self.listener is None:
            return
        try:
            self.listener(event)
        except Exception:
            self._logger.exception("[llm] Exchange listener failed on %s", type(event).__name__)
