"""Server-sent event decoding for streamed chat completions."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

import httpx

from parley.utils import truncate

from .errors import HttpError, ParseError
from .llm import ProviderAdapter
from .messages import StreamEnd, StreamEvent

LOGGER = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
ERROR_SNIPPET_CHARS = 200


async def raise_for_status(response: httpx.Response) -> None:
    """Drain a failed streaming response and raise :class:`HttpError`."""
    if response.is_success:
        return
    try:
        body = (await response.aread()).decode("utf-8", errors="replace")
    except httpx.HTTPError:
        body = ""
    raise HttpError(response.status_code, truncate(body.strip(), ERROR_SNIPPET_CHARS))


async def iter_payloads(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Yield the payload of each ``data:`` line until the end sentinel.

    Any other line shape is ignored. Raises :class:`ParseError` when the body had
    content but no data lines at all, i.e. it was not an event stream.
    """
    saw_data = False
    stray_lines: list[str] = []
    async for line in lines:
        if not line.startswith(DATA_PREFIX):
            if line.strip() and not saw_data and len(stray_lines) < 20:
                stray_lines.append(line)
            continue
        saw_data = True
        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            return
        yield payload
    if not saw_data and stray_lines and not _looks_like_sse(stray_lines):
        raise ParseError(f"Response is not an event stream: {truncate(' '.join(stray_lines), ERROR_SNIPPET_CHARS)}")


async def decode_stream(
    response: httpx.Response,
    adapter: ProviderAdapter,
    logger: logging.Logger | None = None,
) -> AsyncIterator[StreamEvent]:
    """Decode a streaming response into normalized events.

    Always finishes with exactly one :class:`StreamEnd`, unless an error is raised.
    """
    log = logger or LOGGER
    await raise_for_status(response)

    async for payload in iter_payloads(response.aiter_lines()):
        try:
            parsed = json.loads(payload)
        except ValueError:
            log.warning("[llm] Skipping malformed %s stream line: %s", adapter.provider.value, truncate(payload, 120))
            continue
        if not isinstance(parsed, dict):
            log.debug("[llm] Ignoring non-object %s stream payload", adapter.provider.value)
            continue

        error = adapter.error_message(parsed)
        if error:
            raise ParseError(f"{adapter.provider.display_name} stream error: {error}")

        for event in adapter.parse_stream_event(parsed):
            yield event
            if isinstance(event, StreamEnd):
                return

    yield StreamEnd()


def _looks_like_sse(lines: list[str]) -> bool:
    # event:/id:/retry:/comment lines with no data are still a (empty) stream
    return all(line.startswith(("event:", "id:", "retry:", ":")) for line in lines)
