"""Error types raised by the streaming exchange engine and tool layer."""

from __future__ import annotations

import asyncio


class ParleyError(RuntimeError):
    """Base class for assistant core failures."""


class ExchangeError(ParleyError):
    """An exchange with the model failed and produced no completion."""


class ValidationError(ExchangeError):
    """Raised before any network activity when the request cannot be sent."""


class HttpError(ExchangeError):
    """Raised when the provider answers with a non-success status."""

    def __init__(self, status_code: int, body_snippet: str = "") -> None:
        self.status_code = status_code
        self.body_snippet = body_snippet
        message = f"HTTP {status_code}"
        if body_snippet:
            message = f"{message}: {body_snippet}"
        super().__init__(message)


class ParseError(ExchangeError):
    """The response as a whole could not be understood as an event stream."""


# Cancelling an exchange is expected behaviour, not a failure.
CancellationError = asyncio.CancelledError


class ToolError(ParleyError):
    """Base class for tool dispatch failures."""


class UnknownToolError(ToolError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ModuleUnavailableError(ToolError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool is not available right now: {name}")


class InvalidToolArgumentsError(ToolError):
    """A tool module rejected the arguments it was called with."""
