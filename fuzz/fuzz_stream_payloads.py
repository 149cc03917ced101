import json
import sys

import atheris

with atheris.instrument_imports():
    from parley.assistant.llm import AnthropicAdapter, OpenAIAdapter, ZAIAdapter

ADAPTERS = (OpenAIAdapter(), AnthropicAdapter(), ZAIAdapter())


def TestOneInput(data: bytes) -> None:
    # Arbitrary JSON objects must map to events or nothing, never an exception.
    try:
        payload = json.loads(data.decode("utf-8", errors="ignore"))
    except ValueError:
        return
    if not isinstance(payload, dict):
        return
    for adapter in ADAPTERS:
        adapter.error_message(payload)
        adapter.parse_stream_event(payload)


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
