"""Split streamed model text into sentences for speech synthesis."""

from __future__ import annotations

from collections.abc import Iterator

SENTENCE_TERMINATORS = frozenset(".!?\n。！？")


class SentenceChunker:
    """Buffer text deltas and hand out complete sentences as soon as they end.

    ``feed`` returns a lazy iterator over the sentences completed so far; any
    sentence not consumed stays buffered and is produced by the next call.
    Call ``flush`` at the end of the stream so trailing text is not lost.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, delta: str) -> Iterator[str]:
        if delta:
            self._buffer += delta
        return self._drain()

    def flush(self) -> str | None:
        remaining = self._buffer.strip()
        self._buffer = ""
        return remaining or None

    def reset(self) -> None:
        self._buffer = ""

    def _drain(self) -> Iterator[str]:
        while True:
            end = self._find_boundary()
            if end is None:
                return
            sentence = self._buffer[:end].strip()
            self._buffer = self._buffer[end:]
            if sentence:
                yield sentence

    def _find_boundary(self) -> int | None:
        """Index just past the first sentence terminator run, if any."""
        text = self._buffer
        for index, char in enumerate(text):
            if char not in SENTENCE_TERMINATORS:
                continue
            if char == "." and index > 0 and text[index - 1].isdigit():
                if index + 1 == len(text):
                    # "3." may still become "3.14"
                    return None
                if text[index + 1].isdigit():
                    continue
            end = index + 1
            while end < len(text) and text[end] in SENTENCE_TERMINATORS and text[end] != "\n":
                end += 1
            return end
        return None
