import sys

import atheris

with atheris.instrument_imports():
    from parley.assistant.sentence_chunker import SentenceChunker


def TestOneInput(data: bytes) -> None:
    # Split the input into deltas at arbitrary points; no text may be lost.
    fdp = atheris.FuzzedDataProvider(data)
    text = fdp.ConsumeUnicodeNoSurrogates(fdp.remaining_bytes())
    chunker = SentenceChunker()
    produced: list[str] = []
    start = 0
    step = 1
    while start < len(text):
        produced.extend(chunker.feed(text[start : start + step]))
        start += step
        step = (step % 7) + 1
    tail = chunker.flush()
    if tail:
        produced.append(tail)

    assert "".join("".join(produced).split()) == "".join(text.split())


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
