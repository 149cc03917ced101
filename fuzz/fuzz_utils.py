import sys

import atheris

with atheris.instrument_imports():
    from parley.utils import parse_bool, parse_int, split_csv, strip_or_none, truncate


def TestOneInput(data: bytes) -> None:
    """Fuzz utility parsing functions with arbitrary input."""
    value = data.decode("utf-8", errors="ignore")

    # Parsers fall back to defaults and should never raise
    parse_bool(value)
    parse_int(value, default=0)
    split_csv(value)
    strip_or_none(value)

    limit = data[0] - 128 if data else 0
    clipped = truncate(value, limit)
    assert len(clipped) <= max(0, limit)


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()
