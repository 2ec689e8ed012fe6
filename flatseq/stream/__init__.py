"""
Record readers and writers for flatseq.

Tokenizers turn raw text into ordered field sequences (and back).  They
know nothing about layouts: the stream reader in ``flatseq.reader`` feeds
their output to the record identifier and the sequencing engine.

- base.py defines RawRecord and the RecordReader / RecordWriter ABCs.
- csv.py implements RFC 4180 style CSV with configurable quoting.
- delimited.py implements delimiter-separated text with escapes and line
  continuation.
- fixedlength.py implements column-width slicing.

``create_reader()`` / ``create_writer()`` select the implementation from a
stream's ``format`` and pass through the options set in its mapping.
"""

from __future__ import annotations

from typing import TextIO

from flatseq.config import ReaderConfig
from flatseq.exceptions import ConfigValidationError
from flatseq.stream.base import RawRecord, RecordReader, RecordWriter
from flatseq.stream.csv import CsvReader, CsvWriter
from flatseq.stream.delimited import DelimitedReader, DelimitedWriter
from flatseq.stream.fixedlength import FixedLengthReader, FixedLengthWriter

__all__ = [
    "RawRecord",
    "RecordReader",
    "RecordWriter",
    "CsvReader",
    "CsvWriter",
    "DelimitedReader",
    "DelimitedWriter",
    "FixedLengthReader",
    "FixedLengthWriter",
    "create_reader",
    "create_writer",
]

_READERS: dict[str, tuple[type[RecordReader], frozenset[str]]] = {
    "csv": (
        CsvReader,
        frozenset({
            "delimiter", "quote", "escape", "multiline",
            "whitespace_allowed", "unquoted_quotes_allowed",
        }),
    ),
    "delimited": (DelimitedReader, frozenset({"delimiter", "escape", "line_continuation"})),
    "fixedlength": (FixedLengthReader, frozenset({"widths", "line_continuation"})),
}

_WRITERS: dict[str, tuple[type[RecordWriter], frozenset[str]]] = {
    "csv": (
        CsvWriter,
        frozenset({"delimiter", "quote", "escape", "always_quote", "line_separator"}),
    ),
    "delimited": (DelimitedWriter, frozenset({"delimiter", "escape", "line_separator"})),
    "fixedlength": (FixedLengthWriter, frozenset({"widths", "padding", "line_separator"})),
}


def _select(
    table: dict[str, tuple[type, frozenset[str]]],
    fmt: str,
    options: ReaderConfig | None,
    role: str,
) -> tuple[type, dict]:
    if fmt not in table:
        raise ConfigValidationError(
            f"Unsupported stream format: '{fmt}'. Supported formats: {sorted(table)}"
        )
    cls, accepted = table[fmt]
    given = options.options() if options is not None else {}
    # Options only meaningful to the other side (reader vs writer) are ignored.
    known = set(_READERS[fmt][1]) | set(_WRITERS[fmt][1])
    unknown = sorted(set(given) - known)
    if unknown:
        raise ConfigValidationError(
            f"Options {unknown} are not supported by the '{fmt}' {role}"
        )
    return cls, {k: v for k, v in given.items() if k in accepted}


def create_reader(fmt: str, stream: TextIO, options: ReaderConfig | None = None) -> RecordReader:
    """Create the record reader for *fmt* over an open text stream."""
    cls, kwargs = _select(_READERS, fmt, options, "reader")
    return cls(stream, **kwargs)


def create_writer(fmt: str, stream: TextIO, options: ReaderConfig | None = None) -> RecordWriter:
    """Create the record writer for *fmt* over an open text stream."""
    cls, kwargs = _select(_WRITERS, fmt, options, "writer")
    return cls(stream, **kwargs)
