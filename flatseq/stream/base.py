"""
Record reader / writer base classes for flatseq.

A record reader turns physical lines of text into ``RawRecord`` values:
an ordered tuple of field strings plus the raw text and the line number
where the record started.  A record may span several physical lines
(quoted multi-line CSV fields, line continuation characters); the line
counter still advances for every physical line so later records keep
their true line numbers.

Readers pull lines from a text stream.  Open files with ``newline=""``
so that ``\\n``, ``\\r\\n`` and ``\\r`` are all recognised as line
terminators; ``from_string()`` does this for in-memory text.

Writers are the symmetric side: ``write(fields)`` formats one record and
tracks the number of lines written, including line breaks embedded in
field values.
"""

from __future__ import annotations

import io
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import TextIO

from flatseq.exceptions import MalformedInputError, RecordContext


@dataclass(frozen=True)
class RawRecord:
    """One tokenized record.

    Attributes:
        fields: Field text in positional order.
        text: The raw record text, including any continuation lines but
            not the final line terminator.
        line_number: 1-based physical line where the record starts.
    """

    fields: tuple[str, ...]
    text: str
    line_number: int


def count_line_breaks(text: str) -> int:
    """Count line terminators in *text*; ``\\r\\n`` counts once."""
    return text.count("\n") + text.count("\r") - text.count("\r\n")


def _check_char(name: str, value: str | None) -> None:
    if value is not None and len(value) != 1:
        raise ValueError(f"{name} must be a single character, got {value!r}")


class RecordReader(ABC):
    """Abstract base class for record readers."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._lines = iter(stream)
        self._line_number = 0

    @classmethod
    def from_string(cls, text: str, **options) -> RecordReader:
        return cls(io.StringIO(text, newline=""), **options)

    @property
    def line_number(self) -> int:
        """Number of physical lines consumed so far."""
        return self._line_number

    @abstractmethod
    def read(self) -> RawRecord | None:
        """Read the next record, or return ``None`` at end of stream.

        Raises:
            MalformedInputError: If the raw text cannot be tokenized.
        """

    def _next_line(self) -> tuple[str, str] | None:
        """Return ``(content, terminator)`` for the next physical line."""
        line = next(self._lines, None)
        if line is None:
            return None
        self._line_number += 1
        content = line.rstrip("\r\n")
        return content, line[len(content):]

    def _malformed(self, message: str, line_number: int, text: str) -> MalformedInputError:
        return MalformedInputError(message, RecordContext(None, line_number, text))

    def close(self) -> None:
        self._stream.close()

    def __iter__(self) -> Iterator[RawRecord]:
        return self

    def __next__(self) -> RawRecord:
        record = self.read()
        if record is None:
            raise StopIteration
        return record

    def __enter__(self) -> RecordReader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class RecordWriter(ABC):
    """Abstract base class for record writers."""

    def __init__(self, stream: TextIO, line_separator: str = "\n") -> None:
        self._stream = stream
        self._line_separator = line_separator
        self._line_number = 0

    @property
    def line_number(self) -> int:
        """Number of lines written so far."""
        return self._line_number

    def write(self, fields: Sequence[str]) -> None:
        text = self.format(fields)
        self._line_number += 1 + count_line_breaks(text)
        self._stream.write(text)
        self._stream.write(self._line_separator)

    @abstractmethod
    def format(self, fields: Sequence[str]) -> str:
        """Format one record, without the line separator."""

    def flush(self) -> None:
        self._stream.flush()

    def close(self) -> None:
        self._stream.close()

    def __enter__(self) -> RecordWriter:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
