"""
Delimited (tab-separated by default) record reader and writer.

No quoting.  Two optional characters change how a line is split:

- ``escape``: when followed by the escape character itself, the
  delimiter or the line continuation character, the following character
  is taken literally.  Before any other character (or at the end of a
  line) it is kept as-is.
- ``line_continuation``: when it is the last character of a physical
  line, the record continues on the next line.  A continuation on the
  last line of the stream is malformed input.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TextIO

from flatseq.stream.base import RawRecord, RecordReader, RecordWriter, _check_char


class DelimitedReader(RecordReader):

    def __init__(
        self,
        stream: TextIO,
        delimiter: str = "\t",
        escape: str | None = None,
        line_continuation: str | None = None,
    ) -> None:
        super().__init__(stream)
        for name, value in (
            ("delimiter", delimiter),
            ("escape", escape),
            ("line_continuation", line_continuation),
        ):
            _check_char(name, value)
        if delimiter == line_continuation:
            raise ValueError("The delimiter and line continuation character must differ")
        if delimiter == escape:
            raise ValueError("The delimiter and escape character must differ")
        self.delimiter = delimiter
        self.escape = escape
        self.line_continuation = line_continuation

    def read(self) -> RawRecord | None:
        line = self._next_line()
        if line is None:
            return None
        start = self._line_number
        content, terminator = line
        raw = [content]
        fields: list[str] = []
        value: list[str] = []
        i = 0

        while i < len(content):
            c = content[i]
            if c == self.line_continuation and i == len(content) - 1:
                line = self._next_line()
                if line is None:
                    raise self._malformed(
                        f"Unexpected end of stream after line continuation at line {start}",
                        start, "".join(raw),
                    )
                content, next_terminator = line
                raw.extend((terminator, content))
                terminator = next_terminator
                i = 0
                continue
            if c == self.escape and i + 1 < len(content) and content[i + 1] in (
                self.escape, self.delimiter, self.line_continuation,
            ):
                value.append(content[i + 1])
                i += 2
                continue
            if c == self.delimiter:
                fields.append("".join(value))
                value = []
            else:
                value.append(c)
            i += 1

        fields.append("".join(value))
        return RawRecord(tuple(fields), "".join(raw), start)


class DelimitedWriter(RecordWriter):
    """Joins fields with the delimiter, escaping it when an escape is set."""

    def __init__(
        self,
        stream: TextIO,
        delimiter: str = "\t",
        escape: str | None = None,
        line_separator: str = "\n",
    ) -> None:
        super().__init__(stream, line_separator)
        _check_char("delimiter", delimiter)
        _check_char("escape", escape)
        self.delimiter = delimiter
        self.escape = escape

    def format(self, fields: Sequence[str]) -> str:
        return self.delimiter.join(self._format_field(value) for value in fields)

    def _format_field(self, value: str) -> str:
        if self.escape is not None:
            special = (self.escape, self.delimiter)
            return "".join(self.escape + c if c in special else c for c in value)
        if self.delimiter in value:
            raise ValueError(
                f"Field {value!r} contains the delimiter and no escape character is set"
            )
        return value
