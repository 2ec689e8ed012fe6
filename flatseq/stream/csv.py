"""
CSV record reader and writer (RFC 4180 style).

Reader rules:
- A field starting with the quote character is quoted and ends at the
  next unescaped quote; it must be followed by a delimiter or the end of
  the line.
- Inside a quoted field, the escape character escapes the quote and
  itself.  By default the escape character is the quote, i.e. quotes are
  doubled (``""``).
- A line break inside a quoted field is only allowed when ``multiline``
  is enabled; the record then continues on the next physical line.
- ``whitespace_allowed`` permits spaces around a quoted field.
- ``unquoted_quotes_allowed`` permits quote characters in unquoted fields.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TextIO

from flatseq.stream.base import RawRecord, RecordReader, RecordWriter, _check_char


class CsvReader(RecordReader):

    def __init__(
        self,
        stream: TextIO,
        delimiter: str = ",",
        quote: str = '"',
        escape: str | None = '"',
        multiline: bool = False,
        whitespace_allowed: bool = False,
        unquoted_quotes_allowed: bool = False,
    ) -> None:
        super().__init__(stream)
        for name, value in (("delimiter", delimiter), ("quote", quote), ("escape", escape)):
            _check_char(name, value)
        if delimiter == quote:
            raise ValueError("The CSV delimiter and quote character must differ")
        if escape == delimiter:
            raise ValueError("The CSV delimiter and escape character must differ")
        self.delimiter = delimiter
        self.quote = quote
        self.escape = escape
        self.multiline = multiline
        self.whitespace_allowed = whitespace_allowed
        self.unquoted_quotes_allowed = unquoted_quotes_allowed

    def read(self) -> RawRecord | None:
        line = self._next_line()
        if line is None:
            return None
        start = self._line_number
        content, terminator = line
        raw = [content]
        fields: list[str] = []
        pos = 0

        while True:
            begin = self._quoted_start(content, pos)
            if begin is not None:
                value, content, terminator, pos = self._read_quoted(
                    content, terminator, begin + 1, raw, start
                )
                if self.whitespace_allowed:
                    while pos < len(content) and content[pos] == " ":
                        pos += 1
                fields.append(value)
                if pos == len(content):
                    break
                if content[pos] != self.delimiter:
                    raise self._malformed(
                        f"Invalid character found outside of quotes at line {self._line_number}",
                        start, "".join(raw),
                    )
                pos += 1
                continue

            end = content.find(self.delimiter, pos)
            value = content[pos:] if end == -1 else content[pos:end]
            if self.quote in value and not self.unquoted_quotes_allowed:
                raise self._malformed(
                    f"Quotation mark found in unquoted field at line {self._line_number}",
                    start, "".join(raw),
                )
            fields.append(value)
            if end == -1:
                break
            pos = end + 1

        return RawRecord(tuple(fields), "".join(raw), start)

    def _quoted_start(self, content: str, pos: int) -> int | None:
        """Index of the opening quote of a field starting at *pos*, if quoted."""
        i = pos
        if self.whitespace_allowed:
            while i < len(content) and content[i] == " ":
                i += 1
        if i < len(content) and content[i] == self.quote:
            return i
        return None

    def _read_quoted(
        self,
        content: str,
        terminator: str,
        i: int,
        raw: list[str],
        start: int,
    ) -> tuple[str, str, str, int]:
        value: list[str] = []
        while True:
            if i >= len(content):
                if not self.multiline:
                    raise self._malformed(
                        f"Expected end quote before end of line {self._line_number}",
                        start, "".join(raw),
                    )
                line = self._next_line()
                if line is None:
                    raise self._malformed(
                        "Expected end quote before end of stream", start, "".join(raw)
                    )
                value.append(terminator)
                content, next_terminator = line
                raw.extend((terminator, content))
                terminator = next_terminator
                i = 0
                continue

            c = content[i]
            nxt = content[i + 1] if i + 1 < len(content) else None
            if self.escape is not None and self.escape != self.quote and c == self.escape:
                if nxt is not None and nxt in (self.quote, self.escape):
                    value.append(nxt)
                    i += 2
                    continue
            elif c == self.quote:
                if self.escape == self.quote and nxt == self.quote:
                    value.append(self.quote)
                    i += 2
                    continue
                return "".join(value), content, terminator, i + 1
            value.append(c)
            i += 1


class CsvWriter(RecordWriter):
    """Formats records as CSV.

    A field is quoted when it contains the delimiter, the quote character,
    a carriage return or a line feed, or always when ``always_quote`` is
    set.  Occurrences of the quote and escape characters are escaped.
    """

    def __init__(
        self,
        stream: TextIO,
        delimiter: str = ",",
        quote: str = '"',
        escape: str | None = '"',
        always_quote: bool = False,
        line_separator: str = "\n",
    ) -> None:
        super().__init__(stream, line_separator)
        for name, value in (("delimiter", delimiter), ("quote", quote), ("escape", escape)):
            _check_char(name, value)
        self.delimiter = delimiter
        self.quote = quote
        self.escape = escape
        self.always_quote = always_quote

    def format(self, fields: Sequence[str]) -> str:
        return self.delimiter.join(self._format_field(value) for value in fields)

    def _format_field(self, value: str) -> str:
        if self.escape is not None:
            special = {self.quote, self.escape}
            value = "".join(self.escape + c if c in special else c for c in value)
        if self.always_quote or self._must_quote(value):
            return f"{self.quote}{value}{self.quote}"
        return value

    def _must_quote(self, value: str) -> bool:
        return any(c in (self.delimiter, self.quote, "\r", "\n") for c in value)
