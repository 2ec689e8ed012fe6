"""
Fixed-length record reader and writer.

Without ``widths`` each record is a single field holding the whole line.
With ``widths`` the line is sliced into consecutive columns of those
widths; text past the last column becomes one extra trailing field.
Lines shorter than the layout yield shorter (possibly empty) fields, so
identification criteria still see a field at every declared position.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TextIO

from flatseq.stream.base import RawRecord, RecordReader, RecordWriter, _check_char


class FixedLengthReader(RecordReader):

    def __init__(
        self,
        stream: TextIO,
        widths: Sequence[int] | None = None,
        line_continuation: str | None = None,
    ) -> None:
        super().__init__(stream)
        _check_char("line_continuation", line_continuation)
        if widths is not None and any(w <= 0 for w in widths):
            raise ValueError(f"Column widths must be positive, got {list(widths)}")
        self.widths = tuple(widths) if widths is not None else None
        self.line_continuation = line_continuation

    def read(self) -> RawRecord | None:
        line = self._next_line()
        if line is None:
            return None
        start = self._line_number
        content, terminator = line
        raw = [content]
        record = content

        while self.line_continuation and record.endswith(self.line_continuation):
            line = self._next_line()
            if line is None:
                raise self._malformed(
                    f"Unexpected end of stream after line continuation at line {start}",
                    start, "".join(raw),
                )
            content, next_terminator = line
            raw.extend((terminator, content))
            terminator = next_terminator
            record = record[:-1] + content

        return RawRecord(self._slice(record), "".join(raw), start)

    def _slice(self, record: str) -> tuple[str, ...]:
        if self.widths is None:
            return (record,)
        fields: list[str] = []
        offset = 0
        for width in self.widths:
            fields.append(record[offset:offset + width])
            offset += width
        if len(record) > offset:
            fields.append(record[offset:])
        return tuple(fields)


class FixedLengthWriter(RecordWriter):
    """Pads (or truncates) each field to its column width."""

    def __init__(
        self,
        stream: TextIO,
        widths: Sequence[int] | None = None,
        padding: str = " ",
        line_separator: str = "\n",
    ) -> None:
        super().__init__(stream, line_separator)
        _check_char("padding", padding)
        self.widths = tuple(widths) if widths is not None else None
        self.padding = padding

    def format(self, fields: Sequence[str]) -> str:
        if self.widths is None:
            return "".join(fields)
        values = list(fields)
        values += [""] * (len(self.widths) - len(values))
        columns = [
            value[:width].ljust(width, self.padding)
            for value, width in zip(values, self.widths)
        ]
        # Fields beyond the declared widths are written as-is.
        columns.extend(values[len(self.widths):])
        return "".join(columns)
