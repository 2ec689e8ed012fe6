"""
Stream reader for flatseq.

``StreamReader`` is the driver loop that ties the pieces together for one
read session:

1. Pull the next ``RawRecord`` from a record reader (tokenizer).
2. Identify it against every record type in the parser tree.
3. Advance the sequencing engine, which either accepts the record at its
   layout position or raises.
4. At end of input, advance the engine with ``END_OF_INPUT`` so that any
   required records still missing are reported.

Errors are never caught here: tokenizer, identification and sequencing
errors all reach the caller unchanged, and the session is over.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterator

from flatseq.engine import END_OF_INPUT, Accepted, RecordCandidate, SequencingEngine
from flatseq.identify import identify
from flatseq.nodes import ParserTree
from flatseq.stream.base import RecordReader

logger = logging.getLogger(__name__)


class StreamReader:
    """Iterate over the accepted records of one stream.

    Example::

        with StreamReader(tree, CsvReader(f)) as reader:
            for accepted in reader:
                print(accepted.line_number, accepted.record_name, accepted.fields)

    Attributes:
        tree: The shared, immutable parser tree.
        engine: The session's sequencing engine (owns the cursor).
        record_counts: Accepted records per record name so far.
    """

    def __init__(self, tree: ParserTree, records: RecordReader) -> None:
        self.tree = tree
        self.engine = SequencingEngine(tree)
        self.record_counts: Counter[str] = Counter()
        self._records = records

    @property
    def finished(self) -> bool:
        return self.engine.finished

    @property
    def last_line_number(self) -> int:
        return self.engine.last_line_number

    def read(self) -> Accepted | None:
        """Return the next accepted record, or ``None`` at a clean end of stream.

        Raises:
            MalformedInputError: The tokenizer could not read the record.
            UnidentifiedRecordError: The record matches no record type.
            UnexpectedRecordError: The record or end of stream violates the
                layout.
        """
        raw = self._records.read()
        if raw is None:
            self.engine.advance(END_OF_INPUT)
            return None

        record = identify(raw.fields, self.tree.records)
        candidate = RecordCandidate(record, raw.fields, raw.text, raw.line_number)
        accepted = self.engine.advance(candidate)
        self.record_counts[accepted.record_name] += 1
        return accepted

    def __iter__(self) -> Iterator[Accepted]:
        while not self.engine.finished:
            accepted = self.read()
            if accepted is None:
                return
            yield accepted

    def close(self) -> None:
        self._records.close()

    def __enter__(self) -> StreamReader:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"StreamReader(stream={self.tree.name!r}, "
            f"line={self.engine.last_line_number}, finished={self.finished})"
        )
