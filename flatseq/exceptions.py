"""
Custom exception hierarchy for flatseq.

Why a custom hierarchy:
- Callers can tell a structural violation (UnexpectedRecordError) apart
  from an unknown record type (UnidentifiedRecordError) or a low-level
  tokenizer failure (MalformedInputError) without parsing messages.
- Every stream-level error carries a ``RecordContext`` so the offending
  line number and raw text are always available to the caller.

All stream errors are terminal for the session that raised them.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RecordContext:
    """Where a stream error happened.

    Attributes:
        record_name: Name of the identified record type, or ``None`` when
            the record was unidentified or the error was raised at
            end-of-input.
        line_number: 1-based line of the offending record, or the line of
            the last accepted record for end-of-input violations
            (``0`` when nothing was accepted).
        record_text: Raw text of the offending record, if any.
    """

    record_name: str | None
    line_number: int
    record_text: str | None = None


class FlatseqError(Exception):
    """Base exception for all flatseq errors."""


class StreamError(FlatseqError):
    """Base class for errors raised while reading a record stream."""

    def __init__(self, message: str, context: RecordContext) -> None:
        super().__init__(message)
        self.context = context

    @property
    def line_number(self) -> int:
        return self.context.line_number

    @property
    def record_name(self) -> str | None:
        return self.context.record_name

    @property
    def record_text(self) -> str | None:
        return self.context.record_text


class UnidentifiedRecordError(StreamError):
    """Raised when a record matches no record type declared in the layout."""


class UnexpectedRecordError(StreamError):
    """Raised when a record (or end-of-input) cannot occur at the current position.

    This covers records that appear out of order, one occurrence too many,
    a required record or group that was skipped, and a stream that ends
    before every required occurrence was seen.

    ``unsatisfied`` names the node whose ``min_occurs`` was not met, or is
    ``None`` when no position in the layout could accept the record.
    """

    def __init__(
        self,
        message: str,
        context: RecordContext,
        unsatisfied: str | None = None,
    ) -> None:
        super().__init__(message, context)
        self.unsatisfied = unsatisfied


class MalformedInputError(StreamError):
    """Raised by a record reader when the raw text cannot be tokenized.

    For example, an unterminated quoted field or a line continuation
    character on the last line of the stream.  No layout context is
    attached because the record never reached identification.
    """


class SessionClosedError(FlatseqError):
    """Raised when a finished or failed read session is advanced again."""


class GrammarError(FlatseqError):
    """Raised when a parser tree is structurally invalid.

    For example, duplicate sibling names, ``min_occurs > max_occurs``, or
    two records without identification criteria under the same group.
    """


class ConfigValidationError(FlatseqError):
    """Raised when a mapping file fails validation.

    This can happen if:
    - The file is empty.
    - A requested stream name is not declared in the file.
    - A built-in layout name does not exist.
    """


class ExportError(FlatseqError):
    """Raised when the exporter fails to write output files.

    For example, permission errors, disk full, or unsupported format.
    """
