"""
flatseq: validate and read hierarchical flat-file record streams.

A flat file (CSV, delimited or fixed-length) is described by a layout: a
tree of repeatable groups and identifiable record types with occurrence
bounds and ordering.  flatseq tokenizes the file, identifies each record,
and checks the record sequence against the layout, failing on the first
violation with the exact line number.

Public API surface:

- ``open(path, mapping, ...)`` -- open a file for reading; returns a
  ``StreamReader`` that yields ``Accepted`` records.

- ``validate(path, mapping, ...)`` -- read a whole file and return a
  ``ValidationSummary``; raises on the first structural violation.

- ``ingest(path, mapping, ...)`` -- read a whole file and export one table
  per record type (CSV or Parquet).

*mapping* may be a path to a YAML mapping file, the name of a built-in
layout (e.g. ``"nacha"``), a ``MappingConfig`` or a ``StreamConfig``.
"""

from __future__ import annotations

import builtins
import logging
from dataclasses import dataclass, field
from pathlib import Path

from flatseq._pipeline import tabulate_and_export
from flatseq.config import (
    MappingConfig,
    OutputConfig,
    StreamConfig,
    build_tree,
    load_config,
)
from flatseq.engine import END_OF_INPUT, Accepted, RecordCandidate, SequencingEngine
from flatseq.exceptions import (
    FlatseqError,
    MalformedInputError,
    UnexpectedRecordError,
    UnidentifiedRecordError,
)
from flatseq.layout_registry import get_layout
from flatseq.nodes import Criterion, ParserTree, TreeBuilder
from flatseq.reader import StreamReader
from flatseq.stream import create_reader

__all__ = [
    "open",
    "validate",
    "ingest",
    "ValidationSummary",
    "StreamReader",
    "Accepted",
    "RecordCandidate",
    "SequencingEngine",
    "END_OF_INPUT",
    "ParserTree",
    "TreeBuilder",
    "Criterion",
    "FlatseqError",
    "MalformedInputError",
    "UnexpectedRecordError",
    "UnidentifiedRecordError",
]

logger = logging.getLogger(__name__)

MappingSource = MappingConfig | StreamConfig | str | Path


@dataclass
class ValidationSummary:
    """Result of a successful ``validate()`` run.

    Attributes:
        stream: Name of the stream layout.
        records: Number of records accepted.
        record_counts: Accepted records per record name.
        last_line_number: Line of the last accepted record (0 if none).
    """

    stream: str
    records: int = 0
    record_counts: dict[str, int] = field(default_factory=dict)
    last_line_number: int = 0


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------

def _resolve(mapping: MappingSource, stream: str | None) -> tuple[StreamConfig, OutputConfig]:
    """Turn any accepted *mapping* argument into a stream + output config."""
    if isinstance(mapping, StreamConfig):
        return mapping, OutputConfig()
    if isinstance(mapping, MappingConfig):
        return mapping.get_stream(stream), mapping.output

    p = Path(mapping)
    if p.suffix.lower() in (".yaml", ".yml"):
        config = load_config(p)
        return config.get_stream(stream), config.output

    # -- Built-in layout name --
    layout = get_layout(str(mapping))
    return layout, OutputConfig()


def _open_stream(path: str | Path, stream_config: StreamConfig, encoding: str) -> StreamReader:
    tree = build_tree(stream_config)
    logger.info("Reading %s as stream '%s'", path, tree.name)
    handle = builtins.open(path, "r", encoding=encoding, newline="")
    try:
        records = create_reader(stream_config.format, handle, stream_config.reader)
    except Exception:
        handle.close()
        raise
    return StreamReader(tree, records)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def open(
    path: str | Path,
    mapping: MappingSource,
    stream: str | None = None,
    encoding: str = "utf-8",
) -> StreamReader:
    """Open a flat file for layout-checked reading.

    Args:
        path: The flat file to read.
        mapping: Mapping file path, built-in layout name, ``MappingConfig``
            or ``StreamConfig``.
        stream: Stream name within the mapping.  Required only when the
            mapping declares several streams.
        encoding: Text encoding of *path*.

    Returns:
        A ``StreamReader``; iterate it to get ``Accepted`` records, and
        close it (or use it as a context manager) when done.

    Examples::

        with flatseq.open("inputs/ach.txt", "nacha") as reader:
            for accepted in reader:
                print(accepted.line_number, accepted.record_name)
    """
    stream_config, _ = _resolve(mapping, stream)
    return _open_stream(path, stream_config, encoding)


def validate(
    path: str | Path,
    mapping: MappingSource,
    stream: str | None = None,
    encoding: str = "utf-8",
) -> ValidationSummary:
    """Read a whole file and check it against its layout.

    Returns:
        A ``ValidationSummary`` when the file is valid.

    Raises:
        MalformedInputError: The file could not be tokenized.
        UnidentifiedRecordError: A record matches no record type.
        UnexpectedRecordError: The record sequence violates the layout.
    """
    with open(path, mapping, stream=stream, encoding=encoding) as reader:
        records = sum(1 for _ in reader)
        summary = ValidationSummary(
            stream=reader.tree.name,
            records=records,
            record_counts=dict(reader.record_counts),
            last_line_number=reader.last_line_number,
        )
    logger.info(
        "validate() -- %s is valid: %d record(s), counts=%s",
        path, summary.records, summary.record_counts,
    )
    return summary


def ingest(
    path: str | Path,
    mapping: MappingSource,
    stream: str | None = None,
    output_dir: str | None = None,
    output_format: str | None = None,
    encoding: str = "utf-8",
) -> list[str]:
    """Read a whole file and export one table per record type.

    Orchestration:
      1. Resolve the stream layout and build its parser tree.
      2. Read every record through a ``StreamReader`` (fails fast on the
         first violation; nothing is written in that case).
      3. Tabulate accepted records per record type and export them with
         a ``_summary`` table.

    Args:
        path: The flat file to read.
        mapping: See ``open()``.
        stream: See ``open()``.
        output_dir: Overrides the mapping's ``output.output_dir``.
        output_format: Overrides the mapping's ``output.output_format``.
        encoding: Text encoding of *path*.

    Returns:
        List of output file paths that were written.
    """
    stream_config, output = _resolve(mapping, stream)
    output_dir = output_dir or output.output_dir
    output_format = output_format or output.output_format
    logger.info("ingest() -- path=%s, output_dir=%s", path, output_dir)

    with _open_stream(path, stream_config, encoding) as reader:
        accepted = list(reader)
        tree = reader.tree

    return tabulate_and_export(tree, accepted, output_dir, output_format)
