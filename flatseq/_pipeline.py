"""
Internal ingest pipeline for flatseq.

Extracted from ``__init__.py`` so that the tabulation step can be tested
on its own, without files on disk.

This module is **not** part of the public API.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable

import pandas as pd

from flatseq.engine import Accepted
from flatseq.export import export_tables
from flatseq.nodes import Node, ParserTree

logger = logging.getLogger(__name__)


def table_names(tree: ParserTree) -> dict[int, str]:
    """Pick an output table name for every record type.

    The record name is used when it is unique in the tree; otherwise the
    record's path below the root is joined with dots
    (e.g. ``batch.header`` and ``file.header``).
    """
    counts = Counter(r.name for r in tree.records)
    return {
        r.index: r.name if counts[r.name] == 1 else ".".join(tree.path(r.index)[1:])
        for r in tree.records
    }


def collect_tables(
    tree: ParserTree,
    records: Iterable[Accepted],
) -> tuple[dict[str, pd.DataFrame], pd.DataFrame]:
    """Tabulate accepted records per record type.

    Every table has a ``line_number`` column followed by the record's
    fields, keyed by the declared column names (``field_<i>`` for
    undeclared positions).  Field values stay raw strings.

    Returns:
        ``(tables, summary)`` where *tables* maps table name -> DataFrame
        for record types that occurred at least once, and *summary* has one
        row per record type with its path, count and first / last line.
    """
    names = table_names(tree)
    rows: dict[int, list[dict[str, object]]] = defaultdict(list)
    for accepted in records:
        rows[accepted.node.index].append(
            {"line_number": accepted.line_number, **accepted.as_dict()}
        )

    tables: dict[str, pd.DataFrame] = {}
    for record in tree.records:
        if rows[record.index]:
            tables[names[record.index]] = pd.DataFrame.from_records(rows[record.index])

    summary = pd.DataFrame.from_records(
        [_summary_row(tree, record, names[record.index], rows[record.index])
         for record in tree.records],
        columns=["table_name", "record_path", "records", "first_line", "last_line"],
    )
    return tables, summary


def _summary_row(
    tree: ParserTree,
    record: Node,
    name: str,
    rows: list[dict[str, object]],
) -> dict[str, object]:
    lines = [row["line_number"] for row in rows]
    return {
        "table_name": name,
        "record_path": "/".join(tree.path(record.index)),
        "records": len(rows),
        "first_line": min(lines) if lines else None,
        "last_line": max(lines) if lines else None,
    }


def tabulate_and_export(
    tree: ParserTree,
    records: Iterable[Accepted],
    output_dir: str,
    output_format: str,
) -> list[str]:
    """Collect accepted records into tables and export them to disk.

    Args:
        tree: The parser tree the records were read against.
        records: Accepted records, typically a ``StreamReader``.
        output_dir: Directory for the output files.
        output_format: ``"csv"`` or ``"parquet"``.

    Returns:
        List of output file paths that were written.
    """
    tables, summary = collect_tables(tree, records)
    written = export_tables(
        tables=tables,
        summary_df=summary,
        output_dir=output_dir,
        output_format=output_format,
    )
    logger.info("Ingest complete: wrote %d files", len(written))
    return written
