"""
Exporter for flatseq.

Writes one table per record type plus a ``_summary`` table to the output
directory in the configured format (CSV or Parquet).

Output file naming convention:
  {table_name}.{format}  -- e.g., "entry_detail.parquet", "batch.header.csv"
  "_summary.{format}"    -- always written after the record tables.

Record tables hold raw field text.  Before writing, every field column is
cast to pandas' ``string`` dtype and ``line_number`` to ``int64``, so a
field such as "007" keeps its leading zeros and a field missing from a
short record is written as null rather than turning the column into
``object`` or ``float``.  The summary table is written as built.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Literal

import pandas as pd

from flatseq.exceptions import ExportError

logger = logging.getLogger(__name__)

LINE_NUMBER = "line_number"


def _to_csv(df: pd.DataFrame, path: Path) -> None:
    df.to_csv(path, index=False, encoding="utf-8")


def _to_parquet(df: pd.DataFrame, path: Path) -> None:
    df.to_parquet(path, index=False, engine="pyarrow")


_WRITERS: dict[str, Callable[[pd.DataFrame, Path], None]] = {
    "csv": _to_csv,
    "parquet": _to_parquet,
}


def record_table(df: pd.DataFrame) -> pd.DataFrame:
    """Return *df* with field columns as ``string`` and line numbers as ints."""
    dtypes = {
        column: ("int64" if column == LINE_NUMBER else "string")
        for column in df.columns
    }
    return df.astype(dtypes)


def _write(df: pd.DataFrame, path: Path, output_format: str) -> None:
    try:
        _WRITERS[output_format](df, path)
    except Exception as exc:
        raise ExportError(
            f"Cannot write table {path.stem!r} to {path} ({output_format}): {exc}"
        ) from exc


def export_tables(
    tables: dict[str, pd.DataFrame],
    summary_df: pd.DataFrame,
    output_dir: str | Path,
    output_format: Literal["csv", "parquet"] = "parquet",
) -> list[str]:
    """Write the record tables, then the _summary table.

    Args:
        tables: Table name -> DataFrame of accepted records.
        summary_df: One row per record table.
        output_dir: Created recursively if missing.
        output_format: "csv" or "parquet".

    Returns:
        Paths written, record tables first and ``_summary`` last.

    Raises:
        ExportError: Unknown *output_format*, or a table could not be written.
    """
    if output_format not in _WRITERS:
        raise ExportError(
            f"Unsupported output format: '{output_format}'. "
            f"Supported formats: {sorted(_WRITERS)}"
        )

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    written: list[str] = []

    for name, df in tables.items():
        path = out / f"{name}.{output_format}"
        _write(record_table(df), path, output_format)
        written.append(str(path))
        logger.info("Exported %s: %d record(s) -> %s", name, len(df), path.name)

    path = out / f"_summary.{output_format}"
    _write(summary_df, path, output_format)
    written.append(str(path))
    logger.debug("Exported _summary -> %s", path.name)

    return written
