"""
Unit tests for the internal tabulation step (flatseq._pipeline).

Uses in-memory accepted records; no files on disk except for the
export round trip.
"""

from pathlib import Path

from flatseq._pipeline import collect_tables, table_names, tabulate_and_export
from flatseq.engine import SequencingEngine
from flatseq.nodes import Criterion, TreeBuilder
from tests.conftest import candidate


def _accepted(tree, *rows):
    """Accept each row (a tuple of fields) in order through a fresh engine."""
    engine = SequencingEngine(tree)
    return [engine.advance(candidate(tree, i, *row)) for i, row in enumerate(rows, 1)]


class TestTableNames:

    def test_unique_names(self, batch_tree):
        assert sorted(table_names(batch_tree).values()) == ["detail", "header", "trailer"]

    def test_duplicate_names_use_path(self):
        b = TreeBuilder("file")
        for name in ("first", "second"):
            g = b.group(name)
            b.record("row", parent=g, criteria=[Criterion(0, literal=name[0].upper())])
        tree = b.build()
        assert sorted(table_names(tree).values()) == ["first.row", "second.row"]


class TestCollectTables:

    def test_tables_per_record_type(self, batch_tree):
        records = _accepted(
            batch_tree, ("H", "B01"), ("D", "10"), ("D", "20"), ("T", "2")
        )
        tables, summary = collect_tables(batch_tree, records)
        assert list(tables) == ["header", "detail", "trailer"]
        assert tables["detail"].to_dict("records") == [
            {"line_number": 2, "type": "D", "amount": "10"},
            {"line_number": 3, "type": "D", "amount": "20"},
        ]
        assert tables["header"].columns.tolist() == ["line_number", "type", "batch_id"]

    def test_summary(self, batch_tree):
        records = _accepted(batch_tree, ("H",), ("T",))
        _, summary = collect_tables(batch_tree, records)
        assert summary["table_name"].tolist() == ["header", "detail", "trailer"]
        assert summary["records"].tolist() == [1, 0, 1]
        row = summary.set_index("table_name").loc["trailer"]
        assert row["record_path"] == "stream/batch/trailer"
        assert row["first_line"] == 2

    def test_record_type_without_rows_has_no_table(self, batch_tree):
        tables, _ = collect_tables(batch_tree, [])
        assert tables == {}

    def test_extra_fields(self, batch_tree):
        records = _accepted(batch_tree, ("H", "B01", "x"), ("T",))
        tables, _ = collect_tables(batch_tree, records)
        assert tables["header"].iloc[0]["field_2"] == "x"


class TestTabulateAndExport:

    def test_writes_files(self, batch_tree, tmp_path):
        records = _accepted(batch_tree, ("H", "B01"), ("T", "0"))
        written = tabulate_and_export(batch_tree, records, str(tmp_path), "csv")
        assert sorted(Path(p).name for p in written) == [
            "_summary.csv", "header.csv", "trailer.csv",
        ]
