"""
Unit tests for the parser tree model (flatseq.nodes).

Covers TreeBuilder validation, sibling ranking by order, and the
lookup helpers used by the engine and the exporters.
"""

import re

import pytest

from flatseq.exceptions import GrammarError
from flatseq.nodes import ROOT, Criterion, NodeKind, TreeBuilder


# ---------------------------------------------------------------------------
# Criterion
# ---------------------------------------------------------------------------

class TestCriterion:

    def test_literal(self):
        c = Criterion(0, literal="H")
        assert c.describe() == "[0] == 'H'"

    def test_regex_constructor(self):
        c = Criterion.regex(2, r"\d+")
        assert isinstance(c.pattern, re.Pattern)
        assert c.describe() == r"[2] ~ /\d+/"

    def test_needs_one_test(self):
        with pytest.raises(GrammarError, match="exactly one"):
            Criterion(0)

    def test_rejects_both_tests(self):
        with pytest.raises(GrammarError, match="exactly one"):
            Criterion(0, literal="A", pattern=re.compile("A"))

    def test_negative_position(self):
        with pytest.raises(GrammarError, match=">= 0"):
            Criterion(-1, literal="A")


# ---------------------------------------------------------------------------
# TreeBuilder
# ---------------------------------------------------------------------------

class TestTreeBuilder:

    def test_root_defaults(self):
        tree = TreeBuilder("file").build()
        assert tree.root.index == ROOT
        assert tree.root.kind is NodeKind.GROUP
        assert (tree.root.min_occurs, tree.root.max_occurs) == (0, 1)
        assert tree.name == "file"

    def test_default_order_is_declared_position(self, batch_tree):
        batch = batch_tree.find("batch")
        assert [c.order for c in batch_tree.children(batch.index)] == [0, 1, 2]

    def test_records_in_declaration_order(self, batch_tree):
        assert [r.name for r in batch_tree.records] == ["header", "detail", "trailer"]

    def test_record_under_record_rejected(self):
        b = TreeBuilder("file")
        rec = b.record("a", criteria=[Criterion(0, literal="A")])
        with pytest.raises(GrammarError, match="under record"):
            b.record("b", parent=rec)

    def test_unknown_parent(self):
        with pytest.raises(GrammarError, match="Unknown parent"):
            TreeBuilder("file").record("a", parent=7)

    def test_min_exceeds_max(self):
        b = TreeBuilder("file")
        b.record("a", min_occurs=3, max_occurs=2)
        with pytest.raises(GrammarError, match="exceeds"):
            b.build()

    def test_max_zero(self):
        b = TreeBuilder("file")
        b.group("g", max_occurs=0)
        with pytest.raises(GrammarError, match="max_occurs must be >= 1"):
            b.build()

    def test_negative_min(self):
        b = TreeBuilder("file")
        b.record("a", min_occurs=-1)
        with pytest.raises(GrammarError, match="min_occurs must be >= 0"):
            b.build()

    def test_duplicate_sibling_names(self):
        b = TreeBuilder("file")
        b.record("a", criteria=[Criterion(0, literal="A")])
        b.record("a", criteria=[Criterion(0, literal="B")])
        with pytest.raises(GrammarError, match="duplicate"):
            b.build()

    def test_same_name_in_different_groups(self):
        b = TreeBuilder("file")
        for name in ("g1", "g2"):
            g = b.group(name)
            b.record("row", parent=g, criteria=[Criterion(0, literal="R")])
        tree = b.build()
        assert tree.find("g1", "row").index != tree.find("g2", "row").index

    def test_two_fallback_records(self):
        b = TreeBuilder("file")
        b.record("any1")
        b.record("any2")
        with pytest.raises(GrammarError, match="without identification criteria"):
            b.build()


# ---------------------------------------------------------------------------
# ParserTree
# ---------------------------------------------------------------------------

class TestParserTree:

    def test_ranks_group_equal_orders(self):
        b = TreeBuilder("file")
        b.record("a", order=5, criteria=[Criterion(0, literal="A")])
        b.record("z", order=9, criteria=[Criterion(0, literal="Z")])
        b.record("b", order=5, criteria=[Criterion(0, literal="B")])
        tree = b.build()
        ranks = tree.ranks(ROOT)
        assert [[n.name for n in rank] for rank in ranks] == [["a", "b"], ["z"]]

    def test_path(self, batch_tree):
        detail = batch_tree.find("batch", "detail", "detail")
        assert batch_tree.path(detail.index) == ("stream", "batch", "detail", "detail")

    def test_find_missing(self, batch_tree):
        with pytest.raises(KeyError, match="stream/batch/footer"):
            batch_tree.find("batch", "footer")

    def test_len(self, batch_tree):
        assert len(batch_tree) == 6

    def test_bounds_helpers(self, batch_tree):
        header = batch_tree.find("batch", "header")
        detail_group = batch_tree.find("batch", "detail")
        assert header.below_max(0) and not header.below_max(1)
        assert detail_group.below_max(10_000)
        assert detail_group.satisfied(0)
        assert not header.satisfied(0)

    def test_repr(self, batch_tree):
        assert repr(batch_tree.find("batch")) == "<group 'batch' [1..3]>"
        assert repr(batch_tree.find("batch", "detail")) == "<group 'detail' [0..*]>"
