"""
Unit tests for record identification (flatseq.identify).
"""

import pytest

from flatseq.identify import criterion_matches, identify, record_matches
from flatseq.nodes import Criterion, TreeBuilder


def _tree():
    b = TreeBuilder("file")
    b.record("fallback")
    b.record("header", criteria=[Criterion(0, literal="H")])
    b.record("typed_header", criteria=[Criterion(0, literal="H"), Criterion.regex(1, r"[A-Z]{3}")])
    b.record("numeric", criteria=[Criterion.regex(0, r"\d+")])
    return b.build()


class TestCriterionMatches:

    def test_literal_exact(self):
        assert criterion_matches(Criterion(0, literal="H"), ["H"])
        assert not criterion_matches(Criterion(0, literal="H"), ["HH"])

    def test_regex_must_match_whole_field(self):
        c = Criterion.regex(0, r"\d+")
        assert criterion_matches(c, ["123"])
        assert not criterion_matches(c, ["123a"])

    def test_position_out_of_range_never_matches(self):
        assert not criterion_matches(Criterion(3, literal=""), ["a", "b"])

    @pytest.mark.parametrize("fields", [["H", "x"], ["H"]])
    def test_only_named_position_checked(self, fields):
        assert criterion_matches(Criterion(0, literal="H"), fields)


class TestIdentify:

    def test_first_match_wins(self):
        tree = _tree()
        # Both header and typed_header match; header is declared first.
        assert identify(["H", "ABC"], tree.records).name == "header"

    def test_declaration_order_is_respected(self):
        tree = _tree()
        reordered = [tree.find("typed_header"), tree.find("header")]
        assert identify(["H", "ABC"], reordered).name == "typed_header"

    def test_fallback_considered_last(self):
        tree = _tree()
        assert identify(["42"], tree.records).name == "numeric"
        assert identify(["?"], tree.records).name == "fallback"

    def test_unidentified(self):
        tree = _tree()
        strict = [r for r in tree.records if not r.unconditional]
        assert identify(["?"], strict) is None

    def test_empty_record(self):
        tree = _tree()
        strict = [r for r in tree.records if not r.unconditional]
        assert identify([], strict) is None

    def test_record_matches_requires_all_criteria(self):
        node = _tree().find("typed_header")
        assert record_matches(node, ["H", "USD"])
        assert not record_matches(node, ["H", "usd"])
        assert not record_matches(node, ["X", "USD"])
