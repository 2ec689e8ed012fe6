"""
Shared test fixtures and sample layouts for flatseq tests.

The ``batch_tree`` fixture is the reference layout used across the engine
and integration tests::

    stream (0..1)
      batch (1..3)
        header  (1..1)   field 0 == "H"
        detail  group (0..*)
          detail (1..1)  field 0 == "D"
        trailer (1..1)   field 0 == "T"
"""

from __future__ import annotations

import pytest

from flatseq.engine import RecordCandidate, SequencingEngine
from flatseq.identify import identify
from flatseq.nodes import Criterion, ParserTree, TreeBuilder


# ---------------------------------------------------------------------------
# Layout builders
# ---------------------------------------------------------------------------

def build_batch_tree(stream_min: int = 0, stream_max: int | None = 1) -> ParserTree:
    b = TreeBuilder("stream", min_occurs=stream_min, max_occurs=stream_max)
    batch = b.group("batch", min_occurs=1, max_occurs=3)
    b.record("header", parent=batch, min_occurs=1, max_occurs=1,
             criteria=[Criterion(0, literal="H")], field_names=["type", "batch_id"])
    detail = b.group("detail", parent=batch, min_occurs=0, max_occurs=None)
    b.record("detail", parent=detail, min_occurs=1, max_occurs=1,
             criteria=[Criterion(0, literal="D")], field_names=["type", "amount"])
    b.record("trailer", parent=batch, min_occurs=1, max_occurs=1,
             criteria=[Criterion(0, literal="T")], field_names=["type", "count"])
    return b.build()


@pytest.fixture()
def batch_tree() -> ParserTree:
    return build_batch_tree()


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------

def candidate(tree: ParserTree, line_number: int, *fields: str) -> RecordCandidate:
    """Identify *fields* against every record type and wrap the result."""
    return RecordCandidate(
        identify(fields, tree.records), tuple(fields), ",".join(fields), line_number
    )


def feed(tree: ParserTree, codes: str) -> tuple[SequencingEngine, list[str]]:
    """Advance a fresh engine with one single-field record per character.

    Returns the engine and the names of the accepted records.
    """
    engine = SequencingEngine(tree)
    accepted: list[str] = []
    for line, code in enumerate(codes, start=1):
        accepted.append(engine.advance(candidate(tree, line, code)).record_name)
    return engine, accepted


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------
def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (reads files end to end)",
    )
