"""
Record identification for flatseq.

Classifies a tokenized raw record as one of the record types declared in
a parser tree.  Identification is **first match wins**: candidates are
tested in the order given (declaration order), and the first record whose
every criterion succeeds is the match.  Layout authors rely on this order
to disambiguate overlapping criteria, so it is never replaced by any kind
of best-match scoring.

Records without criteria match anything.  They are only considered after
every stricter candidate has failed, so a fallback record declared early
does not shadow its siblings.

All functions here are pure.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from flatseq.nodes import Criterion, Node


def criterion_matches(criterion: Criterion, fields: Sequence[str]) -> bool:
    if criterion.position >= len(fields):
        return False
    value = fields[criterion.position]
    if criterion.literal is not None:
        return value == criterion.literal
    return criterion.pattern.fullmatch(value) is not None


def record_matches(node: Node, fields: Sequence[str]) -> bool:
    """True if every identification criterion of *node* holds for *fields*."""
    return all(criterion_matches(c, fields) for c in node.criteria)


def identify(fields: Sequence[str], candidates: Iterable[Node]) -> Node | None:
    """Return the first candidate record that matches *fields*.

    Args:
        fields: The tokenized fields of one raw record.
        candidates: Record nodes eligible at this point, in declared order.

    Returns:
        The matched record node, or ``None`` if the record is unidentified.
    """
    fallback: Node | None = None
    for node in candidates:
        if node.unconditional:
            if fallback is None:
                fallback = node
            continue
        if record_matches(node, fields):
            return node
    return fallback
