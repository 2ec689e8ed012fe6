"""
Sequencing engine for flatseq.

The engine validates that identified records arrive in an order allowed
by a ``ParserTree``.  It is a one-record-lookahead matcher over a tree with
bounded repetition:

- **Enter**: the next eligible child at the innermost open group matches
  the record and is below its ``max_occurs``.  Records are consumed on the
  spot; groups are pushed onto the cursor.
- **Skip**: a child that does not match but already has its
  ``min_occurs`` is finished for this repetition of its parent.
- **Fail**: a child that does not match and still lacks occurrences makes
  the record unexpected.
- **Bubble up**: when every child of the innermost group is finished, the
  group's repetition is complete; it is popped and the record is retried
  against the parent.  A popped group can restart at the parent, which is
  how group repetition is detected: lazily, by the first record that
  cannot extend the current repetition.

Searching is a pure function (``plan()``) of the cursor and the record's
fields.  ``SequencingEngine.advance()`` commits a plan only once a full
match is found, and raises otherwise.  Every violation is terminal for
the session.

Occurrence counters live in ``Cursor.counts`` indexed by node.  A count is
the number of occurrences of a node within the current repetition of its
parent; for groups it is incremented when the group is popped (one full
repetition finished).  ``counts[ROOT]`` counts completed passes over the
whole stream layout.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from flatseq.exceptions import (
    RecordContext,
    SessionClosedError,
    StreamError,
    UnexpectedRecordError,
    UnidentifiedRecordError,
)
from flatseq.identify import record_matches
from flatseq.nodes import ROOT, Node, ParserTree

logger = logging.getLogger(__name__)

# Line number reported for end-of-input violations when nothing was accepted.
STREAM_START = 0


class _EndOfInput(enum.Enum):
    END_OF_INPUT = "end-of-input"

    def __repr__(self) -> str:
        return "END_OF_INPUT"


END_OF_INPUT = _EndOfInput.END_OF_INPUT


# ---------------------------------------------------------------------------
# Values passed in and out of the engine
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RecordCandidate:
    """An identified (or unidentified) raw record ready to be sequenced.

    Attributes:
        record: The record type returned by ``identify()``, or ``None``.
        fields: Tokenized field text.
        text: Raw record text as read from the stream.
        line_number: 1-based line where the record starts.
    """

    record: Node | None
    fields: tuple[str, ...]
    text: str | None
    line_number: int


@dataclass(frozen=True)
class Accepted:
    """A record accepted at its layout position, ready for binding."""

    node: Node
    fields: tuple[str, ...]
    text: str | None
    line_number: int

    @property
    def record_name(self) -> str:
        return self.node.name

    def as_dict(self) -> dict[str, str]:
        """Map field names to raw field text.

        Fields without a declared name are keyed ``field_<position>``.
        """
        names = self.node.field_names
        return {
            (names[i] if i < len(names) else f"field_{i}"): value
            for i, value in enumerate(self.fields)
        }


# ---------------------------------------------------------------------------
# Cursor
# ---------------------------------------------------------------------------

@dataclass
class Frame:
    """An open group: ``rank`` is the sibling position currently reached."""

    node: int
    rank: int = 0


@dataclass
class Cursor:
    """Mutable per-session position within a parser tree."""

    stack: list[Frame] = field(default_factory=list)
    counts: list[int] = field(default_factory=list)

    @classmethod
    def for_tree(cls, tree: ParserTree) -> Cursor:
        return cls(stack=[], counts=[0] * len(tree))

    def position(self, tree: ParserTree) -> tuple[str, ...]:
        return tuple(tree.node(f.node).name for f in self.stack)


# ---------------------------------------------------------------------------
# Planning (pure)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Match:
    """Where a record fits.

    ``path`` lists ``(group index, rank)`` from the group that was searched
    down to the record's parent; ``record`` is the matched record index.
    """

    path: tuple[tuple[int, int], ...]
    record: int


@dataclass(frozen=True)
class Blocked:
    """No match because ``node`` has not reached its ``min_occurs``."""

    node: int


@dataclass(frozen=True)
class Plan:
    """Result of ``plan()``.

    Attributes:
        pops: Number of innermost frames closed before the outcome applies.
        outcome: ``Match``, ``Blocked``, or ``None`` when nothing accepts.
        restart_root: True when the match starts a new pass of the root.
    """

    pops: int
    outcome: Match | Blocked | None
    restart_root: bool = False


CountOf = Callable[[int], int]


def _fresh(_index: int) -> int:
    return 0


def _only_default(tree: ParserTree, fields: Sequence[str]) -> bool:
    """True when no record with criteria matches *fields*.

    A criteria-less record may only take such a record; anything a strict
    record type identifies goes to a strict record or is unexpected.
    """
    return not any(
        record_matches(r, fields) for r in tree.records if not r.unconditional
    )


def _search(
    tree: ParserTree,
    group: int,
    start_rank: int,
    count_of: CountOf,
    fields: Sequence[str],
    default_ok: bool,
) -> Match | Blocked | None:
    ranks = tree.ranks(group)
    for rank in range(start_rank, len(ranks)):
        blocker: int | None = None
        for child in ranks[rank]:
            count = count_of(child.index)
            inner: Match | Blocked | None = None
            if child.below_max(count):
                inner = _enter(tree, child, fields, default_ok)
                if isinstance(inner, Match):
                    return Match(((group, rank),) + inner.path, inner.record)
            if blocker is None and not child.satisfied(count):
                blocker = inner.node if isinstance(inner, Blocked) else child.index
        if blocker is not None:
            return Blocked(blocker)
    return None


def _enter(
    tree: ParserTree,
    child: Node,
    fields: Sequence[str],
    default_ok: bool,
) -> Match | Blocked | None:
    if child.is_record:
        if child.unconditional and not default_ok:
            return None
        return Match((), child.index) if record_matches(child, fields) else None
    return _search(tree, child.index, 0, _fresh, fields, default_ok)


def plan(tree: ParserTree, cursor: Cursor, fields: Sequence[str]) -> Plan:
    """Find where a record with *fields* fits, without touching *cursor*.

    Frames are searched innermost first.  A frame whose remaining children
    are all finished is (notionally) closed, which adds one completed
    repetition to its group, and the search moves to the parent.

    A criteria-less record matches only fields that no strict record type
    matches, so a default record never takes a record meant for a later
    sibling.
    """
    bumped: int | None = None
    default_ok = _only_default(tree, fields)

    def count_of(index: int) -> int:
        return cursor.counts[index] + (1 if index == bumped else 0)

    for pops, frame in enumerate(reversed(cursor.stack)):
        outcome = _search(tree, frame.node, frame.rank, count_of, fields, default_ok)
        if outcome is not None:
            return Plan(pops, outcome)
        bumped = frame.node

    pops = len(cursor.stack)
    root = tree.root
    root_count = count_of(ROOT)
    if not root.below_max(root_count):
        return Plan(pops, None)
    outcome = _search(tree, ROOT, 0, _fresh, fields, default_ok)
    return Plan(pops, outcome, restart_root=isinstance(outcome, Match))


def unsatisfied_child(tree: ParserTree, frame: Frame, counts: Sequence[int]) -> int | None:
    """First child at or after the frame's rank still below ``min_occurs``."""
    ranks = tree.ranks(frame.node)
    for rank in range(frame.rank, len(ranks)):
        for child in ranks[rank]:
            if not child.satisfied(counts[child.index]):
                return child.index
    return None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class SequencingEngine:
    """Drives one read session over a shared ``ParserTree``.

    Call ``advance()`` once per raw record, then once with
    ``END_OF_INPUT``.  Not safe for concurrent use; create one engine per
    session.
    """

    def __init__(self, tree: ParserTree) -> None:
        self.tree = tree
        self.cursor = Cursor.for_tree(tree)
        self.last_line_number = STREAM_START
        self.accepted_count = 0
        self._finished = False
        self._failed = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def failed(self) -> bool:
        return self._failed

    def advance(self, candidate: RecordCandidate | _EndOfInput) -> Accepted | None:
        """Sequence one record, or close the session at end-of-input.

        Returns:
            ``Accepted`` for a record, ``None`` once end-of-input closed
            every open group cleanly.

        Raises:
            UnidentifiedRecordError: The record matches no declared type.
            UnexpectedRecordError: The record (or end-of-input) is not
                allowed at the current position.
            SessionClosedError: The session already finished or failed.
        """
        if self._finished or self._failed:
            state = "failed" if self._failed else "finished"
            raise SessionClosedError(f"Read session for '{self.tree.name}' has {state}")

        try:
            if candidate is END_OF_INPUT:
                self._close()
                return None
            return self._accept(candidate)
        except StreamError:
            self._failed = True
            raise

    # -- Records -------------------------------------------------------------

    def _accept(self, candidate: RecordCandidate) -> Accepted:
        if candidate.record is None:
            raise UnidentifiedRecordError(
                f"Unidentified record at line {candidate.line_number}",
                RecordContext(None, candidate.line_number, candidate.text),
            )

        result = plan(self.tree, self.cursor, candidate.fields)
        if not isinstance(result.outcome, Match):
            raise self._unexpected(candidate, result.outcome)

        node = self._commit(result)
        self.last_line_number = candidate.line_number
        self.accepted_count += 1
        logger.debug(
            "line %d: accepted '%s' at %s",
            candidate.line_number,
            node.name,
            "/".join(self.cursor.position(self.tree)),
        )
        return Accepted(node, candidate.fields, candidate.text, candidate.line_number)

    def _commit(self, result: Plan) -> Node:
        stack = self.cursor.stack
        counts = self.cursor.counts
        for _ in range(result.pops):
            closed = stack.pop()
            counts[closed.node] += 1

        match = result.outcome
        steps = list(match.path)
        if result.restart_root:
            group, rank = steps.pop(0)
            self._push(group, rank)
        else:
            _group, rank = steps.pop(0)
            stack[-1].rank = rank
        for group, rank in steps:
            self._push(group, rank)

        counts[match.record] += 1
        return self.tree.node(match.record)

    def _push(self, group: int, rank: int) -> None:
        for child in self.tree.node(group).children:
            self.cursor.counts[child] = 0
        self.cursor.stack.append(Frame(group, rank))

    def _unexpected(
        self,
        candidate: RecordCandidate,
        outcome: Blocked | None,
    ) -> UnexpectedRecordError:
        name = candidate.record.name
        context = RecordContext(name, candidate.line_number, candidate.text)
        if outcome is None:
            return UnexpectedRecordError(
                f"Unexpected '{name}' record at line {candidate.line_number}",
                context,
            )
        missing = self.tree.node(outcome.node).name
        return UnexpectedRecordError(
            f"Unexpected '{name}' record at line {candidate.line_number}; "
            f"expected '{missing}'",
            context,
            unsatisfied=missing,
        )

    # -- End of input --------------------------------------------------------

    def _close(self) -> None:
        stack = self.cursor.stack
        counts = self.cursor.counts
        while stack:
            frame = stack[-1]
            missing = unsatisfied_child(self.tree, frame, counts)
            if missing is not None:
                raise self._incomplete(missing)
            stack.pop()
            counts[frame.node] += 1

        if not self.tree.root.satisfied(counts[ROOT]):
            raise self._incomplete(ROOT)

        self._finished = True
        logger.info(
            "Stream '%s' complete: %d record(s) accepted",
            self.tree.name,
            self.accepted_count,
        )

    def _incomplete(self, index: int) -> UnexpectedRecordError:
        name = self.tree.node(index).name
        return UnexpectedRecordError(
            f"End of stream reached after line {self.last_line_number}; "
            f"expected '{name}'",
            RecordContext(None, self.last_line_number, None),
            unsatisfied=name,
        )
