"""
Parser tree model for flatseq.

A layout is a tree of two node variants:

- **Group**: an ordered, boundedly repeatable sequence of child nodes.
- **Record**: one identifiable physical record type, matched against the
  tokenized fields of a raw record using identification criteria.

The tree is stored as an arena: every node lives in ``ParserTree.nodes``
and refers to its parent and children by index.  A read session keeps its
own cursor of indices and counters, so a single ``ParserTree`` can be
shared read-only by any number of sessions.

Trees are assembled with ``TreeBuilder`` (directly, or via
``config.build_tree()`` from a YAML mapping) and are immutable once built.
"""

from __future__ import annotations

import enum
import re
from collections import Counter
from dataclasses import dataclass, field

from flatseq.exceptions import GrammarError

ROOT = 0


class NodeKind(enum.Enum):
    GROUP = "group"
    RECORD = "record"


@dataclass(frozen=True)
class Criterion:
    """A single identification test: the field at ``position`` must equal
    ``literal`` or fully match ``pattern``."""

    position: int
    literal: str | None = None
    pattern: re.Pattern[str] | None = None

    def __post_init__(self) -> None:
        if self.position < 0:
            raise GrammarError(f"Criterion position must be >= 0, got {self.position}")
        if (self.literal is None) == (self.pattern is None):
            raise GrammarError(
                f"Criterion at position {self.position} needs exactly one of "
                "'literal' or 'pattern'"
            )

    @classmethod
    def regex(cls, position: int, expression: str) -> Criterion:
        return cls(position=position, pattern=re.compile(expression))

    def describe(self) -> str:
        if self.literal is not None:
            return f"[{self.position}] == {self.literal!r}"
        return f"[{self.position}] ~ /{self.pattern.pattern}/"


@dataclass(frozen=True)
class Node:
    """One node of the parser tree.

    Attributes:
        index: Position of this node in ``ParserTree.nodes``.
        kind: ``NodeKind.GROUP`` or ``NodeKind.RECORD``.
        name: Unique among the node's siblings.
        min_occurs: Minimum occurrences per repetition of the parent.
        max_occurs: Maximum occurrences, or ``None`` for unbounded.
        order: Rank among siblings.  Siblings sharing an order are
            alternatives at the same position.
        parent: Index of the parent group, ``None`` for the root.
        children: Child indices in declared order (groups only).
        criteria: Identification criteria (records only).
        field_names: Optional column names for the record's fields.
    """

    index: int
    kind: NodeKind
    name: str
    min_occurs: int
    max_occurs: int | None
    order: int
    parent: int | None
    children: tuple[int, ...] = ()
    criteria: tuple[Criterion, ...] = ()
    field_names: tuple[str, ...] = ()

    @property
    def is_group(self) -> bool:
        return self.kind is NodeKind.GROUP

    @property
    def is_record(self) -> bool:
        return self.kind is NodeKind.RECORD

    @property
    def unconditional(self) -> bool:
        """True for a record without criteria (matches any raw record)."""
        return self.kind is NodeKind.RECORD and not self.criteria

    def below_max(self, count: int) -> bool:
        return self.max_occurs is None or count < self.max_occurs

    def satisfied(self, count: int) -> bool:
        return count >= self.min_occurs

    def __repr__(self) -> str:
        upper = "*" if self.max_occurs is None else self.max_occurs
        return f"<{self.kind.value} {self.name!r} [{self.min_occurs}..{upper}]>"


class ParserTree:
    """Immutable arena of nodes rooted at a stream-level group (index 0)."""

    def __init__(self, nodes: tuple[Node, ...]) -> None:
        self.nodes = nodes
        self._ranks = {
            n.index: _group_ranks(n, nodes) for n in nodes if n.is_group
        }
        self.records = tuple(self._walk_records(ROOT))

    @property
    def root(self) -> Node:
        return self.nodes[ROOT]

    @property
    def name(self) -> str:
        return self.root.name

    def node(self, index: int) -> Node:
        return self.nodes[index]

    def children(self, index: int) -> tuple[Node, ...]:
        return tuple(self.nodes[i] for i in self.nodes[index].children)

    def ranks(self, index: int) -> tuple[tuple[Node, ...], ...]:
        """Children of a group, bucketed by ``order`` (ascending).

        Declared order is preserved within a bucket.
        """
        return self._ranks[index]

    def path(self, index: int) -> tuple[str, ...]:
        names: list[str] = []
        current: int | None = index
        while current is not None:
            node = self.nodes[current]
            names.append(node.name)
            current = node.parent
        return tuple(reversed(names))

    def find(self, *names: str) -> Node:
        """Resolve a node by its name path below the root.

        ``tree.find("batch", "header")`` returns the ``header`` record of
        the ``batch`` group.
        """
        current = self.root
        for name in names:
            for child in self.children(current.index):
                if child.name == name:
                    current = child
                    break
            else:
                raise KeyError("/".join(self.path(current.index) + (name,)))
        return current

    def _walk_records(self, index: int):
        for child in self.children(index):
            if child.is_record:
                yield child
            else:
                yield from self._walk_records(child.index)

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        return f"ParserTree(name={self.name!r}, nodes={len(self.nodes)})"


def _group_ranks(group: Node, nodes: tuple[Node, ...]) -> tuple[tuple[Node, ...], ...]:
    buckets: dict[int, list[Node]] = {}
    for i in group.children:
        child = nodes[i]
        buckets.setdefault(child.order, []).append(child)
    return tuple(tuple(buckets[order]) for order in sorted(buckets))


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

@dataclass
class _Draft:
    kind: NodeKind
    name: str
    min_occurs: int
    max_occurs: int | None
    order: int | None
    parent: int | None
    children: list[int] = field(default_factory=list)
    criteria: tuple[Criterion, ...] = ()
    field_names: tuple[str, ...] = ()


class TreeBuilder:
    """Assemble a ``ParserTree`` node by node.

    Example::

        b = TreeBuilder("ach", min_occurs=1)
        batch = b.group("batch", min_occurs=1, max_occurs=3)
        b.record("header", parent=batch, min_occurs=1, max_occurs=1,
                 criteria=[Criterion(0, literal="H")])

    Children get ``order`` equal to their declared position unless an
    explicit order is passed.  ``build()`` validates the tree and returns
    the immutable result.
    """

    def __init__(
        self,
        name: str,
        min_occurs: int = 0,
        max_occurs: int | None = 1,
    ) -> None:
        self._drafts: list[_Draft] = [
            _Draft(NodeKind.GROUP, name, min_occurs, max_occurs, 0, None)
        ]

    def group(
        self,
        name: str,
        parent: int = ROOT,
        min_occurs: int = 0,
        max_occurs: int | None = None,
        order: int | None = None,
    ) -> int:
        return self._add(_Draft(NodeKind.GROUP, name, min_occurs, max_occurs, order, parent))

    def record(
        self,
        name: str,
        parent: int = ROOT,
        min_occurs: int = 0,
        max_occurs: int | None = None,
        order: int | None = None,
        criteria: list[Criterion] | tuple[Criterion, ...] = (),
        field_names: list[str] | tuple[str, ...] = (),
    ) -> int:
        return self._add(
            _Draft(
                NodeKind.RECORD, name, min_occurs, max_occurs, order, parent,
                criteria=tuple(criteria), field_names=tuple(field_names),
            )
        )

    def _add(self, draft: _Draft) -> int:
        if not 0 <= draft.parent < len(self._drafts):
            raise GrammarError(f"Unknown parent index {draft.parent} for '{draft.name}'")
        parent = self._drafts[draft.parent]
        if parent.kind is not NodeKind.GROUP:
            raise GrammarError(
                f"Cannot add '{draft.name}' under record '{parent.name}'"
            )
        index = len(self._drafts)
        if draft.order is None:
            draft.order = len(parent.children)
        parent.children.append(index)
        self._drafts.append(draft)
        return index

    def build(self) -> ParserTree:
        """Validate the drafted nodes and freeze them into a ``ParserTree``.

        Raises:
            GrammarError: If any structural rule is violated.
        """
        for draft in self._drafts:
            _check_bounds(draft)
            if draft.kind is NodeKind.GROUP:
                _check_siblings(draft, self._drafts)

        nodes = tuple(
            Node(
                index=i,
                kind=d.kind,
                name=d.name,
                min_occurs=d.min_occurs,
                max_occurs=d.max_occurs,
                order=d.order,
                parent=d.parent,
                children=tuple(d.children),
                criteria=d.criteria,
                field_names=d.field_names,
            )
            for i, d in enumerate(self._drafts)
        )
        return ParserTree(nodes)


def _check_bounds(draft: _Draft) -> None:
    if draft.min_occurs < 0:
        raise GrammarError(f"'{draft.name}': min_occurs must be >= 0")
    if draft.max_occurs is not None:
        if draft.max_occurs < 1:
            raise GrammarError(f"'{draft.name}': max_occurs must be >= 1")
        if draft.min_occurs > draft.max_occurs:
            raise GrammarError(
                f"'{draft.name}': min_occurs ({draft.min_occurs}) exceeds "
                f"max_occurs ({draft.max_occurs})"
            )


def _check_siblings(group: _Draft, drafts: list[_Draft]) -> None:
    children = [drafts[i] for i in group.children]
    duplicates = [n for n, c in Counter(c.name for c in children).items() if c > 1]
    if duplicates:
        raise GrammarError(
            f"Group '{group.name}' has duplicate child names: {sorted(duplicates)}"
        )
    fallbacks = [
        c.name for c in children if c.kind is NodeKind.RECORD and not c.criteria
    ]
    if len(fallbacks) > 1:
        raise GrammarError(
            f"Group '{group.name}' has more than one record without "
            f"identification criteria: {fallbacks}"
        )
