"""Forest reconstruction and tree-art rendering for parent-linked records."""

from collections.abc import Callable, Hashable, Sequence
from typing import Protocol, TypeVar

from panopticon.models import ActorNode, Fiber

# Prefix plus display string of a fiber line occupy this many cells
FIBER_LABEL_WIDTH = 13


class TreeRecord(Protocol):
    """Anything with an id and an optional parent id."""

    @property
    def id(self) -> Hashable: ...

    @property
    def parent_id(self) -> Hashable | None: ...


R = TypeVar("R", bound=TreeRecord)


def build_forest(records: Sequence[TreeRecord]) -> tuple[list[int], dict[int, list[int]]]:
    """
    Partition records into roots and children, by position in ``records``.

    A record is a root when its parent id is missing, unknown, or its own id.
    Both roots and child lists keep the input order. Records that no root
    reaches (parent cycles) are detached from their parent and promoted to
    roots, so every record appears in the forest exactly once.

    Returns:
        The root positions and a mapping of position to child positions.
    """
    positions: dict[Hashable, int] = {}
    for pos, record in enumerate(records):
        positions.setdefault(record.id, pos)

    roots: list[int] = []
    children: dict[int, list[int]] = {pos: [] for pos in range(len(records))}
    for pos, record in enumerate(records):
        parent = record.parent_id
        if parent is None or parent == record.id or parent not in positions:
            roots.append(pos)
        else:
            children[positions[parent]].append(pos)

    reached: set[int] = set()

    def mark(start: int) -> None:
        stack = [start]
        while stack:
            pos = stack.pop()
            if pos in reached:
                continue
            reached.add(pos)
            stack.extend(children[pos])

    for root in roots:
        mark(root)

    for pos, record in enumerate(records):
        if pos in reached:
            continue
        children[positions[record.parent_id]].remove(pos)
        roots.append(pos)
        mark(pos)

    return roots, children


def printable_tree(
    records: Sequence[R],
    display: Callable[[R], str] = lambda r: f"#{r.id}",
    label: Callable[[R], str] = lambda r: "",
    width: int = 0,
) -> list[tuple[str, R]]:
    """
    Render records as tree-art lines in pre-order depth-first order.

    Each line is the ancestor prefix (``"│ "`` or ``"  "`` per level), the
    branch (``"├─"`` or ``"└─"``) and ``display(record)``, left-justified to
    ``width`` cells, followed directly by ``label(record)``.

    Returns:
        ``(line, record)`` pairs; the records come out in the same order as
        the lines, so a selected line index maps back to its record.
    """
    roots, children = build_forest(records)
    lines: list[tuple[str, R]] = []

    # (position, ancestors-with-later-siblings, is-last-sibling)
    stack: list[tuple[int, tuple[bool, ...], bool]] = [
        (pos, (), i == len(roots) - 1) for i, pos in reversed(list(enumerate(roots)))
    ]
    while stack:
        pos, trail, last = stack.pop()
        record = records[pos]
        prefix = "".join("│ " if more else "  " for more in trail)
        prefix += "└─" if last else "├─"
        head = (prefix + display(record)).ljust(width)
        lines.append((head + label(record), record))

        kids = children[pos]
        for i, kid in reversed(list(enumerate(kids))):
            stack.append((kid, trail + (not last,), i == len(kids) - 1))

    return lines


def fiber_tree(fibers: Sequence[Fiber]) -> list[tuple[str, Fiber]]:
    """Render a fiber dump as ``├─#1         Running`` style lines."""
    return printable_tree(
        fibers,
        display=lambda f: f"#{f.id}",
        label=lambda f: f.status.value,
        width=FIBER_LABEL_WIDTH,
    )


def actor_tree(nodes: Sequence[ActorNode]) -> list[tuple[str, ActorNode]]:
    """Render an actor hierarchy by actor name."""
    return printable_tree(nodes, display=lambda n: n.name)
