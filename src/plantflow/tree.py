"""
Pure queries over the process tree.

All traversals are depth-first in document order and side-effect free.
Counting follows one rule everywhere: only *leaf stations* count — stations
that are neither placeholders nor groups.  Zones, workshops and group
stations are recursed through; placeholders are skipped along with their
whole subtree; inspections are never counted.

A workshop's or zone's own ``status`` is author-set and is never read by
``aggregate_status_counts``.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterator, Optional

from .models import NodeKind, NodeStatus, ProcessNode, Station


class NodeNotFound(KeyError):
    """Raised when an id is not present in the searched tree."""

    def __init__(self, node_id: str):
        super().__init__(node_id)
        self.node_id = node_id

    def __str__(self) -> str:
        return f"Node not found: {self.node_id}"


class MalformedTree(ValueError):
    """Raised at ingestion time for id collisions or illegal nesting."""


@dataclass(frozen=True)
class StatusCounts:
    """Leaf-station counts per status for one subtree."""
    total: int = 0
    normal: int = 0
    warning: int = 0
    critical: int = 0
    inactive: int = 0


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def find_by_id(root: ProcessNode, node_id: str) -> ProcessNode:
    """Depth-first search for ``node_id`` under (and including) ``root``.

    Raises:
        NodeNotFound: if no node in the subtree has that id.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        if node.id == node_id:
            return node
        stack.extend(reversed(node.children))
    raise NodeNotFound(node_id)


def find_node(root: ProcessNode, node_id: Optional[str]) -> Optional[ProcessNode]:
    """Like ``find_by_id`` but maps a miss (or a ``None`` id) to ``None``."""
    if node_id is None:
        return None
    try:
        return find_by_id(root, node_id)
    except NodeNotFound:
        return None


def is_descendant(root: ProcessNode, node_id: str) -> bool:
    """True when ``node_id`` is a strict descendant of ``root``."""
    if root.id == node_id:
        return False
    return find_node(root, node_id) is not None


def ancestry(root: ProcessNode, node_id: str) -> list[ProcessNode]:
    """Nodes from ``root`` down to the node with ``node_id``, both included.

    Raises:
        NodeNotFound: if the id is not under ``root``.
    """
    path: list[ProcessNode] = []

    def visit(node: ProcessNode) -> bool:
        path.append(node)
        if node.id == node_id:
            return True
        for child in node.children:
            if visit(child):
                return True
        path.pop()
        return False

    if not visit(root):
        raise NodeNotFound(node_id)
    return path


def owning_station(root: ProcessNode, node_id: str) -> Optional[Station]:
    """Return the station ``node_id`` names, or the station owning an inspection.

    Returns None when the id is not under ``root`` or names a zone/workshop.
    """
    try:
        path = ancestry(root, node_id)
    except NodeNotFound:
        return None
    node = path[-1]
    if node.kind == NodeKind.STATION:
        return node
    if node.kind == NodeKind.INSPECTION and len(path) > 1:
        return path[-2]
    return None


# ---------------------------------------------------------------------------
# Counting
# ---------------------------------------------------------------------------

def iter_leaf_stations(node: ProcessNode) -> Iterator[Station]:
    """Yield every leaf station under ``node`` in document order.

    ``node`` itself is yielded when it is a leaf station.
    """
    if node.kind == NodeKind.INSPECTION or node.is_placeholder:
        return
    if node.kind == NodeKind.STATION and not node.is_group:
        yield node
        return
    for child in node.children:
        yield from iter_leaf_stations(child)


def count_effective_stations(node: ProcessNode) -> int:
    """Number of true work units under ``node``."""
    return sum(1 for _ in iter_leaf_stations(node))


def aggregate_status_counts(node: ProcessNode) -> StatusCounts:
    """Per-status counts of the leaf stations under ``node``."""
    counter = Counter(station.status for station in iter_leaf_stations(node))
    return StatusCounts(
        total=sum(counter.values()),
        normal=counter[NodeStatus.NORMAL],
        warning=counter[NodeStatus.WARNING],
        critical=counter[NodeStatus.CRITICAL],
        inactive=counter[NodeStatus.INACTIVE],
    )


# ---------------------------------------------------------------------------
# Ingestion checks
# ---------------------------------------------------------------------------

ALLOWED_CHILDREN = {
    NodeKind.WORKSHOP: {NodeKind.ZONE, NodeKind.STATION},
    NodeKind.ZONE: {NodeKind.STATION},
    NodeKind.STATION: {NodeKind.STATION, NodeKind.INSPECTION},
    NodeKind.INSPECTION: set(),
}


def validate_tree(root: ProcessNode, seen: Optional[set[str]] = None) -> None:
    """Check the construction-time invariants of a tree.

    The query functions above assume a well-formed tree and never call
    this; it is meant for ingestion.  Pass a shared ``seen`` set to check
    id uniqueness across several workshops.

    Raises:
        MalformedTree: on a duplicate id, a child kind the parent may not
            hold, or a station mixing sub-stations with inspections.
    """
    if seen is None:
        seen = set()

    stack = [root]
    while stack:
        node = stack.pop()
        if node.id in seen:
            raise MalformedTree(f"Duplicate node id: {node.id}")
        seen.add(node.id)

        kinds = {NodeKind(child.kind) for child in node.children}
        illegal = kinds - ALLOWED_CHILDREN[NodeKind(node.kind)]
        if illegal:
            names = ", ".join(sorted(k.value for k in illegal))
            raise MalformedTree(f"{node.kind} '{node.id}' may not contain: {names}")
        if kinds == {NodeKind.STATION, NodeKind.INSPECTION}:
            raise MalformedTree(
                f"station '{node.id}' mixes sub-stations and inspections"
            )
        stack.extend(reversed(node.children))
