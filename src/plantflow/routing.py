"""
Connector routing engine for PlantFlow.

Given a workshop and a geometry lookup (``box_of(id) -> Box | None``), the
engine produces the "circuit-board" routes that show production flow
between rendered nodes.  It runs in two passes:

  1. Inter-sibling pass — walks the workshop's routable sequence (children
     in production order, placeholders dropped, group stations expanded
     into their leaf stations) and connects each adjacent pair.
  2. Intra-zone pass — for every flow zone, connects adjacent stations
     inside the zone, same-row pairs only.

Pair classification (A → B):

  - zone → zone        Stepped: bottom-centre of A, down to the vertical
                       midpoint, across, down into the top-centre of B.
                       Anchors closer than ALIGNMENT_TOLERANCE snap to
                       their average so stacked zones get a straight drop.
  - same row, B right  Straight: right-edge middle of A to left-edge middle
                       of B.
  - otherwise          Stepped wrap: out of A's right edge by CLEARANCE,
                       down to the midpoint, back across to CLEARANCE
                       before B's left edge, into B.

Pairs whose boxes are more than MAX_GAP apart vertically are unrelated
layout regions and get no route.  Pairs with an isolated endpoint, or with
a missing box, are skipped silently; the next recompute picks them up.

Every coordinate is snapped to whole layout units.  The output order is
inter-sibling routes in sequence order followed by intra-zone routes zone
by zone, so identical input always yields an identical list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .geometry import Box, Point, dedupe, point, same_row, vertical_gap
from .models import NodeKind, ProcessNode, RoutingPolicy, Workshop
from .tree import ancestry, owning_station

logger = logging.getLogger(__name__)


# --- Tolerances (layout units) ---

ALIGNMENT_TOLERANCE = 20
ROW_TOLERANCE = 30
CLEARANCE = 12
MAX_GAP = 200


class RouteClass(str, Enum):
    STRAIGHT = "straight"
    STEPPED = "stepped"


class RouteWeight(str, Enum):
    DEFAULT = "default"
    BRIGHT = "bright"
    DIMMED = "dimmed"


@dataclass(frozen=True)
class Route:
    """A computed connector between two routable nodes."""
    source: str
    target: str
    path: tuple[Point, ...]
    kind: RouteClass
    weight: RouteWeight = RouteWeight.DEFAULT

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "target": self.target,
            "kind": self.kind.value,
            "weight": self.weight.value,
            "path": [[p.x, p.y] for p in self.path],
        }


@dataclass
class RoutingOptions:
    """Tolerances for the routing engine."""
    alignment_tolerance: float = ALIGNMENT_TOLERANCE
    row_tolerance: float = ROW_TOLERANCE
    clearance: float = CLEARANCE
    max_gap: float = MAX_GAP


BoxLookup = Callable[[str], Optional[Box]]


@dataclass(frozen=True)
class _Slot:
    """A routable node plus the isolated group it sits in, if any."""
    node: ProcessNode
    island: Optional[str] = None


# ---------------------------------------------------------------------------
# Sequence building
# ---------------------------------------------------------------------------

def _routable_slots(
    children: list[ProcessNode],
    policy: RoutingPolicy,
    island: Optional[str] = None,
) -> list[_Slot]:
    slots: list[_Slot] = []
    for child in children:
        if child.kind == NodeKind.INSPECTION or child.is_placeholder:
            continue
        if child.kind == NodeKind.STATION and child.is_group:
            inner = child.id if policy.is_isolated(child) else island
            slots.extend(_routable_slots(child.children, policy, inner))
        else:
            slots.append(_Slot(child, island))
    return slots


def routable_sequence(
    children: list[ProcessNode],
    policy: Optional[RoutingPolicy] = None,
) -> list[ProcessNode]:
    """Route endpoints among ``children`` in production order.

    Placeholders and inspections are dropped and group stations are
    replaced, recursively, by their own routable children.
    """
    return [slot.node for slot in _routable_slots(children, policy or RoutingPolicy())]


# ---------------------------------------------------------------------------
# Path construction
# ---------------------------------------------------------------------------

def straight_path(a: Box, b: Box) -> tuple[Point, ...]:
    """Right-edge middle of ``a`` to left-edge middle of ``b``."""
    return (point(a.right, a.center_y), point(b.left, b.center_y))


def wrap_path(a: Box, b: Box, clearance: float = CLEARANCE) -> tuple[Point, ...]:
    """Orthogonal route out of ``a``'s right edge into ``b``'s left edge."""
    sx, sy = a.right, a.center_y
    ex, ey = b.left, b.center_y
    mid_y = (sy + ey) / 2
    return dedupe([
        point(sx, sy),
        point(sx + clearance, sy),
        point(sx + clearance, mid_y),
        point(ex - clearance, mid_y),
        point(ex - clearance, ey),
        point(ex, ey),
    ])


def zone_path(
    a: Box,
    b: Box,
    alignment_tolerance: float = ALIGNMENT_TOLERANCE,
) -> tuple[Point, ...]:
    """Bottom-centre of ``a`` to top-centre of ``b`` through the midpoint."""
    ax, ay = a.center_x, a.bottom
    bx, by = b.center_x, b.top
    if abs(ax - bx) < alignment_tolerance:
        ax = bx = (ax + bx) / 2
    mid_y = (ay + by) / 2
    return dedupe([
        point(ax, ay),
        point(ax, mid_y),
        point(bx, mid_y),
        point(bx, by),
    ])


def classify_pair(
    a: ProcessNode,
    b: ProcessNode,
    box_a: Box,
    box_b: Box,
    options: RoutingOptions,
    rows_only: bool = False,
) -> Optional[tuple[tuple[Point, ...], RouteClass]]:
    """Pick the path shape for one adjacent pair, or None for no route."""
    if vertical_gap(box_a, box_b) > options.max_gap:
        return None

    if a.kind == NodeKind.ZONE and b.kind == NodeKind.ZONE and not rows_only:
        return zone_path(box_a, box_b, options.alignment_tolerance), RouteClass.STEPPED

    if same_row(box_a, box_b, options.row_tolerance) and box_b.left > box_a.right:
        return straight_path(box_a, box_b), RouteClass.STRAIGHT

    if rows_only:
        return None
    return wrap_path(box_a, box_b, options.clearance), RouteClass.STEPPED


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _highlight_ids(workshop: Workshop, selected_id: Optional[str]) -> Optional[set[str]]:
    """Ids whose routes light up for the current selection.

    The selected station (an inspection resolves to its station) and every
    zone or group above it.  None means "no selection in this workshop".
    """
    if selected_id is None:
        return None
    station = owning_station(workshop, selected_id)
    if station is None:
        return None
    return {node.id for node in ancestry(workshop, station.id)[1:]}


def _weight(source: str, target: str, highlight: Optional[set[str]]) -> RouteWeight:
    if highlight is None:
        return RouteWeight.DEFAULT
    if source in highlight or target in highlight:
        return RouteWeight.BRIGHT
    return RouteWeight.DIMMED


def _connect_chain(
    slots: list[_Slot],
    box_of: BoxLookup,
    policy: RoutingPolicy,
    options: RoutingOptions,
    highlight: Optional[set[str]],
    rows_only: bool,
    routes: list[Route],
) -> None:
    for left, right in zip(slots, slots[1:]):
        a, b = left.node, right.node
        if left.island != right.island:
            continue
        if policy.is_isolated(a) or policy.is_isolated(b):
            continue

        box_a = box_of(a.id)
        box_b = box_of(b.id)
        if box_a is None or box_b is None:
            missing = a.id if box_a is None else b.id
            logger.debug(f"No geometry for {missing}; dropping {a.id} -> {b.id} this pass")
            continue

        shaped = classify_pair(a, b, box_a, box_b, options, rows_only=rows_only)
        if shaped is None:
            continue
        path, kind = shaped
        routes.append(Route(
            source=a.id,
            target=b.id,
            path=path,
            kind=kind,
            weight=_weight(a.id, b.id, highlight),
        ))


def route_sequence(
    children: list[ProcessNode],
    box_of: BoxLookup,
    policy: Optional[RoutingPolicy] = None,
    options: Optional[RoutingOptions] = None,
) -> list[Route]:
    """Run the inter-sibling rules over one level of siblings.

    ``compute_routes`` applies this to a workshop's children; it is exposed
    for callers routing a single zone or group as its own board.
    """
    policy = policy or RoutingPolicy()
    routes: list[Route] = []
    _connect_chain(
        _routable_slots(children, policy), box_of, policy,
        options or RoutingOptions(), None, False, routes,
    )
    return routes


def compute_routes(
    workshop: Workshop,
    box_of: BoxLookup,
    policy: Optional[RoutingPolicy] = None,
    options: Optional[RoutingOptions] = None,
    selected_id: Optional[str] = None,
) -> list[Route]:
    """Compute every connector for one workshop view.

    Args:
        workshop: The workshop being displayed.
        box_of: Geometry lookup; returns None for nodes not yet measured.
        policy: Isolation and flow-zone configuration.
        options: Tolerances; module defaults when omitted.
        selected_id: Selected station or inspection id, for route weights.
    """
    policy = policy or RoutingPolicy()
    opts = options or RoutingOptions()
    highlight = _highlight_ids(workshop, selected_id)

    routes: list[Route] = []

    # --- Pass 1: inter-sibling ---
    top_level = _routable_slots(workshop.children, policy)
    _connect_chain(top_level, box_of, policy, opts, highlight, False, routes)

    # --- Pass 2: intra-zone ---
    for child in workshop.children:
        if child.kind != NodeKind.ZONE or child.is_placeholder:
            continue
        if not policy.is_flow_zone(child):
            continue
        stations = _routable_slots(child.children, policy)
        _connect_chain(stations, box_of, policy, opts, highlight, True, routes)

    logger.debug(f"Routed workshop {workshop.id}: {len(routes)} routes")
    return routes
