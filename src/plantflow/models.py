"""
Data models for PlantFlow — the plant ontology.

A plant is described as a four-level hierarchy of increasing specificity:

    Plant
    └── Workshop   — a top-level plant area (stamping, welding, ...)
        ├── Zone       — a named group of stations (sub-line, sub-assembly island)
        │   └── Station
        └── Station    — a physical work unit
            ├── Station    — a sub-station (the parent is then a *group*)
            └── Inspection — a measured check (the telemetry attachment point)

Every level is its own model carrying a literal ``kind`` tag, so a tree is
a tagged variant and ``children`` lists are discriminated on that tag.
Child order is production order; the routing engine uses it directly.

Each level has an ``id`` (unique across the whole plant) and an optional
``label``.  ``get_label()`` falls back to the id, so rendering code never
handles that itself.

Status
------
Four statuses: ``normal``, ``warning``, ``critical``, ``inactive``.  A
workshop's or zone's own status is author-set.  Aggregated counts are
always derived from leaf stations (see ``plantflow.tree``).

Meta
----
``NodeMeta`` carries the hints the core cares about:

    layout_span    — grid cells a station occupies (>= 1)
    is_placeholder — reserves a layout slot, never counted, never routed
    role           — free-form role name matched against ``RoutingPolicy``
    isolated       — never a route endpoint
    flow           — (zones) stations inside get intra-zone connectors
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class NodeKind(str, Enum):
    WORKSHOP = "workshop"
    ZONE = "zone"
    STATION = "station"
    INSPECTION = "inspection"


class NodeStatus(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    INACTIVE = "inactive"


# ---------------------------------------------------------------------------
# Meta
# ---------------------------------------------------------------------------

class NodeMeta(BaseModel):
    """Presentation and behavior hints for workshops, zones and stations.

    Attributes:
        layout_span:    How many grid cells the node occupies.
        is_placeholder: The node only reserves a layout slot.
        role:           Role name, resolved against ``RoutingPolicy``.
        isolated:       The node never receives or emits a route.
        flow:           (zones) Connect the zone's own stations.
        description:    Free text, opaque to the core.
    """
    layout_span: int = Field(default=1, ge=1)
    is_placeholder: bool = False
    role: Optional[str] = None
    isolated: bool = False
    flow: bool = False
    description: Optional[str] = None


class MetricPoint(BaseModel):
    """One sample of an inspection's metric series."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    time: str
    value: float
    expected: Optional[float] = None


class InspectionMeta(BaseModel):
    """Telemetry and documentation attached to an inspection point.

    The core never reads these fields; they travel with the tree so the
    detail panel and telemetry provider have a single source.
    """
    description: Optional[str] = None
    responsible_person: Optional[str] = None
    last_updated: Optional[str] = None
    img_url: Optional[str] = None
    metrics: list[MetricPoint] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Inspection (Level 4: the leaf)
# ---------------------------------------------------------------------------

class Inspection(BaseModel):
    """An inspection point — a measured check performed at a station."""
    kind: Literal["inspection"] = "inspection"
    id: str
    label: Optional[str] = None
    status: NodeStatus = NodeStatus.NORMAL
    meta: InspectionMeta = Field(default_factory=InspectionMeta)

    @property
    def children(self) -> list:
        return []

    @property
    def is_placeholder(self) -> bool:
        return False

    def get_label(self) -> str:
        return self.label if self.label else self.id


# ---------------------------------------------------------------------------
# Station (Level 3: the work unit)
# ---------------------------------------------------------------------------

StationChild = Annotated[
    Union["Station", Inspection], Field(discriminator="kind")
]


class Station(BaseModel):
    """A station — a physical work unit, or a group of sub-stations.

    A station whose children include other stations is a *group*: a visual
    container rather than a work unit.  Groups are never counted and never
    connected to their siblings directly; routing recurses into them.
    Mixing sub-stations and inspections under one station is malformed.
    """
    kind: Literal["station"] = "station"
    id: str
    label: Optional[str] = None
    status: NodeStatus = NodeStatus.NORMAL
    children: list[StationChild] = Field(default_factory=list)
    meta: NodeMeta = Field(default_factory=NodeMeta)

    @property
    def is_group(self) -> bool:
        return any(child.kind == NodeKind.STATION for child in self.children)

    @property
    def is_placeholder(self) -> bool:
        return self.meta.is_placeholder

    def get_label(self) -> str:
        return self.label if self.label else self.id


# ---------------------------------------------------------------------------
# Zone (Level 2: a grouping of stations)
# ---------------------------------------------------------------------------

class Zone(BaseModel):
    """A zone — a named grouping of stations within a workshop.

    Zones are used when the line topology is non-trivial: parallel
    sub-lines, sub-assembly islands.  Zones are routed zone-to-zone from
    bottom edge to top edge; a *flow* zone additionally gets connectors
    between its own stations.
    """
    kind: Literal["zone"] = "zone"
    id: str
    label: Optional[str] = None
    status: NodeStatus = NodeStatus.NORMAL
    children: list[Station] = Field(default_factory=list)
    meta: NodeMeta = Field(default_factory=NodeMeta)

    @property
    def is_placeholder(self) -> bool:
        return self.meta.is_placeholder

    def get_label(self) -> str:
        return self.label if self.label else self.id


# ---------------------------------------------------------------------------
# Workshop (Level 1: a plant area)
# ---------------------------------------------------------------------------

WorkshopChild = Annotated[Union[Zone, Station], Field(discriminator="kind")]


class Workshop(BaseModel):
    """A workshop — the root of one navigable process tree."""
    kind: Literal["workshop"] = "workshop"
    id: str
    label: Optional[str] = None
    status: NodeStatus = NodeStatus.NORMAL
    children: list[WorkshopChild] = Field(default_factory=list)
    meta: NodeMeta = Field(default_factory=NodeMeta)

    @property
    def is_placeholder(self) -> bool:
        return self.meta.is_placeholder

    def get_label(self) -> str:
        return self.label if self.label else self.id


Station.model_rebuild()

ProcessNode = Union[Workshop, Zone, Station, Inspection]


# ---------------------------------------------------------------------------
# Routing policy
# ---------------------------------------------------------------------------

class RoutingPolicy(BaseModel):
    """Which nodes are isolated and which zones are flow zones.

    A node is isolated when its ``meta.isolated`` flag is set, its id is in
    ``isolated_ids``, or its ``meta.role`` is in ``isolated_roles``.  Flow
    zones resolve the same way over ``meta.flow``, ``flow_zone_ids`` and
    ``flow_roles``.
    """
    isolated_ids: set[str] = Field(default_factory=set)
    isolated_roles: set[str] = Field(default_factory=set)
    flow_zone_ids: set[str] = Field(default_factory=set)
    flow_roles: set[str] = Field(default_factory=set)

    def is_isolated(self, node: ProcessNode) -> bool:
        meta = getattr(node, "meta", None)
        if isinstance(meta, NodeMeta):
            if meta.isolated:
                return True
            if meta.role is not None and meta.role in self.isolated_roles:
                return True
        return node.id in self.isolated_ids

    def is_flow_zone(self, node: ProcessNode) -> bool:
        if node.kind != NodeKind.ZONE:
            return False
        if node.meta.flow or node.id in self.flow_zone_ids:
            return True
        return node.meta.role is not None and node.meta.role in self.flow_roles


# ---------------------------------------------------------------------------
# Plant (Root: one data load)
# ---------------------------------------------------------------------------

class Plant(BaseModel):
    """The root plant model — everything loaded for one session.

    Flat Access
    -----------
    The plant keeps a ``_node_map`` for O(1) lookup by id.  Use
    ``get_node(id)`` for single lookups, ``get_workshop(id)`` for the
    top level and ``all_nodes()`` for document-order iteration.  The tree
    is immutable for the session, so the map is built once.
    """
    version: str = "1.0"
    title: str = "Untitled Plant"
    workshops: list[Workshop] = Field(default_factory=list)
    policy: RoutingPolicy = Field(default_factory=RoutingPolicy)

    _node_map: dict[str, ProcessNode] = {}

    def model_post_init(self, __context):
        """Build the lookup map after initialization."""
        self._node_map = {}
        for node in self.all_nodes():
            self._node_map.setdefault(node.id, node)

    def get_node(self, node_id: str) -> Optional[ProcessNode]:
        """Look up any node by its plant-wide unique id."""
        return self._node_map.get(node_id)

    def get_workshop(self, workshop_id: str) -> Optional[Workshop]:
        for workshop in self.workshops:
            if workshop.id == workshop_id:
                return workshop
        return None

    def all_nodes(self) -> list[ProcessNode]:
        """Return every node in the plant, depth-first in document order."""
        nodes: list[ProcessNode] = []
        stack: list[ProcessNode] = list(reversed(self.workshops))
        while stack:
            node = stack.pop()
            nodes.append(node)
            stack.extend(reversed(node.children))
        return nodes
