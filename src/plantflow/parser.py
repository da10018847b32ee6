"""YAML plant document parser for PlantFlow.

Supports two formats (JSON documents of either shape load too, since
YAML is a superset):

1. Full plant YAML — a ``plant:`` root, ``workshops`` with tagged
   ``children`` (each child names its ``kind``).
2. Simplified format — ``workshops`` at the top level, nesting spelled with
   ``zones:`` / ``stations:`` / ``inspections:`` keys instead of tags.

Both formats are checked with ``validate_tree`` after loading, so id
collisions and illegal nesting fail at ingestion, never later.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml

from .models import (
    Inspection,
    InspectionMeta,
    MetricPoint,
    NodeKind,
    NodeMeta,
    Plant,
    RoutingPolicy,
    Station,
    Workshop,
    Zone,
)
from .tree import ALLOWED_CHILDREN, MalformedTree, validate_tree


def parse_yaml(yaml_str: str) -> Plant:
    """Parse a YAML (or JSON) string into a Plant model."""
    data = yaml.safe_load(yaml_str)
    if not data:
        raise ValueError("Empty YAML input")
    if not isinstance(data, dict):
        raise ValueError("Plant document must be a mapping")

    if "plant" in data:
        plant = _parse_full_format(data["plant"])
    else:
        plant = _parse_simple_format(data)

    seen: set[str] = set()
    for workshop in plant.workshops:
        validate_tree(workshop, seen)
    return plant


def parse_file(path: str) -> Plant:
    """Parse a YAML file into a Plant model."""
    content = Path(path).read_text()
    return parse_yaml(content)


# ---------------------------------------------------------------------------
# Full format
# ---------------------------------------------------------------------------

def _parse_full_format(data: dict) -> Plant:
    """Parse the tagged plant format (workshops / children with ``kind``)."""
    plant = Plant(
        version=str(data.get("version", "1.0")),
        title=data.get("title", "Untitled Plant"),
        policy=_parse_policy(data.get("policy")),
    )
    for ws_data in data.get("workshops", []):
        workshop = _parse_node(ws_data, NodeKind.WORKSHOP)
        if workshop.kind != NodeKind.WORKSHOP:
            raise MalformedTree(
                f"top-level entry '{workshop.id}' is a {workshop.kind}, not a workshop"
            )
        plant.workshops.append(workshop)

    plant.model_post_init(None)
    return plant


_CHILD_DEFAULT = {
    NodeKind.WORKSHOP: NodeKind.STATION,
    NodeKind.ZONE: NodeKind.STATION,
    NodeKind.STATION: NodeKind.INSPECTION,
}


def _parse_node(data: dict, default_kind: NodeKind):
    """Parse one tagged node; ``kind`` falls back to what the parent implies."""
    kind = NodeKind(data.get("kind", default_kind))
    common = dict(
        id=data["id"],
        label=data.get("label"),
        status=data.get("status", "normal"),
    )

    if kind == NodeKind.INSPECTION:
        return Inspection(meta=_parse_inspection_meta(data.get("meta")), **common)

    children = [
        _parse_node(child, _CHILD_DEFAULT[kind])
        for child in data.get("children", [])
    ]
    for child in children:
        if NodeKind(child.kind) not in ALLOWED_CHILDREN[kind]:
            raise MalformedTree(
                f"{kind.value} '{data['id']}' may not contain {child.kind} '{child.id}'"
            )
    meta = NodeMeta(**(data.get("meta") or {}))

    if kind == NodeKind.WORKSHOP:
        return Workshop(children=children, meta=meta, **common)
    if kind == NodeKind.ZONE:
        return Zone(children=children, meta=meta, **common)
    return Station(children=children, meta=meta, **common)


def _parse_inspection_meta(data: Optional[dict]) -> InspectionMeta:
    if not data:
        return InspectionMeta()
    metrics = [MetricPoint(**point) for point in data.get("metrics", [])]
    fields = {k: v for k, v in data.items() if k != "metrics"}
    return InspectionMeta(metrics=metrics, **fields)


def _parse_policy(data: Optional[dict]) -> RoutingPolicy:
    if not data:
        return RoutingPolicy()
    return RoutingPolicy(
        isolated_ids=set(data.get("isolated_ids", [])),
        isolated_roles=set(data.get("isolated_roles", [])),
        flow_zone_ids=set(data.get("flow_zone_ids", [])),
        flow_roles=set(data.get("flow_roles", [])),
    )


# ---------------------------------------------------------------------------
# Simplified format
# ---------------------------------------------------------------------------

def _parse_simple_format(data: dict) -> Plant:
    """Parse the simplified plant format.

    Example:
        title: Body Shop
        workshops:
          - id: ws-welding
            label: Welding
            zones:
              - id: z-underbody
                flow: true
                stations:
                  - id: st-floor
                    inspections:
                      - id: insp-weld
          - id: ws-paint
            stations:
              - id: st-primer
                status: warning

    A workshop lists ``zones`` before ``stations``.  Node meta keys
    (``layout_span``, ``is_placeholder``, ``role``, ``isolated``, ``flow``)
    may sit directly on the node.
    """
    if "workshops" not in data:
        raise ValueError("Plant document needs a 'plant' root or a 'workshops' list")

    plant = Plant(
        title=data.get("title", "Untitled Plant"),
        policy=_parse_policy(data.get("policy")),
    )
    for ws_data in data.get("workshops", []):
        children = [_simple_zone(z) for z in ws_data.get("zones", [])]
        children += [_simple_station(s) for s in ws_data.get("stations", [])]
        plant.workshops.append(Workshop(
            id=ws_data["id"],
            label=ws_data.get("label"),
            status=ws_data.get("status", "normal"),
            children=children,
            meta=_simple_meta(ws_data),
        ))

    plant.model_post_init(None)
    return plant


_META_KEYS = set(NodeMeta.model_fields)


def _simple_meta(data: dict) -> NodeMeta:
    fields = dict(data.get("meta") or {})
    fields.update({k: v for k, v in data.items() if k in _META_KEYS})
    return NodeMeta(**fields)


def _simple_zone(data: dict) -> Zone:
    return Zone(
        id=data["id"],
        label=data.get("label"),
        status=data.get("status", "normal"),
        children=[_simple_station(s) for s in data.get("stations", [])],
        meta=_simple_meta(data),
    )


def _simple_station(data: dict) -> Station:
    if data.get("stations") and data.get("inspections"):
        raise MalformedTree(
            f"station '{data['id']}' lists both stations and inspections"
        )
    children = [_simple_station(s) for s in data.get("stations", [])]
    children += [
        Inspection(
            id=i["id"],
            label=i.get("label"),
            status=i.get("status", "normal"),
            meta=_parse_inspection_meta(i.get("meta")),
        )
        for i in data.get("inspections", [])
    ]
    return Station(
        id=data["id"],
        label=data.get("label"),
        status=data.get("status", "normal"),
        children=children,
        meta=_simple_meta(data),
    )


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def _meta_to_dict(meta: NodeMeta) -> dict:
    defaults = NodeMeta()
    return {
        k: v for k, v in meta.model_dump().items()
        if v != getattr(defaults, k)
    }


def _node_to_dict(node) -> dict:
    data = {"kind": node.kind, "id": node.id}
    if node.label:
        data["label"] = node.label
    if node.status != "normal":
        data["status"] = node.status.value

    if node.kind == NodeKind.INSPECTION:
        meta = node.meta.model_dump(exclude_none=True, exclude_defaults=True)
        if meta:
            data["meta"] = meta
        return data

    meta = _meta_to_dict(node.meta)
    if meta:
        data["meta"] = meta
    if node.children:
        data["children"] = [_node_to_dict(child) for child in node.children]
    return data


def plant_to_yaml(plant: Plant) -> str:
    """Serialize a Plant model to the full plant YAML format."""
    data = {
        "plant": {
            "version": plant.version,
            "title": plant.title,
        }
    }

    policy = {
        k: sorted(v) for k, v in plant.policy.model_dump().items() if v
    }
    if policy:
        data["plant"]["policy"] = policy

    data["plant"]["workshops"] = [_node_to_dict(ws) for ws in plant.workshops]
    return yaml.dump(data, default_flow_style=False, sort_keys=False)
