"""Tests for the connector routing engine.

Boxes are given by hand so every expected coordinate can be checked
exactly.  Stations are 100 wide and 50 tall unless stated otherwise.
"""

from plantflow.geometry import Box, Point, snap
from plantflow.layout import GridLayout, is_frame
from plantflow.models import (
    Inspection, NodeMeta, RoutingPolicy, Station, Workshop, Zone,
)
from plantflow.routing import (
    RouteClass,
    RouteWeight,
    RoutingOptions,
    compute_routes,
    routable_sequence,
    route_sequence,
)


def row_boxes(*ids, top=0, start=0, step=150) -> dict[str, Box]:
    return {node_id: Box(start + i * step, top, 100, 50) for i, node_id in enumerate(ids)}


def stations(*ids) -> list[Station]:
    return [Station(id=node_id) for node_id in ids]


def pts(*pairs) -> tuple[Point, ...]:
    return tuple(Point(x, y) for x, y in pairs)


# --- Scenarios ---

def test_three_station_chain_in_a_row():
    zone = Zone(id="z", children=stations("A", "B", "C"))
    boxes = row_boxes("A", "B", "C")

    routes = route_sequence(zone.children, boxes.get)

    assert len(routes) == 2
    assert all(r.kind == RouteClass.STRAIGHT for r in routes)
    assert (routes[0].source, routes[0].target) == ("A", "B")
    assert routes[0].path == pts((100, 25), (150, 25))
    assert (routes[1].source, routes[1].target) == ("B", "C")
    assert routes[1].path == pts((250, 25), (300, 25))


def test_row_wrap_becomes_stepped_through_midpoint():
    zone = Zone(id="z", children=stations("A", "B", "C"))
    boxes = row_boxes("A", "B", "C")
    boxes["C"] = Box(300, 120, 100, 50)

    routes = route_sequence(zone.children, boxes.get)

    assert routes[0].kind == RouteClass.STRAIGHT
    wrap = routes[1]
    assert wrap.kind == RouteClass.STEPPED
    # B centre y 25, C centre y 145: crossing at y 85, 12 units of clearance
    assert wrap.path == pts(
        (250, 25), (262, 25), (262, 85), (288, 85), (288, 145), (300, 145),
    )


def test_wrap_to_new_row_starting_left():
    ws = Workshop(id="ws", children=stations("A", "B"))
    boxes = {"A": Box(150, 0, 100, 50), "B": Box(0, 120, 100, 50)}

    (route,) = compute_routes(ws, boxes.get)

    assert route.kind == RouteClass.STEPPED
    assert route.path[0] == Point(250, 25)
    assert route.path[-1] == Point(0, 145)
    assert Point(-12, 85) in route.path


def test_placeholder_does_not_change_neighbour_route():
    plain = Workshop(id="ws", children=stations("A", "B"))
    with_gap = Workshop(
        id="ws",
        children=[
            Station(id="A"),
            Station(id="P", meta=NodeMeta(is_placeholder=True)),
            Station(id="B"),
        ],
    )
    boxes = row_boxes("A", "B")
    boxes["P"] = Box(600, 0, 100, 50)

    expected = compute_routes(plain, boxes.get)
    routes = compute_routes(with_gap, boxes.get)

    assert routes == expected
    assert routes[0].path == pts((100, 25), (150, 25))
    assert all("P" not in (r.source, r.target) for r in routes)


def test_missing_geometry_drops_routes_touching_node():
    ws = Workshop(id="ws", children=stations("A", "B", "C"))
    boxes = row_boxes("A", "B", "C")
    del boxes["B"]

    assert compute_routes(ws, boxes.get) == []

    boxes["B"] = Box(150, 0, 100, 50)
    assert [(r.source, r.target) for r in compute_routes(ws, boxes.get)] == [("A", "B"), ("B", "C")]


# --- Properties ---

def test_same_row_endpoints_lie_on_edge_midpoints():
    ws = Workshop(id="ws", children=stations("A", "B"))
    a = Box(10, 40, 120, 80)
    b = Box(300, 65, 90, 30)  # top edges differ by 25 (< 30)

    (route,) = compute_routes(ws, {"A": a, "B": b}.get)

    assert route.kind == RouteClass.STRAIGHT
    assert route.path == (Point(130, 80), Point(300, 80))


def test_row_tolerance_boundary():
    ws = Workshop(id="ws", children=stations("A", "B"))
    boxes = {"A": Box(0, 0, 100, 50), "B": Box(150, 30, 100, 50)}

    (route,) = compute_routes(ws, boxes.get)

    assert route.kind == RouteClass.STEPPED


def test_isolated_node_never_appears_in_routes():
    boxes = row_boxes("A", "B", "C", "D")
    flagged = Workshop(
        id="ws",
        children=[
            Station(id="A"),
            Station(id="B", meta=NodeMeta(isolated=True)),
            Station(id="C"),
            Station(id="D"),
        ],
    )
    by_role = Workshop(
        id="ws",
        children=[
            Station(id="A"),
            Station(id="B", meta=NodeMeta(role="buffer")),
            Station(id="C"),
            Station(id="D"),
        ],
    )
    cases = [
        (flagged, None),
        (Workshop(id="ws", children=stations("A", "B", "C", "D")), RoutingPolicy(isolated_ids={"B"})),
        (by_role, RoutingPolicy(isolated_roles={"buffer"})),
    ]
    for ws, policy in cases:
        routes = compute_routes(ws, boxes.get, policy=policy)
        assert [(r.source, r.target) for r in routes] == [("C", "D")]


def test_routing_is_deterministic():
    ws = Workshop(
        id="ws",
        children=[
            Zone(id="z1", meta=NodeMeta(flow=True), children=stations("A", "B")),
            Zone(id="z2", children=stations("C")),
        ],
    )
    boxes = {
        "z1": Box(0, 0, 400, 120),
        "z2": Box(30, 184, 400, 120),
        "A": Box(20, 50, 100, 50),
        "B": Box(160.4, 50.5, 100, 50),
        "C": Box(50, 234, 100, 50),
    }

    first = compute_routes(ws, boxes.get, selected_id="A")
    second = compute_routes(ws, boxes.get, selected_id="A")

    assert first == second
    assert [r.to_dict() for r in first] == [r.to_dict() for r in second]


def test_coordinates_are_snapped_half_up():
    assert snap(2.5) == 3
    assert snap(2.49) == 2
    assert snap(-2.5) == -2

    ws = Workshop(id="ws", children=stations("A", "B"))
    boxes = {"A": Box(0, 0, 100.4, 50.5), "B": Box(150.5, 0, 100, 50.5)}
    (route,) = compute_routes(ws, boxes.get)
    assert route.path == pts((100, 25), (151, 25))


# --- Zones ---

def test_zone_to_zone_snaps_close_anchors():
    ws = Workshop(id="ws", children=[Zone(id="z1"), Zone(id="z2")])
    boxes = {"z1": Box(0, 0, 400, 200), "z2": Box(10, 264, 400, 200)}

    (route,) = compute_routes(ws, boxes.get)

    # Centres 200 and 210 snap to 205; repeated midpoint collapses
    assert route.kind == RouteClass.STEPPED
    assert route.path == pts((205, 200), (205, 232), (205, 264))


def test_zone_to_zone_steps_across_when_offset():
    ws = Workshop(id="ws", children=[Zone(id="z1"), Zone(id="z2")])
    boxes = {"z1": Box(0, 0, 400, 200), "z2": Box(100, 264, 400, 200)}

    (route,) = compute_routes(ws, boxes.get)

    assert route.path == pts((200, 200), (200, 232), (300, 232), (300, 264))


def test_large_vertical_gap_gets_no_route():
    ws = Workshop(id="ws", children=stations("A", "B"))

    far = {"A": Box(0, 0, 100, 50), "B": Box(0, 251, 100, 50)}
    assert compute_routes(ws, far.get) == []

    at_limit = {"A": Box(0, 0, 100, 50), "B": Box(0, 250, 100, 50)}
    assert len(compute_routes(ws, at_limit.get)) == 1

    tight = RoutingOptions(max_gap=100)
    assert compute_routes(ws, at_limit.get, options=tight) == []


def test_flow_zone_connects_same_row_stations_only():
    zone = Zone(id="z1", meta=NodeMeta(flow=True), children=stations("S1", "S2", "S3"))
    ws = Workshop(id="ws", children=[zone])
    boxes = row_boxes("S1", "S2")
    boxes["S3"] = Box(0, 120, 100, 50)
    boxes["z1"] = Box(0, 0, 500, 200)

    routes = compute_routes(ws, boxes.get)

    assert [(r.source, r.target, r.kind) for r in routes] == [("S1", "S2", RouteClass.STRAIGHT)]


def test_flow_zone_resolution_from_policy():
    boxes = row_boxes("S1", "S2")
    plain = Workshop(id="ws", children=[Zone(id="z1", children=stations("S1", "S2"))])
    by_role = Workshop(
        id="ws",
        children=[Zone(id="z1", meta=NodeMeta(role="line"), children=stations("S1", "S2"))],
    )

    assert compute_routes(plain, boxes.get) == []
    assert len(compute_routes(plain, boxes.get, policy=RoutingPolicy(flow_zone_ids={"z1"}))) == 1
    assert len(compute_routes(by_role, boxes.get, policy=RoutingPolicy(flow_roles={"line"}))) == 1


def test_inter_zone_routes_come_before_intra_zone_routes():
    ws = Workshop(
        id="ws",
        children=[
            Zone(id="z1", meta=NodeMeta(flow=True), children=stations("A", "B")),
            Zone(id="z2", meta=NodeMeta(flow=True), children=stations("C", "D")),
        ],
    )
    boxes = {
        "z1": Box(0, 0, 400, 120),
        "z2": Box(0, 184, 400, 120),
        **row_boxes("A", "B", top=50),
        **row_boxes("C", "D", top=234),
    }

    routes = compute_routes(ws, boxes.get)

    assert [(r.source, r.target) for r in routes] == [("z1", "z2"), ("A", "B"), ("C", "D")]


# --- Group stations ---

def test_group_station_is_expanded_not_connected():
    group = Station(id="G", children=stations("G1", "G2"))
    ws = Workshop(id="ws", children=[Station(id="A"), group, Station(id="C")])
    boxes = row_boxes("A", "G1", "G2", "C")
    boxes["G"] = Box(140, -10, 320, 70)

    assert [n.id for n in routable_sequence(ws.children)] == ["A", "G1", "G2", "C"]

    routes = compute_routes(ws, boxes.get)
    assert [(r.source, r.target) for r in routes] == [("A", "G1"), ("G1", "G2"), ("G2", "C")]


def test_isolated_group_keeps_its_own_chain():
    group = Station(id="G", meta=NodeMeta(isolated=True), children=stations("G1", "G2"))
    ws = Workshop(id="ws", children=[Station(id="A"), group, Station(id="C")])
    boxes = row_boxes("A", "G1", "G2", "C")

    routes = compute_routes(ws, boxes.get)

    assert [(r.source, r.target) for r in routes] == [("G1", "G2")]


def test_inspections_and_placeholders_are_not_endpoints():
    children = [
        Station(id="A", children=[Inspection(id="A-i")]),
        Station(id="P", meta=NodeMeta(is_placeholder=True)),
        Station(id="B"),
    ]
    assert [n.id for n in routable_sequence(children)] == ["A", "B"]


# --- Weights ---

def test_weights_follow_selection():
    ws = Workshop(
        id="ws",
        children=[Station(id="A"), Station(id="B"), Station(id="C", children=[Inspection(id="C-i")])],
    )
    boxes = row_boxes("A", "B", "C")

    unselected = compute_routes(ws, boxes.get)
    assert [r.weight for r in unselected] == [RouteWeight.DEFAULT, RouteWeight.DEFAULT]

    on_a = compute_routes(ws, boxes.get, selected_id="A")
    assert [r.weight for r in on_a] == [RouteWeight.BRIGHT, RouteWeight.DIMMED]

    on_inspection = compute_routes(ws, boxes.get, selected_id="C-i")
    assert [r.weight for r in on_inspection] == [RouteWeight.DIMMED, RouteWeight.BRIGHT]

    unknown = compute_routes(ws, boxes.get, selected_id="elsewhere")
    assert [r.weight for r in unknown] == [RouteWeight.DEFAULT, RouteWeight.DEFAULT]


def test_selected_station_lights_its_zone_route():
    ws = Workshop(
        id="ws",
        children=[
            Zone(id="z1", meta=NodeMeta(flow=True), children=stations("A", "B")),
            Zone(id="z2", children=stations("C")),
        ],
    )
    boxes = {
        "z1": Box(0, 0, 400, 120),
        "z2": Box(0, 184, 400, 120),
        **row_boxes("A", "B", top=50),
        "C": Box(0, 234, 100, 50),
    }

    routes = compute_routes(ws, boxes.get, selected_id="C")

    by_pair = {(r.source, r.target): r.weight for r in routes}
    assert by_pair == {("z1", "z2"): RouteWeight.BRIGHT, ("A", "B"): RouteWeight.DIMMED}


def test_route_to_dict():
    ws = Workshop(id="ws", children=stations("A", "B"))
    (route,) = compute_routes(ws, row_boxes("A", "B").get)
    assert route.to_dict() == {
        "source": "A",
        "target": "B",
        "kind": "straight",
        "weight": "default",
        "path": [[100, 25], [150, 25]],
    }


# --- Fall-through and mixed pairs ---

def test_same_row_b_left_falls_through_to_stepped():
    ws = Workshop(id="ws", children=stations("A", "B"))
    boxes = {"A": Box(200, 0, 100, 50), "B": Box(0, 10, 100, 50)}

    (route,) = compute_routes(ws, boxes.get)

    # Tops differ by 10 (same row) but B is not to the right of A
    assert route.kind == RouteClass.STEPPED
    assert route.path == pts(
        (300, 25), (312, 25), (312, 30), (-12, 30), (-12, 35), (0, 35),
    )


def test_zone_then_station_uses_station_rules():
    ws = Workshop(
        id="ws",
        children=[Zone(id="z1", children=stations("S1")), Station(id="B")],
    )
    boxes = GridLayout().compute(ws)
    assert is_frame(ws.children[0]) and not is_frame(ws.children[1])

    routes = compute_routes(ws, boxes.get)

    # z1 (32, 32, 1216x176) out of its right edge, B (32, 272) entered from the left
    assert [(r.source, r.target, r.kind) for r in routes] == [("z1", "B", RouteClass.STEPPED)]
    assert routes[0].path == pts(
        (1248, 120), (1260, 120), (1260, 220), (20, 220), (20, 320), (32, 320),
    )


def test_station_then_zone_uses_station_rules():
    ws = Workshop(
        id="ws",
        children=[Station(id="A"), Zone(id="z1", children=stations("S1"))],
    )
    boxes = GridLayout().compute(ws)

    (route,) = compute_routes(ws, boxes.get)

    # A is one grid cell wide (1016 / 6); the frame starts on the next row at y 176
    assert (route.source, route.target, route.kind) == ("A", "z1", RouteClass.STEPPED)
    assert route.path == pts(
        (201, 80), (213, 80), (213, 172), (20, 172), (20, 264), (32, 264),
    )
