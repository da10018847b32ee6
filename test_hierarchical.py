"""Test a full board session over a two-workshop body plant.

Plant layout (reference grid, 1280 wide):
  ws-welding
    z-underbody (flow)  st-floor → st-rails        intra-zone, straight
         │
         ▼                                          zone → zone, stepped
    z-framing           st-framer, st-respot
  ws-paint
    st-primer → st-base → st-clear   (st-spare is a placeholder)

The session mounts the first workshop, re-weights routes on station
selection, and remounts with a fresh layout on a workshop switch.
"""

from plantflow.geometry import Point
from plantflow.parser import parse_yaml
from plantflow.routing import RouteClass, RouteWeight
from plantflow.scheduler import RECHECK_DELAY
from plantflow.session import BoardSession
from plantflow.tree import StatusCounts

PLANT_YAML = """
title: Body Plant
workshops:
  - id: ws-welding
    label: Welding
    zones:
      - id: z-underbody
        flow: true
        stations:
          - id: st-floor
            inspections:
              - id: insp-floor-gap
          - id: st-rails
            status: warning
      - id: z-framing
        stations:
          - id: st-framer
          - id: st-respot
            status: critical
  - id: ws-paint
    label: Paint
    stations:
      - id: st-primer
      - id: st-base
        status: warning
      - id: st-clear
        status: critical
      - id: st-spare
        is_placeholder: true
"""


def build_session() -> BoardSession:
    session = BoardSession.headless(parse_yaml(PLANT_YAML))
    session.start()
    session.clock.settle()
    return session


def pairs(session):
    return [(r.source, r.target) for r in session.routes]


def test_session_starts_on_first_workshop():
    session = build_session()

    assert session.current_workshop.id == "ws-welding"
    assert session.selected_station is None
    assert session.scheduler.recompute_count == 1
    assert pairs(session) == [("z-underbody", "z-framing"), ("st-floor", "st-rails")]


def test_zone_route_drops_straight_between_stacked_frames():
    session = build_session()
    zone_route, station_route = session.routes

    # Both frames span the board: centre x 640, 64 apart
    assert zone_route.kind == RouteClass.STEPPED
    assert zone_route.path == (Point(640, 208), Point(640, 240), Point(640, 272))
    assert station_route.kind == RouteClass.STRAIGHT


def test_header_counts():
    session = build_session()
    assert session.status_counts() == StatusCounts(total=4, normal=2, warning=1, critical=1)


def test_station_selection_reweights_routes():
    session = build_session()

    session.select_station("insp-floor-gap")
    session.clock.settle()
    assert [r.weight for r in session.routes] == [RouteWeight.BRIGHT, RouteWeight.BRIGHT]
    assert session.selected_station.id == "insp-floor-gap"

    session.select_station("st-framer")
    session.clock.settle()
    assert [r.weight for r in session.routes] == [RouteWeight.BRIGHT, RouteWeight.DIMMED]


def test_workshop_switch_remounts_with_new_layout():
    session = build_session()
    session.select_station("st-floor")
    session.clock.settle()

    session.select_workshop("ws-paint")
    session.clock.settle()

    assert session.current_workshop.id == "ws-paint"
    assert session.selected_station is None
    assert pairs(session) == [("st-primer", "st-base"), ("st-base", "st-clear")]
    assert all(r.weight == RouteWeight.DEFAULT for r in session.routes)
    assert session.status_counts() == StatusCounts(total=3, normal=1, warning=1, critical=1)
    assert session.layout.box_of("st-spare") is not None
    assert session.layout.box_of("st-floor") is None


def test_workshop_switch_arms_recheck():
    session = build_session()
    session.select_workshop("ws-paint")
    session.clock.settle()
    before = session.scheduler.recompute_count

    session.clock.advance(RECHECK_DELAY)
    session.clock.settle()

    assert session.scheduler.recompute_count == before + 1


def test_station_from_other_workshop_is_refused():
    session = build_session()
    session.select_station("st-primer")
    assert session.selected_station is None


def test_close_stops_recomputes():
    session = build_session()
    session.close()
    session.select_workshop("ws-paint")
    session.clock.settle()
    session.clock.advance(RECHECK_DELAY * 2)
    session.clock.settle()

    assert session.scheduler.recompute_count == 1
    assert not session.scheduler.mounted
