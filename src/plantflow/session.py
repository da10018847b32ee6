"""
Board session — wires selection, layout and scheduling for one plant.

This is the glue a dashboard's top-level view performs: it owns the
selection controller and the route store, remounts the scheduler when the
active workshop changes and re-weights routes when the station changes.
The render layer plugs in through the ``LayoutProvider`` it measures into
and, optionally, an ``on_workshop`` hook called before each remount so it
can lay out the new workshop.
"""

from __future__ import annotations

from typing import Callable, Optional

from .layout import BoxTable, GridLayout, GridOptions, LayoutProvider
from .models import Plant, ProcessNode, Workshop
from .routing import Route, RoutingOptions
from .scheduler import FrameClock, ManualClock, RecomputeScheduler, RouteStore
from .selection import Selection, SelectionController
from .tree import StatusCounts, aggregate_status_counts


class BoardSession:
    """One plant on one board."""

    def __init__(
        self,
        plant: Plant,
        layout: LayoutProvider,
        clock: FrameClock,
        options: Optional[RoutingOptions] = None,
        on_workshop: Optional[Callable[[Workshop], None]] = None,
    ):
        self.plant = plant
        self.layout = layout
        self.clock = clock
        self.on_workshop = on_workshop
        self.selection = SelectionController(plant)
        self.store = RouteStore()
        self.scheduler = RecomputeScheduler(
            layout, clock, store=self.store, policy=plant.policy, options=options,
        )
        self._unsubscribe: Optional[Callable[[], None]] = None

    @classmethod
    def headless(
        cls,
        plant: Plant,
        clock: Optional[FrameClock] = None,
        grid_options: Optional[GridOptions] = None,
        options: Optional[RoutingOptions] = None,
    ) -> "BoardSession":
        """A session whose geometry comes from the reference grid layout."""
        table = BoxTable()
        grid = GridLayout(grid_options)
        return cls(
            plant,
            table,
            clock or ManualClock(),
            options=options,
            on_workshop=lambda workshop: grid.apply(workshop, table),
        )

    # --- Lifecycle ---

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.selection.subscribe(self._on_selection)
        workshop = self.current_workshop
        if workshop is not None:
            if self.on_workshop:
                self.on_workshop(workshop)
            self.scheduler.mount(workshop)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.scheduler.unmount()

    # --- Selection API ---

    def select_workshop(self, workshop_id: str) -> Selection:
        return self.selection.select_workshop(workshop_id)

    def select_station(self, station_id: Optional[str]) -> Selection:
        return self.selection.select_station(station_id)

    @property
    def current_workshop(self) -> Optional[Workshop]:
        return self.selection.workshop

    @property
    def selected_station(self) -> Optional[ProcessNode]:
        return self.selection.station

    # --- Derived state ---

    @property
    def routes(self) -> tuple[Route, ...]:
        return self.store.routes

    def status_counts(self) -> StatusCounts:
        workshop = self.current_workshop
        if workshop is None:
            return StatusCounts()
        return aggregate_status_counts(workshop)

    def _on_selection(self, selection: Selection) -> None:
        workshop = self.current_workshop
        if workshop is not None and workshop is not self.scheduler.workshop:
            if self.on_workshop:
                self.on_workshop(workshop)
            self.scheduler.set_workshop(workshop)
        self.scheduler.set_selection(selection.station_id)
