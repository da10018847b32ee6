"""
Selection state for PlantFlow.

A selection is the pair (active workshop, active station or inspection).
The reducers are pure: ``(selection, id) -> selection``.  Selecting a
workshop always clears the station, so a station from the previous
workshop can never stay selected.

``SelectionController`` owns the current value for a plant and resolves
ids against it before reducing: an unknown workshop leaves the selection
unchanged, and a station id outside the active workshop resolves to "no
station selected".  After any sequence of calls the station is either None
or a descendant of the active workshop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from .models import Plant, ProcessNode, Workshop
from .tree import find_node, is_descendant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Selection:
    workshop_id: Optional[str] = None
    station_id: Optional[str] = None


def initial_selection(plant: Plant) -> Selection:
    """First workshop of the plant, no station."""
    if not plant.workshops:
        return Selection()
    return Selection(workshop_id=plant.workshops[0].id)


def select_workshop(selection: Selection, workshop_id: str) -> Selection:
    return Selection(workshop_id=workshop_id, station_id=None)


def select_station(selection: Selection, station_id: Optional[str]) -> Selection:
    """Set the station; the caller guarantees it belongs to the workshop."""
    return replace(selection, station_id=station_id)


class SelectionController:
    """Current selection for one plant, with change notification."""

    def __init__(self, plant: Plant):
        self.plant = plant
        self._selection = initial_selection(plant)
        self._listeners: list[Callable[[Selection], None]] = []

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def workshop(self) -> Optional[Workshop]:
        if self._selection.workshop_id is None:
            return None
        return self.plant.get_workshop(self._selection.workshop_id)

    @property
    def station(self) -> Optional[ProcessNode]:
        workshop = self.workshop
        if workshop is None:
            return None
        return find_node(workshop, self._selection.station_id)

    def subscribe(self, callback: Callable[[Selection], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def select_workshop(self, workshop_id: str) -> Selection:
        if self.plant.get_workshop(workshop_id) is None:
            logger.warning(f"Ignoring selection of unknown workshop: {workshop_id}")
            return self._selection
        return self._set(select_workshop(self._selection, workshop_id))

    def select_station(self, station_id: Optional[str]) -> Selection:
        workshop = self.workshop
        if station_id is not None and (
            workshop is None or not is_descendant(workshop, station_id)
        ):
            logger.warning(
                f"Station {station_id} is not in workshop "
                f"{self._selection.workshop_id}; clearing station selection"
            )
            station_id = None
        return self._set(select_station(self._selection, station_id))

    def clear_station(self) -> Selection:
        return self._set(select_station(self._selection, None))

    def _set(self, selection: Selection) -> Selection:
        if selection == self._selection:
            return selection
        self._selection = selection
        for callback in list(self._listeners):
            callback(selection)
        return selection
