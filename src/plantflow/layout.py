"""
Layout snapshot providers for PlantFlow.

The routing engine never measures anything itself.  It reads boxes through
a ``LayoutProvider``: ``box_of(id)`` for the current geometry and
``on_layout_change(callback)`` to hear when any box may have moved.

``BoxTable`` is the plain id → box table a render layer owns and fills
from whatever it actually drew.  ``GridLayout`` is a reference layout for
headless use (snapshot rendering, the MCP tools, tests): it mimics the
station board — an auto-fill grid of fixed-height station cards, with
zones and group stations drawn as full-width frames around their own grid.

Spacing constants:
  - Station cards: 140px minimum width, 96px tall
  - Grid gaps: 40px between columns, 48px between rows
  - Frames (zones, groups): 24px padding, 32px label band, 64px apart
  - Board: 32px outer padding
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .geometry import Box
from .models import NodeKind, ProcessNode, Workshop

logger = logging.getLogger(__name__)


# --- Spacing constants ---

BOARD_PADDING = 32
BOARD_WIDTH = 1280

STATION_MIN_WIDTH = 140
STATION_HEIGHT = 96

COLUMN_GAP = 40
ROW_GAP = 48

FRAME_PADDING = 24
FRAME_LABEL_HEIGHT = 32
FRAME_GAP = 64


Unsubscribe = Callable[[], None]


class LayoutProvider(Protocol):
    """Geometry source consumed by the scheduler and routing engine."""

    def box_of(self, node_id: str) -> Optional[Box]:
        ...

    def on_layout_change(self, callback: Callable[[], None]) -> Unsubscribe:
        ...


# ---------------------------------------------------------------------------
# Box table
# ---------------------------------------------------------------------------

class BoxTable:
    """Mutable id → box table that notifies subscribers on change.

    Writes that leave the table unchanged do not notify, so a render layer
    can push its measurements every frame without causing recompute churn.
    """

    def __init__(self, boxes: Optional[dict[str, Box]] = None):
        self._boxes: dict[str, Box] = dict(boxes or {})
        self._listeners: list[Callable[[], None]] = []

    def box_of(self, node_id: str) -> Optional[Box]:
        return self._boxes.get(node_id)

    def on_layout_change(self, callback: Callable[[], None]) -> Unsubscribe:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def set_box(self, node_id: str, box: Box) -> None:
        if self._boxes.get(node_id) == box:
            return
        self._boxes[node_id] = box
        self._notify()

    def discard(self, node_id: str) -> None:
        if self._boxes.pop(node_id, None) is not None:
            self._notify()

    def replace(self, boxes: dict[str, Box]) -> None:
        """Swap in a whole new measurement set."""
        if boxes == self._boxes:
            return
        self._boxes = dict(boxes)
        self._notify()

    def snapshot(self) -> dict[str, Box]:
        return dict(self._boxes)

    def __len__(self) -> int:
        return len(self._boxes)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback()


# ---------------------------------------------------------------------------
# Reference grid layout
# ---------------------------------------------------------------------------

@dataclass
class GridOptions:
    """Dimensions for the reference grid layout."""
    width: float = BOARD_WIDTH
    padding: float = BOARD_PADDING
    station_min_width: float = STATION_MIN_WIDTH
    station_height: float = STATION_HEIGHT
    column_gap: float = COLUMN_GAP
    row_gap: float = ROW_GAP
    frame_padding: float = FRAME_PADDING
    frame_label_height: float = FRAME_LABEL_HEIGHT
    frame_gap: float = FRAME_GAP


def grid_columns(width: float, min_width: float, gap: float) -> int:
    """How many ``min_width`` columns fit in ``width`` (auto-fill), at least 1."""
    return max(1, int((width + gap) // (min_width + gap)))


def is_frame(node: ProcessNode) -> bool:
    """True for nodes drawn as frames: zones and group stations."""
    if node.kind == NodeKind.ZONE:
        return True
    return node.kind == NodeKind.STATION and node.is_group


class GridLayout:
    """Lays a workshop out as a station board.

    Stations (placeholders included — they hold a slot) flow left to right
    and wrap onto new rows; a station spans ``meta.layout_span`` cells,
    capped at the column count.  Zones and group stations break the flow
    and become full-width frames holding their own grid.
    """

    def __init__(self, options: Optional[GridOptions] = None):
        self.options = options or GridOptions()

    def compute(self, workshop: Workshop) -> dict[str, Box]:
        """Boxes for every laid-out node of ``workshop``, keyed by id."""
        o = self.options
        boxes: dict[str, Box] = {}
        inner_width = max(o.station_min_width, o.width - 2 * o.padding)
        self._layout_block(workshop.children, o.padding, o.padding, inner_width, boxes)
        logger.debug(f"Grid layout for {workshop.id}: {len(boxes)} boxes")
        return boxes

    def apply(self, workshop: Workshop, table: BoxTable) -> dict[str, Box]:
        """Compute the layout and publish it into ``table``."""
        boxes = self.compute(workshop)
        table.replace(boxes)
        return boxes

    def _layout_block(
        self,
        children: list[ProcessNode],
        left: float,
        top: float,
        width: float,
        boxes: dict[str, Box],
    ) -> float:
        """Place ``children`` inside a block; returns the height used."""
        o = self.options
        columns = grid_columns(width, o.station_min_width, o.column_gap)
        col_width = (width - (columns - 1) * o.column_gap) / columns

        y = top
        bottom = top
        col = 0

        for child in children:
            if child.kind == NodeKind.INSPECTION:
                continue

            if is_frame(child):
                if col > 0:
                    y += o.station_height + o.row_gap
                    col = 0
                inner_top = y + o.frame_padding + o.frame_label_height
                inner_height = self._layout_block(
                    child.children,
                    left + o.frame_padding,
                    inner_top,
                    width - 2 * o.frame_padding,
                    boxes,
                )
                height = inner_height + 2 * o.frame_padding + o.frame_label_height
                boxes[child.id] = Box(left, y, width, height)
                bottom = max(bottom, y + height)
                y += height + o.frame_gap
                continue

            span = min(child.meta.layout_span, columns)
            if col + span > columns:
                y += o.station_height + o.row_gap
                col = 0
            x = left + col * (col_width + o.column_gap)
            cell_width = span * col_width + (span - 1) * o.column_gap
            boxes[child.id] = Box(x, y, cell_width, o.station_height)
            bottom = max(bottom, y + o.station_height)
            col += span

        return bottom - top
