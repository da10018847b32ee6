"""
Recomputation scheduling for PlantFlow routes.

Layout notifications arrive at arbitrary frequency (every resize step,
every font or image that finishes loading).  Routing them straight into
the engine would recompute many times per frame, so the scheduler is a two
state machine:

    IDLE ──trigger──▶ PENDING ──frame──▶ (recompute, publish) ──▶ IDLE
                        │
                        └─trigger─▶ coalesced (no-op)

Triggers: mounting a workshop view, any layout-change notification, a new
workshop tree reference, and a selection change (route weights depend on
it).  Every mount or workshop switch also arms a one-shot delayed re-check
(RECHECK_DELAY), covering geometry that is not yet measurable when the
first frame settles.  Arming a new re-check supersedes the previous one.

Timing comes from a ``FrameClock``.  ``ManualClock`` runs frames and timers
only when told to, which keeps tests and headless sessions deterministic;
``AsyncioClock`` drives the same machine from an asyncio event loop.

Routes are published through a ``RouteStore``: each publish swaps in a
new immutable tuple, so readers never see a half-built list.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from enum import Enum
from typing import Callable, Optional, Protocol

from .layout import LayoutProvider, Unsubscribe
from .models import RoutingPolicy, Workshop
from .routing import Route, RoutingOptions, compute_routes

logger = logging.getLogger(__name__)


# Delay of the one-shot re-check after a mount or workshop switch (ms).
RECHECK_DELAY = 150

# Frame interval used by AsyncioClock (ms).
FRAME_INTERVAL = 16


class SchedulerState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------

class FrameClock(Protocol):
    """Source of layout-settle ticks and one-shot timers."""

    def request_frame(self, callback: Callable[[], None]) -> None:
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        ...


class ManualClock:
    """A clock that only moves when driven.

    ``run_frame()`` fires the callbacks requested so far; ``advance(ms)``
    moves time forward and fires every timer that came due, in due order.
    """

    def __init__(self):
        self.now = 0.0
        self._frames: list[Callable[[], None]] = []
        self._timers: list[tuple[float, int, Callable[[], None]]] = []
        self._seq = itertools.count()

    def request_frame(self, callback: Callable[[], None]) -> None:
        self._frames.append(callback)

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        heapq.heappush(self._timers, (self.now + delay, next(self._seq), callback))

    @property
    def pending_frames(self) -> int:
        return len(self._frames)

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    def run_frame(self) -> int:
        """Fire the frame callbacks queued before this call; returns how many."""
        frames, self._frames = self._frames, []
        for callback in frames:
            callback()
        return len(frames)

    def advance(self, delay: float) -> int:
        """Move time forward by ``delay`` and fire due timers; returns how many."""
        target = self.now + delay
        fired = 0
        while self._timers and self._timers[0][0] <= target:
            due, _, callback = heapq.heappop(self._timers)
            self.now = due
            callback()
            fired += 1
        self.now = target
        return fired

    def settle(self, max_frames: int = 100) -> int:
        """Run frames until none are queued; returns how many ran."""
        ran = 0
        for _ in range(max_frames):
            if not self._frames:
                break
            ran += self.run_frame()
        return ran


class AsyncioClock:
    """Frame clock backed by an asyncio event loop (delays in ms).

    Without an explicit ``loop`` it must be built inside a running loop.
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        frame_interval: float = FRAME_INTERVAL,
    ):
        self.loop = loop or asyncio.get_running_loop()
        self.frame_interval = frame_interval

    def request_frame(self, callback: Callable[[], None]) -> None:
        self.loop.call_later(self.frame_interval / 1000, callback)

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        self.loop.call_later(delay / 1000, callback)


# ---------------------------------------------------------------------------
# Route publication
# ---------------------------------------------------------------------------

class RouteStore:
    """Observable holder of the most recently published routes."""

    def __init__(self):
        self._routes: tuple[Route, ...] = ()
        self._listeners: list[Callable[[tuple[Route, ...]], None]] = []
        self.version = 0

    @property
    def routes(self) -> tuple[Route, ...]:
        return self._routes

    def publish(self, routes: list[Route]) -> None:
        self._routes = tuple(routes)
        self.version += 1
        for callback in list(self._listeners):
            callback(self._routes)

    def subscribe(self, callback: Callable[[tuple[Route, ...]], None]) -> Unsubscribe:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

class RecomputeScheduler:
    """Coalesces layout, tree and selection changes into route recomputes."""

    def __init__(
        self,
        layout: LayoutProvider,
        clock: FrameClock,
        store: Optional[RouteStore] = None,
        policy: Optional[RoutingPolicy] = None,
        options: Optional[RoutingOptions] = None,
        recheck_delay: float = RECHECK_DELAY,
    ):
        self.layout = layout
        self.clock = clock
        self.store = store or RouteStore()
        self.policy = policy or RoutingPolicy()
        self.options = options or RoutingOptions()
        self.recheck_delay = recheck_delay

        self.state = SchedulerState.IDLE
        self.recompute_count = 0
        self._workshop: Optional[Workshop] = None
        self._selected_id: Optional[str] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        # Bumped on unmount so frames requested before it become no-ops.
        self._generation = 0
        self._recheck_token = 0

    @property
    def workshop(self) -> Optional[Workshop]:
        return self._workshop

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def mounted(self) -> bool:
        return self._unsubscribe is not None

    # --- Lifecycle ---

    def mount(self, workshop: Workshop) -> None:
        """Start routing ``workshop`` and listen for layout changes."""
        if self._unsubscribe is None:
            self._unsubscribe = self.layout.on_layout_change(self.notify_layout_change)
        self._workshop = workshop
        self.trigger("mount")
        self._arm_recheck()

    def unmount(self) -> None:
        """Stop listening; any pending recompute or re-check is dropped."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._workshop = None
        self._generation += 1
        self._recheck_token += 1
        self.state = SchedulerState.IDLE

    # --- Triggers ---

    def set_workshop(self, workshop: Workshop) -> None:
        """Switch to a new workshop tree; same reference is a no-op."""
        if workshop is self._workshop:
            return
        if not self.mounted:
            self.mount(workshop)
            return
        self._workshop = workshop
        self.trigger("workshop")
        self._arm_recheck()

    def set_selection(self, selected_id: Optional[str]) -> None:
        if selected_id == self._selected_id:
            return
        self._selected_id = selected_id
        self.trigger("selection")

    def notify_layout_change(self) -> None:
        self.trigger("layout")

    def trigger(self, reason: str = "manual") -> None:
        """Request a recompute on the next frame unless one is pending."""
        if self._workshop is None:
            return
        if self.state == SchedulerState.PENDING:
            logger.debug(f"Coalesced {reason} trigger")
            return
        self.state = SchedulerState.PENDING
        generation = self._generation
        self.clock.request_frame(lambda: self._run(generation))

    # --- Internals ---

    def _arm_recheck(self) -> None:
        self._recheck_token += 1
        token = self._recheck_token
        self.clock.call_later(self.recheck_delay, lambda: self._recheck(token))

    def _recheck(self, token: int) -> None:
        if token != self._recheck_token:
            return
        self.trigger("recheck")

    def _run(self, generation: int) -> None:
        if generation != self._generation or self._workshop is None:
            return
        # Back to IDLE first: a layout change caused by this publish
        # must schedule a fresh frame rather than be swallowed.
        self.state = SchedulerState.IDLE
        routes = compute_routes(
            self._workshop,
            self.layout.box_of,
            policy=self.policy,
            options=self.options,
            selected_id=self._selected_id,
        )
        self.recompute_count += 1
        logger.debug(
            f"Recompute #{self.recompute_count} for {self._workshop.id}: {len(routes)} routes"
        )
        self.store.publish(routes)
