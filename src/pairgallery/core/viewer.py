"""
Slideshow and viewer index controller.

The controller owns the "which item is displayed" pointer of a full-screen
viewer. Timer ticks drive the pointer programmatically and notify jump
listeners, which scroll the view. User swipes are only recorded: the view is
already showing the item, so no jump is issued. A swipe pauses auto-advance,
which resumes from the swiped-to index after a short quiet period.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)

MIN_INTERVAL_MS = 1_000
MAX_INTERVAL_MS = 30_000
DEFAULT_INTERVAL_MS = 5_000
DEFAULT_QUIET_PERIOD_MS = 600


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Schedules one-shot callbacks; ``asyncio`` loops satisfy this directly."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop (the running loop by default)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class ViewerState(Enum):
    IDLE = "idle"
    AUTO_ADVANCING = "auto_advancing"
    PAUSED_FOR_USER_INPUT = "paused_for_user_input"


@dataclass(frozen=True)
class ViewerIndexState:
    """Observable state of a viewer."""

    displayed_index: int
    state: ViewerState
    interval_ms: int
    item_count: int

    @property
    def is_auto_advancing(self) -> bool:
        return self.state is ViewerState.AUTO_ADVANCING


def clamp_interval_ms(duration_ms: int | float) -> int:
    """Clamp a slideshow interval to the supported range."""
    return int(min(MAX_INTERVAL_MS, max(MIN_INTERVAL_MS, duration_ms)))


JumpListener = Callable[[int], None]


class ViewerIndexController:
    """
    Drives the displayed index of a viewer.

    Args:
        item_count: Callable returning the current size of the collection
        scheduler: Timer source, defaults to the running asyncio loop
        start_index: Initially displayed index (clamped)
        interval_ms: Slideshow interval used when ``start`` gets none
        quiet_period_ms: Delay after the last swipe before auto-advance resumes
    """

    def __init__(
        self,
        item_count: Callable[[], int],
        scheduler: Scheduler | None = None,
        start_index: int = 0,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        quiet_period_ms: int = DEFAULT_QUIET_PERIOD_MS,
    ):
        self._item_count = item_count
        self._scheduler = scheduler or AsyncioScheduler()
        self._interval_ms = clamp_interval_ms(interval_ms)
        self._quiet_period_ms = max(0, int(quiet_period_ms))
        self._state = ViewerState.IDLE
        self._index = self._clamp_index(start_index, self._count())
        self._tick_timer: TimerHandle | None = None
        self._resume_timer: TimerHandle | None = None
        self._jump_listeners: list[JumpListener] = []
        self._closed = False

    # Observation

    @property
    def state(self) -> ViewerState:
        return self._state

    @property
    def displayed_index(self) -> int:
        return self._index

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def snapshot(self) -> ViewerIndexState:
        return ViewerIndexState(
            displayed_index=self._index,
            state=self._state,
            interval_ms=self._interval_ms,
            item_count=self._count(),
        )

    def add_jump_listener(self, listener: JumpListener) -> Callable[[], None]:
        """
        Register a callback that scrolls the view to a programmatically chosen index.

        Returns:
            Callable that removes the listener
        """
        self._jump_listeners.append(listener)

        def remove() -> None:
            if listener in self._jump_listeners:
                self._jump_listeners.remove(listener)

        return remove

    # Transitions

    def start(self, interval_ms: int | None = None) -> bool:
        """
        Start auto-advancing from the current index.

        Returns:
            False when the viewer is closed or the collection is empty
        """
        if self._closed:
            logger.warning("viewer_start_after_close")
            return False

        if interval_ms is not None:
            self._interval_ms = clamp_interval_ms(interval_ms)

        count = self._count()
        if count == 0:
            self._enter_idle()
            return False

        self._index = self._clamp_index(self._index, count)
        self._cancel_timers()
        self._state = ViewerState.AUTO_ADVANCING
        self._arm_tick()
        logger.debug("viewer_started", interval_ms=self._interval_ms, index=self._index, item_count=count)
        return True

    def stop(self) -> None:
        """Stop auto-advancing; the displayed index is kept."""
        if self._state is not ViewerState.IDLE:
            logger.debug("viewer_stopped", index=self._index)
        self._enter_idle()

    def close(self) -> None:
        """Stop all timers and drop listeners; the controller cannot be restarted."""
        self._enter_idle()
        self._jump_listeners.clear()
        self._closed = True

    def tick(self) -> int | None:
        """
        Advance to the next item, wrapping at the end.

        Returns:
            The new index, or None when the collection is empty
        """
        count = self._count()
        if count == 0:
            self._enter_idle()
            return None

        self._index = (self._clamp_index(self._index, count) + 1) % count
        self._notify_jump(self._index)
        return self._index

    def on_user_navigate(self, new_index: int) -> int:
        """
        Record an index reached by the user without issuing a jump.

        While a slideshow is running this pauses it and (re)arms the resume
        timer.

        Returns:
            The recorded index after clamping
        """
        count = self._count()
        if count == 0:
            self._enter_idle()
            return self._index

        self._index = self._clamp_index(new_index, count)

        if self._state is not ViewerState.IDLE:
            self._cancel_timers()
            self._state = ViewerState.PAUSED_FOR_USER_INPUT
            self._resume_timer = self._scheduler.call_later(self._quiet_period_ms / 1000, self._on_quiet_period)

        return self._index

    def set_interval(self, duration_ms: int) -> int:
        """
        Change the slideshow interval.

        Returns:
            The clamped interval in milliseconds
        """
        self._interval_ms = clamp_interval_ms(duration_ms)
        if self._state is ViewerState.AUTO_ADVANCING:
            self._cancel_tick()
            self._arm_tick()
        return self._interval_ms

    def sync_item_count(self) -> int:
        """
        Re-clamp the index after the collection changed.

        An empty collection stops the slideshow. A clamped index is pushed to
        the jump listeners because the item on screen is gone.
        """
        count = self._count()
        if count == 0:
            self._enter_idle()
            self._index = 0
            return self._index

        clamped = self._clamp_index(self._index, count)
        if clamped != self._index:
            self._index = clamped
            self._notify_jump(clamped)
        return self._index

    # Timers

    def _on_tick_timer(self) -> None:
        self._tick_timer = None
        if self._state is not ViewerState.AUTO_ADVANCING:
            return
        self.tick()
        if self._state is ViewerState.AUTO_ADVANCING:
            self._arm_tick()

    def _on_quiet_period(self) -> None:
        self._resume_timer = None
        if self._state is not ViewerState.PAUSED_FOR_USER_INPUT:
            return
        if self._count() == 0:
            self._enter_idle()
            return
        self._state = ViewerState.AUTO_ADVANCING
        self._arm_tick()
        logger.debug("viewer_resumed", index=self._index)

    def _arm_tick(self) -> None:
        self._tick_timer = self._scheduler.call_later(self._interval_ms / 1000, self._on_tick_timer)

    def _cancel_tick(self) -> None:
        if self._tick_timer is not None:
            self._tick_timer.cancel()
            self._tick_timer = None

    def _cancel_timers(self) -> None:
        self._cancel_tick()
        if self._resume_timer is not None:
            self._resume_timer.cancel()
            self._resume_timer = None

    def _enter_idle(self) -> None:
        self._cancel_timers()
        self._state = ViewerState.IDLE

    # Helpers

    def _count(self) -> int:
        return max(0, int(self._item_count()))

    @staticmethod
    def _clamp_index(index: int, count: int) -> int:
        if count <= 0:
            return 0
        return min(max(0, int(index)), count - 1)

    def _notify_jump(self, index: int) -> None:
        for listener in list(self._jump_listeners):
            try:
                listener(index)
            except Exception as e:
                logger.error("viewer_jump_listener_failed", index=index, error=str(e))
