"""
Unit tests for the slideshow and viewer index controller.
"""

from pairgallery.core.viewer import (
    DEFAULT_INTERVAL_MS,
    MAX_INTERVAL_MS,
    MIN_INTERVAL_MS,
    ViewerIndexController,
    ViewerState,
    clamp_interval_ms,
)
from tests.conftest import FakeScheduler


class Collection:
    def __init__(self, count: int):
        self.count = count

    def __call__(self) -> int:
        return self.count


class TestIntervalClamping:
    def test_clamps_to_bounds(self):
        assert clamp_interval_ms(10) == MIN_INTERVAL_MS
        assert clamp_interval_ms(120_000) == MAX_INTERVAL_MS
        assert clamp_interval_ms(3_000) == 3_000

    def test_default_interval(self):
        controller = ViewerIndexController(Collection(3), FakeScheduler())
        assert controller.interval_ms == DEFAULT_INTERVAL_MS


class TestViewerIndexController:
    """Test cases for ViewerIndexController transitions."""

    def setup_method(self):
        self.items = Collection(4)
        self.scheduler = FakeScheduler()
        self.jumps: list[int] = []
        self.controller = ViewerIndexController(self.items, self.scheduler)
        self.controller.add_jump_listener(self.jumps.append)

    def test_initial_state_is_idle(self):
        assert self.controller.state is ViewerState.IDLE
        assert self.controller.displayed_index == 0
        assert self.scheduler.pending == []

    def test_start_index_is_clamped(self):
        controller = ViewerIndexController(self.items, self.scheduler, start_index=99)
        assert controller.displayed_index == 3

    def test_ticks_advance_and_wrap(self):
        self.controller.start(3_000)

        self.scheduler.advance(12.0)

        assert self.jumps == [1, 2, 3, 0]
        assert self.controller.displayed_index == 0
        assert self.controller.state is ViewerState.AUTO_ADVANCING

    def test_start_on_empty_collection_stays_idle(self):
        self.items.count = 0

        assert self.controller.start() is False
        assert self.controller.state is ViewerState.IDLE
        assert self.scheduler.pending == []

    def test_start_clamps_interval(self):
        self.controller.start(100)

        assert self.controller.interval_ms == MIN_INTERVAL_MS

    def test_stop_keeps_index_and_cancels_timer(self):
        self.controller.start(1_000)
        self.scheduler.advance(2.0)

        self.controller.stop()
        self.scheduler.advance(10.0)

        assert self.controller.displayed_index == 2
        assert self.controller.state is ViewerState.IDLE
        assert self.scheduler.pending == []

    def test_user_navigation_while_idle_records_index_only(self):
        index = self.controller.on_user_navigate(2)

        assert index == 2
        assert self.controller.state is ViewerState.IDLE
        assert self.jumps == []
        assert self.scheduler.pending == []

    def test_user_navigation_is_clamped(self):
        assert self.controller.on_user_navigate(-5) == 0
        assert self.controller.on_user_navigate(42) == 3

    def test_swipe_pauses_then_resumes_from_swiped_index(self):
        self.controller.start(3_000)
        self.scheduler.advance(3.0)
        assert self.jumps == [1]

        self.controller.on_user_navigate(2)
        assert self.controller.state is ViewerState.PAUSED_FOR_USER_INPUT
        assert self.jumps == [1]

        self.scheduler.advance(0.6)
        assert self.controller.state is ViewerState.AUTO_ADVANCING

        self.scheduler.advance(3.0)
        assert self.controller.displayed_index == 3
        assert self.jumps == [1, 3]

    def test_no_tick_fires_while_paused(self):
        self.controller.start(1_000)
        self.scheduler.advance(0.9)

        self.controller.on_user_navigate(1)
        self.scheduler.advance(0.5)

        assert self.jumps == []
        assert self.controller.displayed_index == 1

    def test_consecutive_swipes_restart_quiet_period(self):
        self.controller.start(5_000)
        self.controller.on_user_navigate(1)
        self.scheduler.advance(0.4)
        self.controller.on_user_navigate(2)
        self.scheduler.advance(0.4)

        assert self.controller.state is ViewerState.PAUSED_FOR_USER_INPUT

        self.scheduler.advance(0.2)
        assert self.controller.state is ViewerState.AUTO_ADVANCING
        assert self.controller.displayed_index == 2

    def test_at_most_one_timer_armed(self):
        self.controller.start(2_000)
        self.controller.set_interval(4_000)
        self.controller.on_user_navigate(1)
        self.controller.on_user_navigate(2)

        assert len(self.scheduler.pending) == 1

    def test_set_interval_rearms_running_slideshow(self):
        self.controller.start(5_000)
        self.scheduler.advance(4.0)

        assert self.controller.set_interval(2_000) == 2_000
        self.scheduler.advance(2.0)

        assert self.jumps == [1]

    def test_collection_shrinks_below_index(self):
        self.controller.on_user_navigate(3)
        self.items.count = 2

        assert self.controller.sync_item_count() == 1
        assert self.jumps == [1]

    def test_collection_emptied_stops_slideshow(self):
        self.controller.start(1_000)
        self.items.count = 0

        self.controller.sync_item_count()

        assert self.controller.state is ViewerState.IDLE
        assert self.controller.displayed_index == 0
        assert self.scheduler.pending == []

    def test_tick_on_empty_collection_goes_idle(self):
        self.controller.start(1_000)
        self.items.count = 0

        self.scheduler.advance(1.0)

        assert self.controller.state is ViewerState.IDLE
        assert self.jumps == []

    def test_close_cancels_timers_and_blocks_restart(self):
        self.controller.start(1_000)

        self.controller.close()

        assert self.scheduler.pending == []
        assert self.controller.start() is False

    def test_removed_listener_is_not_notified(self):
        extra: list[int] = []
        remove = self.controller.add_jump_listener(extra.append)
        remove()

        self.controller.tick()

        assert extra == []
        assert self.jumps == [1]

    def test_snapshot(self):
        self.controller.start(2_000)

        snapshot = self.controller.snapshot()

        assert snapshot.is_auto_advancing
        assert snapshot.item_count == 4
        assert snapshot.interval_ms == 2_000
        assert snapshot.displayed_index == 0
