"""Optimistic ledger and viewer index controller."""

from .ledger import OptimisticLedger
from .viewer import (
    DEFAULT_INTERVAL_MS,
    DEFAULT_QUIET_PERIOD_MS,
    MAX_INTERVAL_MS,
    MIN_INTERVAL_MS,
    AsyncioScheduler,
    Scheduler,
    ViewerIndexController,
    ViewerIndexState,
    ViewerState,
    clamp_interval_ms,
)

__all__ = [
    "DEFAULT_INTERVAL_MS",
    "DEFAULT_QUIET_PERIOD_MS",
    "MAX_INTERVAL_MS",
    "MIN_INTERVAL_MS",
    "AsyncioScheduler",
    "OptimisticLedger",
    "Scheduler",
    "ViewerIndexController",
    "ViewerIndexState",
    "ViewerState",
    "clamp_interval_ms",
]
