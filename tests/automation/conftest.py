"""Shared fixtures for automation tests."""

from collections.abc import Callable
from datetime import datetime, timedelta

import pytest

from src.automation.hysteresis import TimerHandle


class FakeTimerHandle(TimerHandle):
    def __init__(self, timers: "FakeTimers", delay: float, callback: Callable[[], None]):
        self.timers = timers
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """Timer factory driven by advance() instead of wall-clock time."""

    def __init__(self):
        self.now = datetime(2026, 1, 5, 9, 0, 0)
        self.handles: list[tuple[datetime, FakeTimerHandle]] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimerHandle:
        handle = FakeTimerHandle(self, delay, callback)
        self.handles.append((self.now + timedelta(seconds=delay), handle))
        return handle

    def clock(self) -> datetime:
        return self.now

    @property
    def active(self) -> list[FakeTimerHandle]:
        return [h for _, h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        """Move time forward, firing timers whose deadline has passed."""
        self.now += timedelta(seconds=seconds)
        for deadline, handle in list(self.handles):
            if deadline <= self.now and not handle.cancelled and not handle.fired:
                handle.fired = True
                handle.callback()


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()
