"""
Hysteresis Controller for Smart Audio

Turns a stream of foreground-app samples into "capture should be on/off"
signals:
- Capture turns on as soon as a trigger app is focused
- Capture turns off only after the configured disable delay has passed
  without a trigger app in focus
- Focusing a trigger app again during the delay cancels the pending
  disable without signalling again

One capture session produces exactly one "active" and at most one
"inactive" signal.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta
from functools import partial

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger

from src.automation.matcher import match_trigger
from src.automation.models import (
    AutomationConfig,
    ForegroundApp,
    HysteresisPhase,
    HysteresisState,
    TriggerApp,
)

logger = logging.getLogger(__name__)

# Receives (active, triggering app); the app is None for "inactive"
TransitionCallback = Callable[[bool, TriggerApp | None], None]


class TimerHandle(ABC):
    """Handle for a scheduled one-shot callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the callback if it has not run yet."""
        pass


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


class SchedulerTimerHandle(TimerHandle):
    """One-shot APScheduler date job."""

    def __init__(self, scheduler: BaseScheduler, job_id: str):
        self.scheduler = scheduler
        self.job_id = job_id

    def cancel(self) -> None:
        try:
            self.scheduler.remove_job(self.job_id)
        except JobLookupError:
            # Already ran or the scheduler was shut down
            pass


class SchedulerTimers:
    """TimerFactory backed by an APScheduler scheduler."""

    JOB_ID = "pending_disable"

    def __init__(self, scheduler: BaseScheduler):
        self.scheduler = scheduler

    def __call__(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        run_date = datetime.now() + timedelta(seconds=delay)
        self.scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=run_date),
            id=self.JOB_ID,
            name="Pending Capture Disable",
            replace_existing=True,
            misfire_grace_time=None,
        )
        return SchedulerTimerHandle(self.scheduler, self.JOB_ID)


class HysteresisController:
    """
    State machine over Idle / Triggered / PendingDisable.

    tick() is called once per poll; the pending-disable timer fires
    independently. Both run under one lock, and the transition callback is
    invoked while the lock is held so signals are delivered in the order
    the transitions happened. Callbacks should hand work off rather than
    block (see AudioBridge).
    """

    def __init__(
        self,
        on_transition: TransitionCallback,
        timers: TimerFactory,
        config: AutomationConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the controller.

        Args:
            on_transition: Receives every active/inactive signal
            timers: Creates the one-shot pending-disable timer
            config: Initial automation config (defaults if None)
            clock: Source of the current time for deadlines
        """
        self.on_transition = on_transition
        self._timers = timers
        self._clock = clock
        self._config = config or AutomationConfig()

        self._state = HysteresisState()
        self._timer: TimerHandle | None = None
        # Identity of the live timer; a firing for any other token is stale
        self._timer_token: object | None = None
        self._lock = threading.RLock()

    @property
    def state(self) -> HysteresisState:
        return self._state

    @property
    def config(self) -> AutomationConfig:
        return self._config

    def apply_config(self, config: AutomationConfig) -> None:
        """
        Use a new config from the next tick on.

        A pending disable already scheduled keeps the delay it was started
        with, even if the delay or the trigger set changed.
        """
        with self._lock:
            self._config = config
        logger.debug(
            f"Automation config applied (enabled={config.capture_automation_enabled}, "
            f"triggers={len(config.enabled_triggers())}, delay={config.disable_delay.value})"
        )

    def tick(self, app: ForegroundApp | None) -> HysteresisState:
        """
        Advance the state machine with the latest foreground app.

        Args:
            app: Latest known foreground app (None if none is known yet)

        Returns:
            The state after the transition
        """
        with self._lock:
            config = self._config
            phase = self._state.phase

            if not config.capture_automation_enabled:
                if phase is not HysteresisPhase.IDLE:
                    self._cancel_timer()
                    self._state = HysteresisState()
                    logger.info("Capture automation disabled; ending capture session")
                    self._emit(False, None)
                return self._state

            matched = match_trigger(app, config.enabled_triggers())

            if matched is not None:
                if phase is HysteresisPhase.IDLE:
                    self._state = HysteresisState(
                        phase=HysteresisPhase.TRIGGERED, triggered_by=matched
                    )
                    logger.info(f"Trigger app focused: {matched.display_name}")
                    self._emit(True, matched)
                elif phase is HysteresisPhase.PENDING_DISABLE:
                    self._cancel_timer()
                    self._state = HysteresisState(
                        phase=HysteresisPhase.TRIGGERED,
                        triggered_by=self._state.triggered_by,
                    )
                    logger.info(
                        f"Trigger app focused again ({matched.display_name}); "
                        "pending disable cancelled"
                    )
                return self._state

            if phase is HysteresisPhase.TRIGGERED:
                delay = config.disable_delay.seconds
                if delay is None:
                    return self._state

                token = object()
                self._timer_token = token
                self._timer = self._timers(delay, partial(self._on_deadline, token))
                self._state = HysteresisState(
                    phase=HysteresisPhase.PENDING_DISABLE,
                    triggered_by=self._state.triggered_by,
                    deadline=self._clock() + timedelta(seconds=delay),
                )
                logger.info(
                    f"Trigger app lost focus; capture turns off in {config.disable_delay.value}"
                )

            return self._state

    def reset(self) -> None:
        """Cancel any pending disable and return to Idle without signalling."""
        with self._lock:
            self._cancel_timer()
            self._state = HysteresisState()

    def _on_deadline(self, token: object) -> None:
        """Pending-disable timer body."""
        with self._lock:
            if token is not self._timer_token:
                logger.debug("Ignoring cancelled pending-disable timer")
                return
            if self._state.phase is not HysteresisPhase.PENDING_DISABLE:
                return

            self._timer = None
            self._timer_token = None
            self._state = HysteresisState()
            logger.info("Disable delay elapsed; ending capture session")
            self._emit(False, None)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._timer_token = None

    def _emit(self, active: bool, trigger: TriggerApp | None) -> None:
        try:
            self.on_transition(active, trigger)
        except Exception as e:
            logger.error(f"Transition callback error: {e}")
