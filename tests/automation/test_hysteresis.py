"""
Tests for the hysteresis controller.

Time is driven by the FakeTimers fixture so pending disables fire exactly
when a test advances past their deadline.
"""

import random
from datetime import timedelta

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from src.automation.hysteresis import HysteresisController, SchedulerTimers, TimerHandle
from src.automation.models import (
    DEFAULT_TRIGGER_APPS,
    AutomationConfig,
    DisableDelay,
    ForegroundApp,
    HysteresisPhase,
)

ZOOM_APP = ForegroundApp(display_name="zoom.us", bundle_id="us.zoom.xos")
SLACK_APP = ForegroundApp(display_name="Slack", bundle_id="com.tinyspeck.slackmacgap")
EDITOR_APP = ForegroundApp(display_name="Code", bundle_id="com.microsoft.VSCode")

ZOOM, MEET, SLACK = DEFAULT_TRIGGER_APPS


def _config(**changes) -> AutomationConfig:
    base = {
        "trigger_apps": (ZOOM, MEET.with_enabled(False), SLACK),
        "disable_delay": DisableDelay.THIRTY_SECONDS,
    }
    base.update(changes)
    return AutomationConfig(**base)


@pytest.fixture
def signals() -> list:
    return []


@pytest.fixture
def controller(timers, signals) -> HysteresisController:
    return HysteresisController(
        on_transition=lambda active, trigger: signals.append((active, trigger)),
        timers=timers,
        config=_config(),
        clock=timers.clock,
    )


class TestActivation:
    """Tests for turning capture on."""

    def test_starts_idle(self, controller):
        assert controller.state.phase is HysteresisPhase.IDLE

    def test_match_from_idle_emits_active(self, controller, signals):
        state = controller.tick(ZOOM_APP)

        assert state.phase is HysteresisPhase.TRIGGERED
        assert state.triggered_by == ZOOM
        assert signals == [(True, ZOOM)]

    def test_repeated_match_is_noop(self, controller, signals):
        controller.tick(ZOOM_APP)
        controller.tick(ZOOM_APP)
        controller.tick(SLACK_APP)

        assert signals == [(True, ZOOM)]
        assert controller.state.triggered_by == ZOOM

    def test_no_match_from_idle_is_noop(self, controller, signals, timers):
        controller.tick(EDITOR_APP)
        controller.tick(None)

        assert controller.state.phase is HysteresisPhase.IDLE
        assert signals == []
        assert timers.handles == []

    def test_disabled_trigger_does_not_match(self, controller, signals):
        controller.tick(ForegroundApp(display_name="Google Meet", bundle_id="com.google.Chrome"))
        assert signals == []


class TestPendingDisable:
    """Tests for the debounced disable."""

    def test_loss_of_match_starts_timer(self, controller, signals, timers):
        controller.tick(ZOOM_APP)
        state = controller.tick(EDITOR_APP)

        assert state.phase is HysteresisPhase.PENDING_DISABLE
        assert state.triggered_by == ZOOM
        assert state.deadline == timers.now + timedelta(seconds=30)
        assert [h.delay for h in timers.active] == [30.0]
        assert signals == [(True, ZOOM)]

    def test_timer_not_restarted_on_repeated_non_match(self, controller, timers):
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)
        timers.advance(10)
        controller.tick(EDITOR_APP)
        controller.tick(None)

        assert len(timers.handles) == 1

    def test_deadline_emits_inactive(self, controller, signals, timers):
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)

        timers.advance(29)
        assert signals == [(True, ZOOM)]

        timers.advance(1)
        assert signals == [(True, ZOOM), (False, None)]
        assert controller.state.phase is HysteresisPhase.IDLE
        assert controller.state.triggered_by is None

    def test_rematch_cancels_without_reemitting(self, controller, signals, timers):
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)
        handle = timers.active[0]

        state = controller.tick(ZOOM_APP)

        assert state.phase is HysteresisPhase.TRIGGERED
        assert state.deadline is None
        assert handle.cancelled
        timers.advance(60)
        assert signals == [(True, ZOOM)]

    def test_rematch_by_other_trigger_keeps_original(self, controller, signals):
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)

        state = controller.tick(SLACK_APP)

        assert state.triggered_by == ZOOM
        assert signals == [(True, ZOOM)]

    def test_stale_timer_firing_is_ignored(self, controller, signals, timers):
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)
        stale = timers.active[0]
        controller.tick(ZOOM_APP)

        # The scheduler may already have dispatched the job before cancel
        stale.callback()

        assert controller.state.phase is HysteresisPhase.TRIGGERED
        assert signals == [(True, ZOOM)]

    def test_new_session_gets_new_timer(self, controller, signals, timers):
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)
        timers.advance(30)
        controller.tick(SLACK_APP)
        controller.tick(EDITOR_APP)
        timers.advance(30)

        assert signals == [(True, ZOOM), (False, None), (True, SLACK), (False, None)]
        assert len(timers.handles) == 2


class TestNeverDisable:
    """Tests for disable_delay = never."""

    def test_stays_triggered(self, timers, signals):
        controller = HysteresisController(
            on_transition=lambda active, trigger: signals.append(active),
            timers=timers,
            config=_config(disable_delay=DisableDelay.NEVER),
        )
        controller.tick(ZOOM_APP)
        for _ in range(50):
            controller.tick(EDITOR_APP)
            timers.advance(3600)

        assert controller.state.phase is HysteresisPhase.TRIGGERED
        assert signals == [True]
        assert timers.handles == []

    def test_global_disable_still_ends_session(self, timers, signals):
        controller = HysteresisController(
            on_transition=lambda active, trigger: signals.append(active),
            timers=timers,
            config=_config(disable_delay=DisableDelay.NEVER),
        )
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)

        controller.apply_config(_config(capture_automation_enabled=False))
        controller.tick(EDITOR_APP)

        assert signals == [True, False]
        assert controller.state.phase is HysteresisPhase.IDLE


class TestGlobalDisable:
    """Tests for turning automation off."""

    def test_disable_while_triggered_is_immediate(self, controller, signals, timers):
        controller.tick(ZOOM_APP)
        controller.apply_config(_config(capture_automation_enabled=False))

        state = controller.tick(ZOOM_APP)

        assert state.phase is HysteresisPhase.IDLE
        assert signals == [(True, ZOOM), (False, None)]
        assert timers.handles == []

    def test_disable_while_pending_cancels_timer(self, controller, signals, timers):
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)
        handle = timers.active[0]

        controller.apply_config(_config(capture_automation_enabled=False))
        controller.tick(EDITOR_APP)
        timers.advance(60)

        assert handle.cancelled
        assert signals == [(True, ZOOM), (False, None)]

    def test_disabled_while_idle_emits_nothing(self, controller, signals):
        controller.apply_config(_config(capture_automation_enabled=False))
        controller.tick(ZOOM_APP)
        controller.tick(ZOOM_APP)

        assert signals == []


class TestConfigReload:
    """Tests for applying a new config mid-session."""

    def test_delay_change_does_not_reschedule_pending_timer(self, controller, signals, timers):
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)

        controller.apply_config(_config(disable_delay=DisableDelay.FIVE_MINUTES))
        controller.tick(EDITOR_APP)
        timers.advance(30)

        assert signals == [(True, ZOOM), (False, None)]
        assert len(timers.handles) == 1

    def test_trigger_removal_does_not_cancel_pending_timer(self, controller, signals, timers):
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)

        controller.apply_config(_config(trigger_apps=(SLACK,)))
        timers.advance(30)

        assert signals == [(True, ZOOM), (False, None)]

    def test_new_delay_used_for_next_session(self, controller, timers):
        controller.apply_config(_config(disable_delay=DisableDelay.ONE_MINUTE))
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)

        assert timers.active[0].delay == 60.0


class TestReset:
    """Tests for reset() on shutdown."""

    def test_reset_cancels_timer_silently(self, controller, signals, timers):
        controller.tick(ZOOM_APP)
        controller.tick(EDITOR_APP)
        handle = timers.active[0]

        controller.reset()
        handle.callback()

        assert handle.cancelled
        assert controller.state.phase is HysteresisPhase.IDLE
        assert signals == [(True, ZOOM)]


class TestCallbackErrors:
    """Tests for failing transition callbacks."""

    def test_state_still_advances(self, timers):
        def explode(active, trigger):
            raise RuntimeError("boom")

        controller = HysteresisController(on_transition=explode, timers=timers, config=_config())

        assert controller.tick(ZOOM_APP).phase is HysteresisPhase.TRIGGERED


class TestScenario:
    """End-to-end debounce scenario with Zoom and Slack enabled and a 30s delay."""

    def test_zoom_session(self, controller, signals, timers):
        # Sample 1: Zoom focused
        assert controller.tick(ZOOM_APP).phase is HysteresisPhase.TRIGGERED
        assert signals == [(True, ZOOM)]

        # Sample 2, 10s later: something else focused
        timers.advance(10)
        state = controller.tick(EDITOR_APP)
        assert state.phase is HysteresisPhase.PENDING_DISABLE
        assert state.deadline == timers.now + timedelta(seconds=30)

        # Sample 3, 5s later: Zoom again
        timers.advance(5)
        assert controller.tick(ZOOM_APP).phase is HysteresisPhase.TRIGGERED
        assert signals == [(True, ZOOM)]

        # Sample 4: 40s of unrelated apps
        controller.tick(EDITOR_APP)
        for _ in range(20):
            timers.advance(2)
            controller.tick(EDITOR_APP)

        assert signals == [(True, ZOOM), (False, None)]
        assert controller.state.phase is HysteresisPhase.IDLE


class TestSignalOrdering:
    """Signals alternate active/inactive for any sample sequence."""

    @pytest.mark.parametrize("seed", range(10))
    def test_random_samples(self, timers, seed):
        rng = random.Random(seed)
        emitted = []
        controller = HysteresisController(
            on_transition=lambda active, trigger: emitted.append(active),
            timers=timers,
            config=_config(),
            clock=timers.clock,
        )

        for _ in range(300):
            roll = rng.random()
            if roll < 0.05:
                controller.apply_config(
                    _config(capture_automation_enabled=rng.random() < 0.7)
                )
            app = rng.choice([ZOOM_APP, SLACK_APP, EDITOR_APP, None])
            controller.tick(app)
            timers.advance(rng.choice([0.5, 2, 5, 20]))

            assert emitted == [i % 2 == 0 for i in range(len(emitted))]
            assert controller.state.is_active == (bool(emitted) and emitted[-1])


class TestSchedulerTimers:
    """Tests for the APScheduler-backed timer factory."""

    def test_adds_and_cancels_date_job(self):
        scheduler = BackgroundScheduler()
        timers = SchedulerTimers(scheduler)

        handle = timers(30, lambda: None)
        assert scheduler.get_job(SchedulerTimers.JOB_ID) is not None

        handle.cancel()
        assert scheduler.get_job(SchedulerTimers.JOB_ID) is None

        # Cancelling twice is harmless
        handle.cancel()

    def test_timer_handle_requires_cancel(self):
        class NoCancel(TimerHandle):
            pass

        with pytest.raises(TypeError):
            NoCancel()
