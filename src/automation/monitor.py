"""
Smart Audio Monitor

Coordinates trigger-driven audio capture:
- Foreground-app polling every 2 seconds
- Trigger matching and the hysteresis state machine
- Audio capture enable/disable through the bridge
- Reloading the automation config when another observer edits it

All timed work (poll, pending disable, settings watch) runs on one
APScheduler BackgroundScheduler owned by the monitor.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import httpx
from apscheduler.schedulers.background import BackgroundScheduler

from src.audio.client import CaptureClient
from src.automation.bridge import AudioBridge, AudioStateCallback
from src.automation.foreground import ForegroundPoller
from src.automation.hysteresis import HysteresisController, SchedulerTimers
from src.automation.models import AutomationConfig, ForegroundApp, HysteresisState, TriggerApp
from src.automation.store import ConfigStore
from src.core.config import ServiceSettings, load_service_settings

logger = logging.getLogger(__name__)


@dataclass
class MonitorStatus:
    """Point-in-time view of the monitor."""

    running: bool
    is_loading: bool
    foreground: ForegroundApp | None
    error: Exception | None
    state: HysteresisState
    capture_enabled: bool
    capture_pending: bool
    capture_error: Exception | None
    start_time: datetime | None = None

    @property
    def is_triggered(self) -> bool:
        return self.state.is_active

    @property
    def triggered_by(self) -> str | None:
        return self.state.triggered_by.display_name if self.state.triggered_by else None

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "running": self.running,
            "is_loading": self.is_loading,
            "foreground": self.foreground.to_dict() if self.foreground else None,
            "error": str(self.error) if self.error else None,
            "state": self.state.to_dict(),
            "is_triggered": self.is_triggered,
            "triggered_by": self.triggered_by,
            "capture": {
                "is_enabled": self.capture_enabled,
                "is_pending": self.capture_pending,
                "last_error": str(self.capture_error) if self.capture_error else None,
            },
            "start_time": self.start_time.isoformat() if self.start_time else None,
        }


class SmartAudioMonitor:
    """
    Runs the capture automation until stopped.

    Usage:
        monitor = SmartAudioMonitor()
        monitor.start()
        ...
        monitor.stop()
    """

    def __init__(
        self,
        settings: ServiceSettings | None = None,
        store: ConfigStore | None = None,
        http_client: httpx.Client | None = None,
        scheduler: BackgroundScheduler | None = None,
    ):
        """
        Initialize the monitor.

        Args:
            settings: Service settings (read from the environment if None)
            store: Automation config store (shared settings file if None)
            http_client: HTTP client for the backend (created if None)
            scheduler: Scheduler for all timed work (created if None)
        """
        self.settings = settings or load_service_settings()
        self.store = store or ConfigStore()

        self._owns_http = http_client is None
        self.http = http_client or httpx.Client(
            base_url=self.settings.backend_url,
            timeout=self.settings.request_timeout_seconds,
        )
        self.scheduler = scheduler or BackgroundScheduler()

        self.capture = CaptureClient(self.http)
        self.bridge = AudioBridge(self.capture)
        self.controller = HysteresisController(
            on_transition=self.bridge.handle_transition,
            timers=SchedulerTimers(self.scheduler),
            config=self.store.load(),
        )
        self.poller = ForegroundPoller(
            self.http,
            interval=self.settings.poll_interval_seconds,
            on_poll=self._on_poll,
        )

        self._running = False
        self._start_time: datetime | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._lock = threading.Lock()

    @property
    def config(self) -> AutomationConfig:
        return self.controller.config

    def is_running(self) -> bool:
        return self._running

    def on_audio_state_change(self, callback: AudioStateCallback) -> None:
        """
        Replace the bridge callback.

        By default signals go straight to the capture client; a custom
        callback takes over that job.
        """
        self.bridge.on_audio_state_change(callback)

    def start(self) -> None:
        """Start polling, watching the settings file and the scheduler."""
        with self._lock:
            if self._running:
                logger.warning("Smart audio monitor already running")
                return
            self._running = True
            self._start_time = datetime.now()

        self.controller.apply_config(self.store.load())
        self._unsubscribe = self.store.on_external_change(self._on_config_change)
        self.store.watch(self.scheduler, interval=self.settings.config_watch_interval_seconds)
        self.poller.start(self.scheduler)

        if not self.scheduler.running:
            self.scheduler.start()

        logger.info(f"Smart audio monitor started (backend: {self.settings.backend_url})")

    def stop(self) -> None:
        """
        Stop the monitor.

        Cancels polling and any pending disable. Requests already in flight
        may complete but their results are ignored. A stopped monitor cannot
        be started again.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False

        logger.info("Stopping smart audio monitor...")

        self.poller.stop()
        self.controller.reset()

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        self.bridge.close(wait=True)
        if self._owns_http:
            self.http.close()

        logger.info("Smart audio monitor stopped")

    def set_trigger_apps(self, apps: list[TriggerApp]) -> AutomationConfig:
        """
        Replace the trigger list, persist it and use it from the next poll.

        Args:
            apps: Full trigger list; only enabled entries are persisted

        Returns:
            The saved config
        """
        config = self.store.update(trigger_apps=tuple(apps))
        self.controller.apply_config(config)
        return config

    def get_status(self) -> MonitorStatus:
        """Get the current monitor status."""
        capture = self.capture.state
        return MonitorStatus(
            running=self._running,
            is_loading=self.poller.is_loading,
            foreground=self.poller.latest,
            error=self.poller.last_error,
            state=self.controller.state,
            capture_enabled=capture.is_enabled,
            capture_pending=capture.is_pending,
            capture_error=capture.last_error,
            start_time=self._start_time,
        )

    def _on_poll(self, app: ForegroundApp | None) -> None:
        # Held across the tick so stop() cannot reset the controller mid-tick
        with self._lock:
            if not self._running:
                return
            self.controller.tick(app)

    def _on_config_change(self, config: AutomationConfig) -> None:
        with self._lock:
            if not self._running:
                return
            self.controller.apply_config(config)
