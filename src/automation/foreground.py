"""
Foreground App Poller for Smart Audio

Asks the capture backend which application currently holds focus:
- GET /frontmost-app every 2 seconds
- Normalizes the response into a ForegroundApp
- Keeps the last known app when a poll fails

The poll runs as an APScheduler interval job so it shares a scheduler with
the pending-disable timer and the settings watcher.
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.automation.models import ForegroundApp

logger = logging.getLogger(__name__)

# Default poll interval (seconds)
DEFAULT_POLL_INTERVAL = 2.0

FRONTMOST_APP_PATH = "/frontmost-app"

POLL_JOB_ID = "foreground_poll"


class ForegroundQueryError(Exception):
    """Raised when the foreground-app query fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def normalize_foreground_app(data: dict[str, Any]) -> ForegroundApp:
    """
    Normalize a /frontmost-app response body.

    The name defaults to "Unknown". The bundle id is read from either
    "bundleId" or "bundle_id" and defaults to an empty string.
    """
    name = data.get("name")
    bundle_id = data.get("bundleId")
    if bundle_id is None:
        bundle_id = data.get("bundle_id")

    return ForegroundApp(
        display_name=str(name) if name is not None else "Unknown",
        bundle_id=str(bundle_id) if bundle_id is not None else "",
    )


class ForegroundPoller:
    """
    Polls the foreground-app service on a fixed interval.

    After every poll attempt, successful or not, the on_poll callback gets
    the latest known app (None until the first success).
    """

    def __init__(
        self,
        client: httpx.Client,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_poll: Callable[[ForegroundApp | None], None] | None = None,
    ):
        """
        Initialize the poller.

        Args:
            client: HTTP client with base_url pointing at the backend
            interval: Seconds between polls
            on_poll: Called after each poll with the latest known app
        """
        self.client = client
        self.interval = interval
        self.on_poll = on_poll

        self._latest: ForegroundApp | None = None
        self._last_error: Exception | None = None
        self._is_loading = True
        self._last_success: datetime | None = None

        self._scheduler: BaseScheduler | None = None
        self._running = False
        # Bumped on every start/stop so an in-flight poll can tell it is stale
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def latest(self) -> ForegroundApp | None:
        """Last successfully polled foreground app."""
        return self._latest

    @property
    def last_error(self) -> Exception | None:
        """Error from the most recent poll, cleared by the next success."""
        return self._last_error

    @property
    def is_loading(self) -> bool:
        """True until the first poll has settled."""
        return self._is_loading

    @property
    def last_success(self) -> datetime | None:
        return self._last_success

    def is_running(self) -> bool:
        return self._running

    def fetch(self) -> ForegroundApp:
        """
        Query the foreground app once without touching poller state.

        Raises:
            ForegroundQueryError: If the request fails or the body is unusable
        """
        try:
            response = self.client.get(FRONTMOST_APP_PATH)
        except httpx.RequestError as e:
            raise ForegroundQueryError(f"Failed to get frontmost app: {e}") from e

        if response.status_code != 200:
            raise ForegroundQueryError(
                f"Failed to get frontmost app: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ForegroundQueryError(f"Invalid frontmost app response: {e}") from e

        if not isinstance(data, dict):
            raise ForegroundQueryError("Invalid frontmost app response: expected an object")

        return normalize_foreground_app(data)

    def poll_once(self) -> ForegroundApp | None:
        """
        Run a single poll and publish its result.

        Returns:
            The polled app, or None if the poll failed or the poller was
            stopped while the request was in flight
        """
        with self._lock:
            generation = self._generation

        try:
            app = self.fetch()
            error = None
        except ForegroundQueryError as e:
            app = None
            error = e

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding foreground poll result from a stopped poller")
                return None

            self._is_loading = False
            if error is not None:
                self._last_error = error
            else:
                self._latest = app
                self._last_error = None
                self._last_success = datetime.now()

        if error is not None:
            logger.warning(str(error))
        else:
            logger.debug(f"Foreground app: {app.display_name} ({app.bundle_id or 'no bundle id'})")

        return app

    def start(self, scheduler: BaseScheduler) -> None:
        """
        Start polling on the given scheduler.

        The first poll runs immediately.

        Args:
            scheduler: APScheduler scheduler to add the poll job to
        """
        with self._lock:
            if self._running:
                logger.warning("Foreground poller already running")
                return
            self._running = True
            self._generation += 1
            self._scheduler = scheduler

        scheduler.add_job(
            self._poll_job,
            trigger=IntervalTrigger(seconds=self.interval),
            id=POLL_JOB_ID,
            name="Foreground App Poll",
            next_run_time=datetime.now(),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Foreground poller started (interval: {self.interval}s)")

    def stop(self) -> None:
        """
        Stop polling.

        A poll already in flight may finish, but its result is discarded.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False
            self._generation += 1
            scheduler, self._scheduler = self._scheduler, None

        if scheduler is not None:
            try:
                scheduler.remove_job(POLL_JOB_ID)
            except JobLookupError:
                pass

        logger.info("Foreground poller stopped")

    def _poll_job(self) -> None:
        """Scheduled job body."""
        with self._lock:
            generation = self._generation

        try:
            self.poll_once()
        except Exception as e:
            logger.error(f"Foreground poll error: {e}")

        with self._lock:
            if generation != self._generation or not self._running:
                return

        if self.on_poll is not None:
            try:
                self.on_poll(self._latest)
            except Exception as e:
                logger.error(f"Poll callback error: {e}")


if __name__ == "__main__":
    import fire

    from src.core.config import load_service_settings

    def capture(backend_url: str | None = None):
        """Query the current foreground app once."""
        settings = load_service_settings()
        with httpx.Client(
            base_url=backend_url or settings.backend_url,
            timeout=settings.request_timeout_seconds,
        ) as client:
            app = ForegroundPoller(client).fetch()
        return app.to_dict()

    fire.Fire({"capture": capture})
