"""
Audio Capture Client for Smart Audio

Turns audio capture on and off through the capture backend:
- POST /audio/enable
- POST /audio/disable

The local flag is updated optimistically before the request is sent and
rolled back if the request fails. Failed requests are not retried.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace

import httpx

logger = logging.getLogger(__name__)

ENABLE_PATH = "/audio/enable"
DISABLE_PATH = "/audio/disable"


class CaptureRequestError(Exception):
    """Raised when an enable/disable request fails."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class CaptureState:
    """Local view of the remote capture toggle."""

    is_enabled: bool = False
    is_pending: bool = False
    last_error: Exception | None = None

    def to_dict(self) -> dict:
        return {
            "is_enabled": self.is_enabled,
            "is_pending": self.is_pending,
            "last_error": str(self.last_error) if self.last_error else None,
        }


class CaptureClient:
    """
    Client for the capture enable/disable endpoints.

    enable(), disable() and toggle() block until the request settles and
    return the resulting state. Concurrent calls are not serialized: each
    one applies its own optimistic update and rollback.
    """

    def __init__(
        self,
        client: httpx.Client,
        initial_enabled: bool = False,
    ):
        """
        Initialize the capture client.

        Args:
            client: HTTP client with base_url pointing at the backend
            initial_enabled: Assumed state of the remote toggle
        """
        self.client = client
        self._state = CaptureState(is_enabled=initial_enabled)
        self._lock = threading.Lock()
        self._listeners: list[Callable[[CaptureState], None]] = []

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def is_enabled(self) -> bool:
        return self._state.is_enabled

    @property
    def is_pending(self) -> bool:
        return self._state.is_pending

    @property
    def last_error(self) -> Exception | None:
        return self._state.last_error

    def add_listener(self, callback: Callable[[CaptureState], None]) -> None:
        """
        Add a callback to be called on every state change.

        Args:
            callback: Function that receives the new CaptureState
        """
        self._listeners.append(callback)

    def enable(self) -> CaptureState:
        """Turn capture on."""
        with self._optimistic(True):
            self._post(ENABLE_PATH, "enable")
        return self._state

    def disable(self) -> CaptureState:
        """Turn capture off."""
        with self._optimistic(False):
            self._post(DISABLE_PATH, "disable")
        return self._state

    def toggle(self) -> CaptureState:
        """
        Flip capture based on the state seen at call time.

        The state is not re-checked while the request is in flight.
        """
        if self._state.is_enabled:
            return self.disable()
        return self.enable()

    @contextmanager
    def _optimistic(self, enabled: bool) -> Iterator[None]:
        """
        Apply the tentative state, then roll back on failure.

        The pending flag is cleared in every case.
        """
        self._set_state(is_enabled=enabled, is_pending=True, last_error=None)
        try:
            yield
        except CaptureRequestError as e:
            logger.warning(f"Rolling back capture state: {e}")
            self._set_state(is_enabled=not enabled, last_error=e)
        finally:
            self._set_state(is_pending=False)

    def _post(self, path: str, action: str) -> None:
        try:
            response = self.client.post(path)
        except httpx.RequestError as e:
            raise CaptureRequestError(f"Failed to {action} audio: {e}") from e

        if not response.is_success:
            raise CaptureRequestError(
                f"Failed to {action} audio: {response.status_code}",
                status_code=response.status_code,
            )

        logger.info(f"Audio capture {action}d")

    def _set_state(self, **changes) -> None:
        with self._lock:
            self._state = replace(self._state, **changes)
            state = self._state

        for callback in self._listeners:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Capture state listener error: {e}")
