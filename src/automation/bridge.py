"""Route hysteresis signals to the audio capture client."""

import logging
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor

from src.audio.client import CaptureClient, CaptureState
from src.automation.models import TriggerApp
from src.core.logging import log_exception

logger = logging.getLogger(__name__)

AudioStateCallback = Callable[[bool], None]


class AudioBridge:
    """
    Holds the single audio-state callback and invokes it for every signal.

    By default the callback sends enable/disable to the capture client on a
    single worker thread: the controller never waits for the request, and
    requests go out in signal order.
    """

    def __init__(
        self,
        capture_client: CaptureClient | None = None,
        executor: Executor | None = None,
    ):
        self.capture_client = capture_client
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="capture"
        )
        self._callback: AudioStateCallback | None = (
            self._dispatch_capture if capture_client is not None else None
        )

    def on_audio_state_change(self, callback: AudioStateCallback | None) -> None:
        """
        Register the audio-state callback, replacing any previous one.

        Args:
            callback: Called with True when capture should start, False when
                it should stop; None to unregister
        """
        self._callback = callback

    def handle_transition(self, active: bool, trigger: TriggerApp | None = None) -> None:
        """Transition callback for HysteresisController."""
        extra = {"active": active, "trigger": trigger.display_name if trigger else None}
        logger.info(f"Capture should be {'active' if active else 'inactive'}", extra=extra)

        callback = self._callback
        if callback is None:
            return

        try:
            callback(active)
        except Exception as e:
            log_exception(logger, "Audio state callback failed", e, **extra)

    def close(self, wait: bool = True) -> None:
        """Shut down the worker thread if the bridge created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def _dispatch_capture(self, active: bool) -> None:
        assert self.capture_client is not None
        action = self.capture_client.enable if active else self.capture_client.disable
        future = self._executor.submit(action)
        future.add_done_callback(self._log_result)

    @staticmethod
    def _log_result(future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Capture request crashed: {exc}")
            return

        state: CaptureState = future.result()
        if state.last_error is not None:
            logger.warning(f"Capture request failed: {state.last_error}")
