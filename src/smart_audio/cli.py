"""Command-line interface for Smart Audio."""

import logging
import signal
import sys
import time
from pathlib import Path

import fire
import httpx
from dotenv import load_dotenv

from src.audio.client import CaptureClient
from src.automation.foreground import ForegroundPoller, ForegroundQueryError
from src.automation.matcher import match_trigger
from src.automation.models import DisableDelay
from src.automation.store import ConfigStore, parse_trigger_list, trigger_apps_from_names
from src.core.config import load_service_settings

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"true", "1", "yes"}
_FALSE_WORDS = {"false", "0", "no"}


def _parse_bool(value: bool | int | str) -> bool:
    """Parse a flag value the way fire hands it over (bool, int or bare word)."""
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"Invalid boolean: {value}. Must be one of true, false, 1, 0, yes, no")


def _http_client(backend_url: str | None = None) -> httpx.Client:
    settings = load_service_settings()
    return httpx.Client(
        base_url=backend_url or settings.backend_url,
        timeout=settings.request_timeout_seconds,
    )


class SmartAudioCLI:
    """Smart Audio CLI commands."""

    def run(self, interval: float | None = None, log_level: str = "INFO") -> None:
        """Start the smart audio monitor and run until interrupted.

        Args:
            interval: Poll interval in seconds (default: 2.0)
            log_level: Console log level
        """
        from src.automation.monitor import SmartAudioMonitor
        from src.core.logging import setup_logging
        from src.core.paths import ensure_data_directories

        ensure_data_directories()
        setup_logging(console_level=log_level)

        settings = load_service_settings()
        if interval is not None:
            settings = settings.model_copy(update={"poll_interval_seconds": interval})

        monitor = SmartAudioMonitor(settings=settings)

        def signal_handler(sig, frame):
            monitor.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        logger.info(f"Starting smart audio monitor (interval: {settings.poll_interval_seconds}s)")
        monitor.start()

        try:
            while monitor.is_running():
                time.sleep(1)
        except KeyboardInterrupt:
            monitor.stop()

    def status(self, backend_url: str | None = None) -> dict:
        """Poll the foreground app once and report which trigger it matches.

        Args:
            backend_url: Override the backend URL
        """
        config = ConfigStore().load()
        with _http_client(backend_url) as client:
            try:
                app = ForegroundPoller(client).fetch()
            except ForegroundQueryError as e:
                return {"error": str(e), "status_code": e.status_code}

        matched = match_trigger(app, config.enabled_triggers())
        return {
            "foreground": app.to_dict(),
            "automation_enabled": config.capture_automation_enabled,
            "matched_trigger": matched.display_name if matched else None,
        }

    def config(self) -> dict:
        """Show the persisted automation config."""
        config = ConfigStore().load()
        return {
            "enabled": config.capture_automation_enabled,
            "disable_delay": config.disable_delay.value,
            "trigger_apps": [app.to_dict() for app in config.trigger_apps],
        }

    def set_enabled(self, enabled: bool | str) -> dict:
        """Turn capture automation on or off.

        Args:
            enabled: true/false (also yes/no, 1/0)
        """
        config = ConfigStore().update(capture_automation_enabled=_parse_bool(enabled))
        return config.to_record()

    def set_delay(self, delay: str) -> dict:
        """Set how long capture stays on after a trigger app loses focus.

        Args:
            delay: One of 30s, 1m, 5m, never
        """
        try:
            disable_delay = DisableDelay(str(delay))
        except ValueError:
            valid = ", ".join(d.value for d in DisableDelay)
            raise ValueError(f"Invalid disable delay: {delay}. Must be one of {valid}") from None

        config = ConfigStore().update(disable_delay=disable_delay)
        return config.to_record()

    def set_triggers(self, apps: str | list | tuple) -> dict:
        """Set the enabled trigger apps.

        Args:
            apps: Comma- or newline-separated app names
        """
        names = parse_trigger_list(apps if isinstance(apps, str) else ",".join(map(str, apps)))
        config = ConfigStore().update(trigger_apps=trigger_apps_from_names(names))
        return config.to_record()

    def enable_audio(self, backend_url: str | None = None) -> dict:
        """Turn audio capture on now."""
        with _http_client(backend_url) as client:
            return CaptureClient(client).enable().to_dict()

    def disable_audio(self, backend_url: str | None = None) -> dict:
        """Turn audio capture off now."""
        with _http_client(backend_url) as client:
            return CaptureClient(client, initial_enabled=True).disable().to_dict()


def main() -> None:
    """Main entry point for the Smart Audio CLI."""
    fire.Fire(SmartAudioCLI)


if __name__ == "__main__":
    main()
