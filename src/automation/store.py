"""
Automation Config Store for Smart Audio

Persists the automation settings (global switch, trigger apps, disable
delay) as one record in the shared settings file, and notifies observers
when another process or window rewrites that record.

The settings file is a JSON object of key -> record, so other features can
keep their own keys alongside ours.
"""

import hashlib
import json
import logging
import os
import re
import tempfile
import threading
from collections.abc import Callable, Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

from apscheduler.job import Job
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from src.automation.models import (
    DEFAULT_DISABLE_DELAY,
    DEFAULT_TRIGGER_APPS,
    AutomationConfig,
    DisableDelay,
    TriggerApp,
)
from src.core.paths import SETTINGS_PATH

logger = logging.getLogger(__name__)

STORAGE_KEY = "screenpipe-smart-audio"

_LIST_SEPARATOR_RE = re.compile(r"\r?\n|,")

ChangeCallback = Callable[[AutomationConfig], None]


class StoredAutomationRecord(BaseModel):
    """
    The persisted record as written by any observer.

    Each field is validated on its own: an unusable value becomes None and
    the loader substitutes the default for just that field.
    """

    model_config = ConfigDict(extra="ignore")

    enabled: bool | None = None
    triggerApps: list[str] | None = None
    disableDelay: DisableDelay | None = None

    @field_validator("enabled", mode="before")
    @classmethod
    def _only_booleans(cls, value: Any) -> bool | None:
        return value if isinstance(value, bool) else None

    @field_validator("triggerApps", mode="before")
    @classmethod
    def _only_string_lists(cls, value: Any) -> list[str] | None:
        if not isinstance(value, list):
            return None
        return [name for name in value if isinstance(name, str)]

    @field_validator("disableDelay", mode="before")
    @classmethod
    def _known_delays(cls, value: Any) -> str | None:
        if isinstance(value, str) and value in {delay.value for delay in DisableDelay}:
            return value
        return None


def parse_trigger_list(text: str) -> list[str]:
    """
    Split free-text trigger input into names.

    Entries are separated by newlines or commas; surrounding whitespace is
    trimmed and empty entries are dropped.
    """
    return [entry.strip() for entry in _LIST_SEPARATOR_RE.split(text) if entry.strip()]


def trigger_apps_from_names(names: Iterable[str]) -> tuple[TriggerApp, ...]:
    """
    Rebuild the trigger list from the names of enabled triggers.

    Built-in defaults are always present (enabled only if named). Names that
    are not exactly a default's display name become custom triggers.
    """
    selected = list(names)
    selected_set = set(selected)
    default_names = {app.display_name for app in DEFAULT_TRIGGER_APPS}

    apps = [app.with_enabled(app.display_name in selected_set) for app in DEFAULT_TRIGGER_APPS]
    seen_ids = {app.id for app in apps}

    for name in selected:
        if name in default_names or not name.strip():
            continue
        custom = TriggerApp.from_name(name)
        if custom.id in seen_ids:
            continue
        seen_ids.add(custom.id)
        apps.append(custom)

    return tuple(apps)


def config_from_record(record: StoredAutomationRecord) -> AutomationConfig:
    """Convert a validated record to an AutomationConfig, defaulting missing fields."""
    return AutomationConfig(
        capture_automation_enabled=record.enabled if record.enabled is not None else True,
        trigger_apps=(
            trigger_apps_from_names(record.triggerApps)
            if record.triggerApps is not None
            else DEFAULT_TRIGGER_APPS
        ),
        disable_delay=record.disableDelay or DEFAULT_DISABLE_DELAY,
    )


class ConfigStore:
    """
    File-backed store for the automation config.

    Several ConfigStore instances (in one process or many) may share a file.
    Each one detects rewrites by the others through check_for_changes(),
    which is usually driven by watch().
    """

    def __init__(self, path: Path | str | None = None, key: str = STORAGE_KEY):
        """
        Initialize the store.

        Args:
            path: Settings file path (uses the shared settings file if None)
            key: Key of the automation record inside the settings file
        """
        self.path = Path(path) if path else SETTINGS_PATH
        self.key = key
        self._callbacks: list[ChangeCallback] = []
        self._lock = threading.Lock()
        self._signature = self._file_signature()

    def load(self) -> AutomationConfig:
        """
        Load the automation config.

        Never raises: a missing file, unreadable JSON or a malformed record
        yields the built-in defaults.
        """
        raw = self._read_document().get(self.key)
        if raw is None:
            return AutomationConfig()

        if isinstance(raw, str):
            # Records written as a serialized string (localStorage style)
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"Stored automation record under '{self.key}' is not JSON")
                return AutomationConfig()

        if not isinstance(raw, dict):
            logger.warning(f"Stored automation record under '{self.key}' is not an object")
            return AutomationConfig()

        try:
            record = StoredAutomationRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Invalid automation record, using defaults: {e}")
            return AutomationConfig()

        return config_from_record(record)

    def save(self, config: AutomationConfig) -> None:
        """
        Persist the config.

        Returns after the file has been replaced. Other keys in the settings
        file are preserved. Observers of this instance are not notified of
        its own writes.
        """
        with self._lock:
            document = self._read_document()
            document[self.key] = config.to_record()

            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2)
                os.replace(tmp_name, self.path)
            except OSError:
                Path(tmp_name).unlink(missing_ok=True)
                raise

            self._signature = self._file_signature()

        logger.debug(f"Saved automation config to {self.path}")

    def update(self, **changes: Any) -> AutomationConfig:
        """
        Read-modify-write helper.

        Args:
            **changes: AutomationConfig fields to replace

        Returns:
            The saved config
        """
        config = replace(self.load(), **changes)
        self.save(config)
        return config

    def on_external_change(self, callback: ChangeCallback) -> Callable[[], None]:
        """
        Register a callback for changes written by other observers.

        Args:
            callback: Receives the freshly reloaded config

        Returns:
            A function that unregisters the callback
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def check_for_changes(self) -> bool:
        """
        Reload and notify observers if the settings file changed on disk.

        Returns:
            True if a change was detected
        """
        with self._lock:
            signature = self._file_signature()
            if signature == self._signature:
                return False
            self._signature = signature

        config = self.load()
        logger.info(f"Automation config changed externally ({self.path})")

        for callback in list(self._callbacks):
            try:
                callback(config)
            except Exception as e:
                logger.error(f"Config change callback error: {e}")

        return True

    def watch(self, scheduler: BaseScheduler, interval: float = 1.0) -> Job:
        """
        Check for external changes periodically on the given scheduler.

        Args:
            scheduler: APScheduler scheduler to run the check on
            interval: Seconds between checks

        Returns:
            The scheduled job
        """
        return scheduler.add_job(
            self.check_for_changes,
            trigger=IntervalTrigger(seconds=interval),
            id=f"config_watch:{self.key}",
            name="Automation Config Watch",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def _read_document(self) -> dict[str, Any]:
        """Read the whole settings file, treating anything unusable as empty."""
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read settings file {self.path}: {e}")
            return {}

        if not isinstance(document, dict):
            logger.warning(f"Settings file {self.path} must contain a JSON object")
            return {}

        return document

    def _file_signature(self) -> tuple[int, int, str] | None:
        # Content digest catches same-size rewrites within one mtime tick
        try:
            stat = self.path.stat()
            digest = hashlib.sha256(self.path.read_bytes()).hexdigest()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size, digest
