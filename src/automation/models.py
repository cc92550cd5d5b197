"""
Data model for trigger-driven audio automation.

Trigger apps, the persisted automation config, foreground-app samples
and the hysteresis state machine's states.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

_WHITESPACE_RE = re.compile(r"\s+")


class DisableDelay(str, Enum):
    """How long to wait after losing focus before turning capture off."""

    THIRTY_SECONDS = "30s"
    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    NEVER = "never"

    @property
    def seconds(self) -> float | None:
        """Delay in seconds, or None when capture should never turn off."""
        return _DELAY_SECONDS[self]


_DELAY_SECONDS: dict[DisableDelay, float | None] = {
    DisableDelay.THIRTY_SECONDS: 30.0,
    DisableDelay.ONE_MINUTE: 60.0,
    DisableDelay.FIVE_MINUTES: 300.0,
    DisableDelay.NEVER: None,
}

DEFAULT_DISABLE_DELAY = DisableDelay.THIRTY_SECONDS


@dataclass(frozen=True)
class TriggerApp:
    """An application whose focus should turn audio capture on."""

    id: str
    display_name: str
    bundle_id: str
    enabled: bool = True

    @classmethod
    def from_name(cls, name: str) -> "TriggerApp":
        """
        Build a custom trigger from a user-entered name.

        The id and bundle id are synthesized from the lower-cased name with
        whitespace runs collapsed ("Microsoft Teams" -> "custom-microsoft-teams",
        "microsoft.teams").
        """
        lowered = name.strip().lower()
        return cls(
            id=f"custom-{_WHITESPACE_RE.sub('-', lowered)}",
            display_name=name,
            bundle_id=_WHITESPACE_RE.sub(".", lowered),
            enabled=True,
        )

    def with_enabled(self, enabled: bool) -> "TriggerApp":
        return replace(self, enabled=enabled)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "display_name": self.display_name,
            "bundle_id": self.bundle_id,
            "enabled": self.enabled,
        }


DEFAULT_TRIGGER_APPS: tuple[TriggerApp, ...] = (
    TriggerApp(id="zoom", display_name="Zoom", bundle_id="us.zoom.xos"),
    TriggerApp(id="meet", display_name="Google Meet", bundle_id="com.google.Chrome"),
    TriggerApp(id="slack", display_name="Slack", bundle_id="com.tinyspeck.slackmacgap"),
)


@dataclass(frozen=True)
class AutomationConfig:
    """User-editable automation settings."""

    capture_automation_enabled: bool = True
    trigger_apps: tuple[TriggerApp, ...] = field(default=DEFAULT_TRIGGER_APPS)
    disable_delay: DisableDelay = DEFAULT_DISABLE_DELAY

    def enabled_triggers(self) -> list[TriggerApp]:
        """
        Triggers the matcher should consider, in configuration order.

        Empty when automation is globally disabled.
        """
        if not self.capture_automation_enabled:
            return []
        return [app for app in self.trigger_apps if app.enabled]

    def to_record(self) -> dict:
        """Serialize to the persisted record shape (enabled names only)."""
        return {
            "enabled": self.capture_automation_enabled,
            "triggerApps": [app.display_name for app in self.trigger_apps if app.enabled],
            "disableDelay": self.disable_delay.value,
        }


@dataclass(frozen=True)
class ForegroundApp:
    """The application currently holding input focus."""

    display_name: str
    bundle_id: str = ""

    def to_dict(self) -> dict:
        return {"name": self.display_name, "bundle_id": self.bundle_id}


class HysteresisPhase(str, Enum):
    """Phase of the capture automation state machine."""

    IDLE = "idle"
    TRIGGERED = "triggered"
    PENDING_DISABLE = "pending_disable"


@dataclass(frozen=True)
class HysteresisState:
    """Snapshot of the state machine: phase, triggering app and disable deadline."""

    phase: HysteresisPhase = HysteresisPhase.IDLE
    triggered_by: TriggerApp | None = None
    deadline: datetime | None = None

    @property
    def is_active(self) -> bool:
        """True while a capture session is in progress."""
        return self.phase is not HysteresisPhase.IDLE

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "triggered_by": self.triggered_by.display_name if self.triggered_by else None,
            "deadline": self.deadline.isoformat() if self.deadline else None,
        }
