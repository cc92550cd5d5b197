"""Match the foreground app against the enabled trigger apps."""

from collections.abc import Iterable

from src.automation.models import ForegroundApp, TriggerApp


def matches(app: ForegroundApp, trigger: TriggerApp) -> bool:
    """
    Check a single trigger.

    Bundle identifiers must be equal; otherwise the app's name must contain
    the trigger's name, ignoring case. An app with no bundle id is matched
    by name only.
    """
    if app.bundle_id and app.bundle_id == trigger.bundle_id:
        return True
    return trigger.display_name.lower() in app.display_name.lower()


def match_trigger(
    app: ForegroundApp | None, enabled_triggers: Iterable[TriggerApp]
) -> TriggerApp | None:
    """
    Find the first trigger matching the foreground app.

    Args:
        app: Latest foreground app, or None if none is known yet
        enabled_triggers: Triggers to consider, in configuration order.
            Pass an empty collection when automation is turned off.

    Returns:
        The first matching trigger, or None
    """
    if app is None:
        return None

    for trigger in enabled_triggers:
        if matches(app, trigger):
            return trigger

    return None
