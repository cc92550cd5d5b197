"""
Runtime service settings for Smart Audio.

These are process-level settings (where the backend lives, how often to
poll). The user-editable automation settings live in the shared settings
file and are handled by src.automation.store.
"""

import logging
import os

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_URL = "http://localhost:3030"
DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 5.0
DEFAULT_CONFIG_WATCH_INTERVAL_SECONDS = 1.0

# Environment variable -> settings field
ENV_VARS: dict[str, str] = {
    "SMART_AUDIO_BACKEND_URL": "backend_url",
    "SMART_AUDIO_POLL_INTERVAL": "poll_interval_seconds",
    "SMART_AUDIO_REQUEST_TIMEOUT": "request_timeout_seconds",
    "SMART_AUDIO_CONFIG_WATCH_INTERVAL": "config_watch_interval_seconds",
}


class ServiceSettings(BaseModel):
    """Settings for talking to the capture backend."""

    backend_url: str = Field(
        default=DEFAULT_BACKEND_URL, description="Base URL of the capture backend"
    )
    poll_interval_seconds: float = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        gt=0,
        description="Seconds between foreground-app polls",
    )
    request_timeout_seconds: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT_SECONDS,
        gt=0,
        description="Timeout for each HTTP request",
    )
    config_watch_interval_seconds: float = Field(
        default=DEFAULT_CONFIG_WATCH_INTERVAL_SECONDS,
        gt=0,
        description="Seconds between checks of the shared settings file",
    )


def load_service_settings(environ: dict[str, str] | None = None) -> ServiceSettings:
    """
    Build service settings from environment variables.

    Invalid values are logged and replaced by defaults rather than raised,
    so a typo in the environment never stops the monitor from starting.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        ServiceSettings instance
    """
    if environ is None:
        environ = dict(os.environ)

    values = {field: environ[var] for var, field in ENV_VARS.items() if environ.get(var)}

    try:
        return ServiceSettings(**values)
    except ValidationError as e:
        logger.warning(f"Invalid service settings in environment, using defaults: {e}")
        return ServiceSettings()
