"""
Tests for runtime service settings.
"""

import logging

import pytest
from pydantic import ValidationError

from src.core.config import (
    DEFAULT_BACKEND_URL,
    DEFAULT_POLL_INTERVAL_SECONDS,
    ServiceSettings,
    load_service_settings,
)


class TestServiceSettings:
    """Tests for the ServiceSettings model."""

    def test_defaults(self):
        settings = ServiceSettings()
        assert settings.backend_url == DEFAULT_BACKEND_URL
        assert settings.poll_interval_seconds == DEFAULT_POLL_INTERVAL_SECONDS == 2.0

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValidationError):
            ServiceSettings(poll_interval_seconds=0)


class TestLoadServiceSettings:
    """Tests for reading settings from the environment."""

    def test_reads_environment(self):
        settings = load_service_settings(
            {
                "SMART_AUDIO_BACKEND_URL": "http://127.0.0.1:9999",
                "SMART_AUDIO_POLL_INTERVAL": "0.5",
            }
        )
        assert settings.backend_url == "http://127.0.0.1:9999"
        assert settings.poll_interval_seconds == 0.5

    def test_ignores_unrelated_and_empty_variables(self):
        settings = load_service_settings({"SMART_AUDIO_BACKEND_URL": "", "HOME": "/tmp"})
        assert settings == ServiceSettings()

    def test_invalid_values_fall_back_to_defaults(self, caplog):
        with caplog.at_level(logging.WARNING, logger="src.core.config"):
            settings = load_service_settings({"SMART_AUDIO_POLL_INTERVAL": "soon"})

        assert settings == ServiceSettings()
        assert "using defaults" in caplog.text
