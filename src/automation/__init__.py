"""
Capture Automation Module for Smart Audio

This module contains the trigger-driven audio automation:
- Automation config store shared between observers
- Foreground app polling
- Trigger app matching
- Hysteresis (debounced disable) state machine
- Bridge from state changes to the audio capture client
- Monitor that wires everything onto one scheduler
"""

from src.automation.bridge import AudioBridge
from src.automation.foreground import ForegroundPoller, ForegroundQueryError
from src.automation.hysteresis import HysteresisController
from src.automation.matcher import match_trigger
from src.automation.models import (
    DEFAULT_TRIGGER_APPS,
    AutomationConfig,
    DisableDelay,
    ForegroundApp,
    HysteresisPhase,
    HysteresisState,
    TriggerApp,
)
from src.automation.monitor import SmartAudioMonitor
from src.automation.store import ConfigStore, parse_trigger_list

__all__ = [
    "AudioBridge",
    "AutomationConfig",
    "ConfigStore",
    "DEFAULT_TRIGGER_APPS",
    "DisableDelay",
    "ForegroundApp",
    "ForegroundPoller",
    "ForegroundQueryError",
    "HysteresisController",
    "HysteresisPhase",
    "HysteresisState",
    "SmartAudioMonitor",
    "TriggerApp",
    "match_trigger",
    "parse_trigger_list",
]
