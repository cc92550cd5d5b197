"""
Audio Capture Module for Smart Audio

Client for the capture backend's audio enable/disable endpoints.
"""

from src.audio.client import CaptureClient, CaptureRequestError, CaptureState

__all__ = [
    "CaptureClient",
    "CaptureRequestError",
    "CaptureState",
]
