"""
Data Directory Structure Management for Smart Audio

This module defines and manages the data directory structure for Smart Audio.
All paths are relative to the DATA_ROOT (~/SmartAudio by default).

Directory structure:
    SmartAudio/
    ├── settings.json              # Key-value settings shared by all observers
    └── logs/                      # Rotating text and JSON-lines logs
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# Allow override via environment variable for testing
_data_root_override = os.environ.get("SMART_AUDIO_DATA_ROOT")
DATA_ROOT: Path = (
    Path(_data_root_override) if _data_root_override else Path.home() / "SmartAudio"
)

# Primary directories
LOG_DIR: Path = DATA_ROOT / "logs"

# Settings file path
SETTINGS_PATH: Path = DATA_ROOT / "settings.json"

# All directories that should exist
_REQUIRED_DIRS: tuple[Path, ...] = (
    DATA_ROOT,
    LOG_DIR,
)


def ensure_data_directories() -> dict[str, bool]:
    """
    Ensure all required data directories exist.

    This function is idempotent and safe to call multiple times.

    Returns:
        Dictionary mapping directory names to whether they were created (True)
        or already existed (False).
    """
    results: dict[str, bool] = {}

    for dir_path in _REQUIRED_DIRS:
        try:
            created = not dir_path.exists()
            dir_path.mkdir(parents=True, exist_ok=True)
            name = str(dir_path.relative_to(DATA_ROOT)) if dir_path != DATA_ROOT else "."
            results[name] = created
            if created:
                logger.info(f"Created directory: {dir_path}")
        except OSError as e:
            logger.error(f"Failed to create directory {dir_path}: {e}")
            raise

    return results


def get_settings_path() -> Path:
    """Get the path of the shared settings file."""
    return SETTINGS_PATH


if __name__ == "__main__":
    import fire

    def init():
        """Initialize data directories."""
        results = ensure_data_directories()
        return {"data_root": str(DATA_ROOT), "created": results}

    def info():
        """Show path information."""
        return {
            "data_root": str(DATA_ROOT),
            "settings_path": str(SETTINGS_PATH),
            "log_dir": str(LOG_DIR),
        }

    fire.Fire({"init": init, "info": info})
