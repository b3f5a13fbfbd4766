"""
Settings persistence: remember the last crop configuration.

The configuration is stored as JSON in the user's config directory
(provided by ``config.config_dir()``).  A missing, corrupt or invalid
file falls back to the defaults.  This module is Qt-free.

The on-disk format uses a versioned envelope::

    {"version": 1, "settings": {"crop_width": 1080, "crop_height": 1080, ...}}
"""

import json
import logging
from dataclasses import asdict, fields
from pathlib import Path

from pan_crop_tool.config import CropConfig, config_dir

logger = logging.getLogger(__name__)

_SETTINGS_FILENAME = "settings.json"
_FORMAT_VERSION = 1

_FIELD_NAMES = frozenset(f.name for f in fields(CropConfig))


def _settings_path() -> Path:
    """Return the full path to settings.json."""
    return config_dir() / _SETTINGS_FILENAME


def config_from_dict(data: object) -> CropConfig:
    """Build a ``CropConfig`` from a settings dict; unknown keys are ignored.

    Raises ValueError if the data is not a dict or fails validation.
    """
    if not isinstance(data, dict):
        raise ValueError("Settings data must be a dict")
    known = {k: v for k, v in data.items() if k in _FIELD_NAMES}
    return CropConfig(**known)


def load_settings() -> CropConfig:
    """
    Load the last crop configuration from settings.json.

    Returns the defaults if the file is missing, unreadable, lacks the
    version envelope or fails validation.
    """
    path = _settings_path()

    if not path.exists():
        logger.debug("No settings found at %s — using defaults", path)
        return CropConfig()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read settings.json (%s) — using defaults", exc)
        return CropConfig()

    if not isinstance(raw, dict) or raw.get("version") != _FORMAT_VERSION or "settings" not in raw:
        logger.warning("settings.json version mismatch or invalid format — using defaults")
        return CropConfig()

    try:
        config = config_from_dict(raw["settings"])
    except (TypeError, ValueError) as exc:
        logger.warning("settings.json validation failed (%s) — using defaults", exc)
        return CropConfig()

    logger.info("Loaded settings from %s", path)
    return config


def save_settings(config: CropConfig) -> None:
    """Write *config* to settings.json in a versioned envelope."""
    envelope = {"version": _FORMAT_VERSION, "settings": asdict(config)}
    path = _settings_path()
    try:
        path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Saved settings to %s", path)
    except OSError as exc:
        logger.error("Could not write settings to %s: %s", path, exc)
