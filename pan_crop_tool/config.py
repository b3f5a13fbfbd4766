"""
Application constants and crop configuration.

Module-level constants control zoom limits, supported output formats and
preview colours.  ``CropConfig`` is the caller-supplied configuration of a
crop session; it validates itself on construction so a session is never
built around a degenerate crop target.

The ``config_dir()`` helper returns the platform-appropriate config
directory and is shared by all persistence modules (settings).
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from PIL import ImageColor

from pan_crop_tool.models import CropTarget

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "pan-crop-tool"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# =============================================================================
# ZOOM
# =============================================================================
# 100 means the image exactly covers the crop box
SCALE_MIN = 10
SCALE_DEFAULT = 100
SCALE_MAX = 400

# =============================================================================
# OUTPUT
# =============================================================================
# MIME type -> Pillow format name
CROP_TYPES = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/webp": "WEBP",
    "image/bmp": "BMP",
    "image/gif": "GIF",
}
CROP_TYPE_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/gif": ".gif",
}
CROP_TYPE_DEFAULT = "image/jpeg"
CROP_QUALITY_DEFAULT = 1.0
CROP_FILE_NAME_DEFAULT = "image.jpg"
CROP_IMAGE_BACKGROUND_DEFAULT = "white"

# PNG compression level (0-9, 9 = maximum compression)
PNG_COMPRESS_LEVEL = 9

# Default crop target for a fresh install
CROP_WIDTH_DEFAULT = 1080
CROP_HEIGHT_DEFAULT = 1080

# =============================================================================
# PREVIEW
# =============================================================================
BACKGROUND_COLOR_DEFAULT = "#000"
OVERLAY_COLOR_DEFAULT = "#00000080"  # 50% black, CSS #rrggbbaa order

# Keyboard pan amounts (logical pixels)
NUDGE_SMALL = 1
NUDGE_LARGE = 10

# Extensions offered in the open dialog
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tiff", ".tif", ".webp", ".psd"}


# =============================================================================
# Crop configuration
# =============================================================================
def _is_color(value) -> bool:
    if not isinstance(value, str):
        return False
    try:
        ImageColor.getrgb(value)
    except ValueError:
        return False
    return True


def validate_config(config: "CropConfig") -> list[str]:
    """
    Validate a crop configuration.

    Returns a list of error strings (empty means valid).
    """
    errors: list[str] = []

    for key in ("crop_width", "crop_height"):
        val = getattr(config, key)
        if isinstance(val, bool) or not isinstance(val, int) or val <= 0:
            errors.append(f"{key} must be a positive integer, got {val!r}")

    if isinstance(config.scale, bool) or not isinstance(config.scale, (int, float)):
        errors.append(f"scale must be a number, got {config.scale!r}")
    elif config.scale < SCALE_MIN:
        errors.append(f"scale must be >= {SCALE_MIN}, got {config.scale!r}")

    if config.crop_type not in CROP_TYPES:
        errors.append(
            f"crop_type must be one of {', '.join(CROP_TYPES)}, got {config.crop_type!r}"
        )

    quality = config.crop_quality
    if isinstance(quality, bool) or not isinstance(quality, (int, float)) or not 0 <= quality <= 1:
        errors.append(f"crop_quality must be between 0 and 1, got {quality!r}")

    if not isinstance(config.crop_file_name, str) or not config.crop_file_name.strip():
        errors.append("crop_file_name must be a non-empty string")

    for key in ("crop_image_background", "background_color", "overlay_color"):
        val = getattr(config, key)
        if not _is_color(val):
            errors.append(f"{key} is not a valid colour: {val!r}")

    return errors


@dataclass(frozen=True)
class CropConfig:
    """Caller-supplied crop settings, validated at construction."""
    crop_width: int = CROP_WIDTH_DEFAULT
    crop_height: int = CROP_HEIGHT_DEFAULT
    scale: float = SCALE_DEFAULT
    crop_type: str = CROP_TYPE_DEFAULT
    crop_quality: float = CROP_QUALITY_DEFAULT
    crop_file_name: str = CROP_FILE_NAME_DEFAULT
    crop_image_background: str = CROP_IMAGE_BACKGROUND_DEFAULT
    background_color: str = BACKGROUND_COLOR_DEFAULT
    overlay_color: str = OVERLAY_COLOR_DEFAULT

    def __post_init__(self):
        errors = validate_config(self)
        if errors:
            raise ValueError("Invalid crop configuration:\n  " + "\n  ".join(errors))

    @property
    def crop_target(self) -> CropTarget:
        return CropTarget(self.crop_width, self.crop_height)
