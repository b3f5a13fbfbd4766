"""Tests for crop configuration validation and settings persistence."""

import json
from dataclasses import replace

import pytest

from pan_crop_tool.config import SCALE_MIN, CropConfig, validate_config
from pan_crop_tool.models import CropTarget
from pan_crop_tool.settings import config_from_dict, load_settings, save_settings


# =============================================================================
# CropConfig
# =============================================================================
def test_defaults_are_valid():
    config = CropConfig()

    assert validate_config(config) == []
    assert config.crop_type == "image/jpeg"
    assert config.crop_quality == 1.0
    assert config.crop_file_name == "image.jpg"
    assert config.crop_image_background == "white"
    assert config.scale == 100


def test_crop_target_property():
    config = CropConfig(crop_width=1920, crop_height=1080)
    assert config.crop_target == CropTarget(1920, 1080)
    assert config.crop_target.as_size().aspect == pytest.approx(16 / 9)


@pytest.mark.parametrize("overrides,field", [
    ({"crop_width": 0}, "crop_width"),
    ({"crop_height": -5}, "crop_height"),
    ({"crop_width": 10.5}, "crop_width"),
    ({"crop_width": True}, "crop_width"),
    ({"scale": SCALE_MIN - 1}, "scale"),
    ({"scale": "big"}, "scale"),
    ({"crop_type": "image/tiff"}, "crop_type"),
    ({"crop_quality": 1.5}, "crop_quality"),
    ({"crop_quality": -0.1}, "crop_quality"),
    ({"crop_file_name": "  "}, "crop_file_name"),
    ({"crop_image_background": "not-a-colour"}, "crop_image_background"),
    ({"overlay_color": "#12"}, "overlay_color"),
])
def test_invalid_values_are_rejected(overrides, field):
    with pytest.raises(ValueError, match=field):
        CropConfig(**overrides)


def test_all_errors_reported_together():
    with pytest.raises(ValueError) as excinfo:
        CropConfig(crop_width=0, crop_height=0, crop_quality=7)

    message = str(excinfo.value)
    assert "crop_width" in message
    assert "crop_height" in message
    assert "crop_quality" in message


def test_replace_revalidates():
    with pytest.raises(ValueError):
        replace(CropConfig(), crop_type="text/plain")


def test_overlay_colour_accepts_css_alpha():
    config = CropConfig(overlay_color="#ff000040", background_color="rgb(10, 20, 30)")
    assert validate_config(config) == []


# =============================================================================
# Settings file
# =============================================================================
def test_missing_file_gives_defaults():
    assert load_settings() == CropConfig()


def test_round_trip(isolated_config_dir):
    config = CropConfig(crop_width=1080, crop_height=1350, scale=140, crop_type="image/png",
                        crop_file_name="portrait.png", overlay_color="#000000c0")
    save_settings(config)

    raw = json.loads((isolated_config_dir / "settings.json").read_text(encoding="utf-8"))
    assert raw["version"] == 1
    assert raw["settings"]["crop_height"] == 1350

    assert load_settings() == config


def test_corrupt_file_gives_defaults(isolated_config_dir):
    (isolated_config_dir / "settings.json").write_text("{not json", encoding="utf-8")
    assert load_settings() == CropConfig()


def test_version_mismatch_gives_defaults(isolated_config_dir):
    payload = {"version": 99, "settings": {"crop_width": 500, "crop_height": 500}}
    (isolated_config_dir / "settings.json").write_text(json.dumps(payload), encoding="utf-8")
    assert load_settings() == CropConfig()


def test_bare_dict_without_envelope_gives_defaults(isolated_config_dir):
    payload = {"crop_width": 500, "crop_height": 500}
    (isolated_config_dir / "settings.json").write_text(json.dumps(payload), encoding="utf-8")
    assert load_settings() == CropConfig()


def test_invalid_values_give_defaults(isolated_config_dir):
    payload = {"version": 1, "settings": {"crop_width": -1, "crop_height": 500}}
    (isolated_config_dir / "settings.json").write_text(json.dumps(payload), encoding="utf-8")
    assert load_settings() == CropConfig()


def test_unknown_keys_are_ignored():
    config = config_from_dict({"crop_width": 300, "crop_height": 200, "theme": "dark"})
    assert config.crop_target == CropTarget(300, 200)


def test_config_from_dict_rejects_non_dict():
    with pytest.raises(ValueError):
        config_from_dict(["crop_width", 300])
