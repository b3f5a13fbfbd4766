"""Pytest configuration.

Widget tests run on Qt's offscreen platform so the suite works without a
display.  Every test gets its own config directory so settings written by
one test never leak into another (or into the real user profile).
"""

import os
import struct

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PIL import Image

from pan_crop_tool.config import CropConfig


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    directory = tmp_path / "config"
    directory.mkdir()
    monkeypatch.setattr("pan_crop_tool.settings.config_dir", lambda: directory)
    return directory


@pytest.fixture
def square_config():
    """1:1 crop with a PNG output so pixels survive encoding unchanged."""
    return CropConfig(crop_width=100, crop_height=100, crop_type="image/png", crop_file_name="crop.png")


@pytest.fixture
def red_image():
    """4:3 solid red image (same aspect as 4000x3000, cheaper to resample)."""
    return Image.new("RGB", (400, 300), (255, 0, 0))


@pytest.fixture
def oversized_bmp(tmp_path):
    """Valid 16x16 BMP whose header claims a width of 2**31 - 1 pixels."""
    path = tmp_path / "huge.bmp"
    Image.new("RGB", (16, 16), "white").save(path)
    data = bytearray(path.read_bytes())
    # BITMAPINFOHEADER biWidth, little-endian at byte 18
    struct.pack_into("<i", data, 18, 0x7FFFFFFF)
    path.write_bytes(bytes(data))
    return path
