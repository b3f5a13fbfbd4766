"""
Rendering surfaces.

``RenderSurface`` is the small drawing API the crop session talks to.
``PillowSurface`` implements it over an in-memory RGBA Pillow image and is
used for the off-screen export canvas and for headless previews.  The Qt
implementation lives in ``crop_widget``.

This module is Qt-free and safe for worker import.
"""

import math
from typing import Protocol

from PIL import Image, ImageColor

from pan_crop_tool.errors import SurfaceUnavailable

_TRANSPARENT = (0, 0, 0, 0)


class RenderSurface(Protocol):
    """Drawing primitives in logical (device-independent) pixels."""
    fill_color: str

    @property
    def width(self) -> float: ...

    @property
    def height(self) -> float: ...

    def clear(self, x: float, y: float, width: float, height: float) -> None: ...

    def draw_image(self, source, x: float, y: float, width: float, height: float) -> None: ...

    def fill_rect(self, x: float, y: float, width: float, height: float) -> None: ...


def _px(value: float) -> int:
    return int(math.floor(value + 0.5))


class PillowSurface:
    """RGBA Pillow canvas with a device-pixel-ratio transform fixed at creation."""

    def __init__(self, width: float, height: float, device_pixel_ratio: float = 1.0, background: str | None = None):
        if width <= 0 or height <= 0 or device_pixel_ratio <= 0:
            raise SurfaceUnavailable(
                f"Cannot allocate a {width}x{height} surface at ratio {device_pixel_ratio}"
            )
        self._width = width
        self._height = height
        self._dpr = device_pixel_ratio
        fill = ImageColor.getcolor(background, "RGBA") if background else _TRANSPARENT
        try:
            self._image = Image.new("RGBA", (_px(width * device_pixel_ratio), _px(height * device_pixel_ratio)), fill)
        except (ValueError, MemoryError) as exc:
            raise SurfaceUnavailable(f"Cannot allocate a {width}x{height} surface: {exc}") from exc
        self.fill_color = "black"

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    @property
    def device_pixel_ratio(self) -> float:
        return self._dpr

    @property
    def image(self) -> Image.Image:
        """The backing image in device pixels."""
        return self._image

    # --- Coordinate mapping ---

    def _device_box(self, x: float, y: float, width: float, height: float) -> tuple[int, int, int, int]:
        """Logical rect -> device-pixel (left, top, right, bottom), unclipped."""
        d = self._dpr
        return _px(x * d), _px(y * d), _px((x + width) * d), _px((y + height) * d)

    def _clip(self, box: tuple[int, int, int, int]) -> tuple[int, int, int, int] | None:
        left, top, right, bottom = box
        left, top = max(left, 0), max(top, 0)
        right, bottom = min(right, self._image.width), min(bottom, self._image.height)
        if right <= left or bottom <= top:
            return None
        return left, top, right, bottom

    # --- Drawing ---

    def clear(self, x: float, y: float, width: float, height: float) -> None:
        box = self._clip(self._device_box(x, y, width, height))
        if box is not None:
            self._image.paste(_TRANSPARENT, box)

    def fill_rect(self, x: float, y: float, width: float, height: float) -> None:
        box = self._clip(self._device_box(x, y, width, height))
        if box is None:
            return
        rgba = ImageColor.getcolor(self.fill_color, "RGBA")
        if rgba[3] == 255:
            self._image.paste(rgba, box)
            return
        size = (box[2] - box[0], box[3] - box[1])
        layer = Image.new("RGBA", size, rgba)
        self._image.alpha_composite(layer, dest=box[:2])

    def draw_image(self, source: Image.Image, x: float, y: float, width: float, height: float) -> None:
        """Draw *source* scaled into the logical rect; parts outside the surface are clipped."""
        full = self._device_box(x, y, width, height)
        visible = self._clip(full)
        if visible is None:
            return
        left, top, right, bottom = full
        # Map the visible device box back into source pixels so only that
        # region gets resampled
        sx = source.width / (right - left)
        sy = source.height / (bottom - top)
        src_box = (
            (visible[0] - left) * sx,
            (visible[1] - top) * sy,
            (visible[2] - left) * sx,
            (visible[3] - top) * sy,
        )
        if source.mode not in ("RGB", "RGBA"):
            source = source.convert("RGBA")
        piece = source.resize(
            (visible[2] - visible[0], visible[3] - visible[1]),
            Image.Resampling.LANCZOS,
            box=src_box,
        )
        if piece.mode != "RGBA":
            piece = piece.convert("RGBA")
        self._image.alpha_composite(piece, dest=visible[:2])
