"""
Crop geometry engine.

Pure functions that turn (image size, viewport size, crop target, scale)
into everything needed to draw a frame: the proportional crop box, the
cover-fit image size, the overlay bands, the destination placement and
the pan clamp bounds.  No state, no I/O; safe to call from any thread.
"""

import math

from pan_crop_tool.errors import InvalidGeometry
from pan_crop_tool.models import (
    ClampBounds, CropTarget, DerivedGeometry, OverlayBands, PanOffset, Point, Rect, Size,
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _require_positive(name: str, size) -> None:
    if size.width <= 0 or size.height <= 0:
        raise InvalidGeometry(f"{name} must have positive dimensions, got {size.width}x{size.height}")


# =============================================================================
# Individual steps
# =============================================================================
def proportional_crop_size(viewport: Size, crop: CropTarget) -> Size:
    """Largest box with the crop's aspect ratio that fits inside the viewport."""
    crop_aspect = crop.width / crop.height
    if crop_aspect > viewport.aspect:
        # Crop is wider than the viewport: touch left and right
        width = viewport.width
        height = width / crop_aspect
    else:
        height = viewport.height
        width = height * crop_aspect
    return Size(width, height)


def cover_fit_size(crop_box: Size, image: Size) -> Size:
    """Smallest aspect-preserving image size that covers *crop_box* on both axes."""
    image_aspect = image.aspect
    if crop_box.aspect >= image_aspect:
        width = crop_box.width
        height = width / image_aspect
    else:
        height = crop_box.height
        width = height * image_aspect
    return Size(_round_half_up(width), _round_half_up(height))


def overlay_bands(viewport: Size, crop_box: Size) -> OverlayBands:
    """Four bands tiling the viewport area outside the centered crop box.

    Top and bottom bands span only the crop box's horizontal extent; left
    and right bands run the full viewport height.
    """
    band_h = (viewport.height - crop_box.height) / 2
    band_w = (viewport.width - crop_box.width) / 2
    return OverlayBands(
        top=Rect(band_w, 0, crop_box.width, band_h),
        bottom=Rect(band_w, band_h + crop_box.height, crop_box.width, band_h),
        left=Rect(0, 0, band_w, viewport.height),
        right=Rect(band_w + crop_box.width, 0, band_w, viewport.height),
    )


def destination_rect(fit: Size, viewport: Size, scale_percent: float) -> Rect:
    """Apply the zoom factor to the cover-fit size and center the result."""
    factor = scale_percent / 100
    dest_w = fit.width * factor
    dest_h = fit.height * factor
    return Rect((viewport.width - dest_w) / 2, (viewport.height - dest_h) / 2, dest_w, dest_h)


# =============================================================================
# Public entry points
# =============================================================================
def compute_geometry(
    image_size: Size,
    viewport_size: Size,
    crop_target: CropTarget,
    scale_percent: float,
) -> DerivedGeometry:
    """Compute the full frame geometry for one set of inputs.

    Raises ``InvalidGeometry`` for zero or negative dimensions or scale;
    such calls indicate a setup bug in the caller.
    """
    _require_positive("image_size", image_size)
    _require_positive("viewport_size", viewport_size)
    _require_positive("crop_target", crop_target)
    if scale_percent <= 0:
        raise InvalidGeometry(f"scale_percent must be positive, got {scale_percent}")

    crop_box = proportional_crop_size(viewport_size, crop_target)
    fit = cover_fit_size(crop_box, image_size)
    overlay = overlay_bands(viewport_size, crop_box)
    dest = destination_rect(fit, viewport_size, scale_percent)
    return DerivedGeometry(
        dest_x=dest.x,
        dest_y=dest.y,
        dest_width=dest.width,
        dest_height=dest.height,
        overlay=overlay,
        crop_box=crop_box,
        crop_origin=Point(overlay.left.width, overlay.top.height),
        fit_size=fit,
    )


def clamp_bounds(geometry: DerivedGeometry) -> ClampBounds:
    """Pan bounds that keep the crop box covered by the image.

    When the zoomed-out image is smaller than the crop box on an axis the
    same symmetric range keeps the image inside the crop box instead.
    """
    return geometry.clamp_bounds


def clamp_offset(offset: PanOffset, geometry: DerivedGeometry) -> PanOffset:
    """Clamp *offset* into the bounds of *geometry*.  Idempotent."""
    return geometry.clamp_bounds.clamp(offset)
