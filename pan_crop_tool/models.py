"""
Data models shared by the geometry engine, the crop session and export.

All geometry values are immutable.  ``DerivedGeometry`` is never stored by
the session: it is recomputed from (image size, viewport size, crop target,
scale) every time it is needed, so it cannot drift out of sync with its
inputs.
"""

from dataclasses import dataclass


# =============================================================================
# Primitive values
# =============================================================================
@dataclass(frozen=True)
class Size:
    """Width and height of an image, viewport or crop box."""
    width: float
    height: float

    @property
    def aspect(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class Point:
    """2D position in screen or viewport-local coordinates."""
    x: float
    y: float


@dataclass(frozen=True)
class PanOffset:
    """Translation applied to the image relative to its centered position."""
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class DragAnchor:
    """Pointer position at drag start minus the offset at drag start."""
    x: float
    y: float


@dataclass(frozen=True)
class CropTarget:
    """Requested crop aspect ratio and nominal output resolution."""
    width: int
    height: int

    def as_size(self) -> Size:
        return Size(self.width, self.height)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in viewport coordinates."""
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


# =============================================================================
# Derived geometry
# =============================================================================
@dataclass(frozen=True)
class OverlayBands:
    """The four darkened rectangles outside the crop box."""
    top: Rect
    bottom: Rect
    left: Rect
    right: Rect

    def __iter__(self):
        return iter((self.top, self.bottom, self.left, self.right))


@dataclass(frozen=True)
class ClampBounds:
    """Allowed pan offset range on both axes."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    def clamp(self, offset: PanOffset) -> PanOffset:
        x = max(self.min_x, min(offset.x, self.max_x))
        y = max(self.min_y, min(offset.y, self.max_y))
        return PanOffset(x, y)

    def contains(self, offset: PanOffset) -> bool:
        return self.min_x <= offset.x <= self.max_x and self.min_y <= offset.y <= self.max_y


@dataclass(frozen=True)
class DerivedGeometry:
    """Everything the session needs to draw one frame."""
    dest_x: float
    dest_y: float
    dest_width: float
    dest_height: float
    overlay: OverlayBands
    crop_box: Size       # proportional crop box, fitted to the viewport
    crop_origin: Point   # top-left of the crop box in the viewport
    fit_size: Size       # cover-fit image size at scale 100

    @property
    def clamp_bounds(self) -> ClampBounds:
        # Gap between the image edge and the crop box edge, either sign
        ex = abs(self.dest_x - self.overlay.left.width)
        ey = abs(self.dest_y - self.overlay.top.height)
        return ClampBounds(-ex, ex, -ey, ey)

    def image_rect(self, offset: PanOffset) -> Rect:
        """Where the image lands once *offset* is applied."""
        return Rect(self.dest_x + offset.x, self.dest_y + offset.y, self.dest_width, self.dest_height)


# =============================================================================
# Export results
# =============================================================================
@dataclass(frozen=True)
class CroppedFile:
    """Named file wrapper around an encoded crop."""
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ExportResult:
    """Encoded crop: raw blob, named file and a revocable ``blob:`` URL."""
    blob: bytes
    file: CroppedFile
    object_url: str
