"""
Crop session: the pan/drag state machine.

A ``CropSession`` owns the pan offset, the viewport size and the loaded
image, and recomputes the frame geometry whenever one of them changes.
It is Qt-free; the widget in ``crop_widget`` feeds it input events and
paints it, and headless callers can drive it with a ``PillowSurface``.

States::

    UNINITIALIZED --(image + viewport known)--> READY <--press/release--> DRAGGING

The state is derived from the data rather than stored: no image or no
viewport means UNINITIALIZED, an active drag anchor means DRAGGING.
"""

import logging
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol

from PIL import Image

from pan_crop_tool.config import SCALE_MIN, CropConfig
from pan_crop_tool.errors import DecodeFailure, NotReady
from pan_crop_tool.geometry import clamp_offset, compute_geometry
from pan_crop_tool.image_io import open_image
from pan_crop_tool.models import DerivedGeometry, DragAnchor, ExportResult, PanOffset, Size
from pan_crop_tool.surface import RenderSurface
from pan_crop_tool.worker import ExportJob, render_export

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DRAGGING = "dragging"


# =============================================================================
# Grab cursor override
# =============================================================================
class CursorHost(Protocol):
    """Process-wide cursor override supplied by the host toolkit."""

    def set_grab_cursor(self) -> None: ...

    def restore_cursor(self) -> None: ...


@contextmanager
def grab_cursor(host: CursorHost):
    """Hold the global "grabbing" cursor for the duration of the block."""
    host.set_grab_cursor()
    try:
        yield
    finally:
        host.restore_cursor()


# =============================================================================
# Events
# =============================================================================
@dataclass(frozen=True)
class ImageLoaded:
    image: Image.Image


@dataclass(frozen=True)
class ImageFailed:
    error: Exception


@dataclass(frozen=True)
class ViewportResized:
    width: float
    height: float
    device_pixel_ratio: float = 1.0


@dataclass(frozen=True)
class ScaleChanged:
    scale: float


@dataclass(frozen=True)
class PointerPressed:
    x: float
    y: float


@dataclass(frozen=True)
class PointerMoved:
    x: float
    y: float


@dataclass(frozen=True)
class PointerReleased:
    pass


# =============================================================================
# Session
# =============================================================================
class CropSession:
    """Interactive pan/zoom state for one crop target."""

    def __init__(self, config: CropConfig, surface: RenderSurface | None = None,
                 cursor_host: CursorHost | None = None):
        self._config = config
        self._scale = config.scale
        self._surface = surface
        self._cursor_host = cursor_host

        self._image: Image.Image | None = None
        self._viewport: Size | None = None
        self._dpr = 1.0
        self._offset = PanOffset()
        self._anchor: DragAnchor | None = None
        self._drag_guard = ExitStack()
        self._listeners: list[Callable[[], None]] = []
        self._last_error: Exception | None = None

        self._handlers = {
            ImageLoaded: lambda e: self.on_image_loaded(e.image),
            ImageFailed: lambda e: self.on_image_failed(e.error),
            ViewportResized: lambda e: self.on_viewport_resized(e.width, e.height, e.device_pixel_ratio),
            ScaleChanged: lambda e: self.on_scale_changed(e.scale),
            PointerPressed: lambda e: self.press(e.x, e.y),
            PointerMoved: lambda e: self.move(e.x, e.y),
            PointerReleased: lambda e: self.release(),
        }

    # --- Snapshots ---

    @property
    def config(self) -> CropConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        if self._image is None or self._viewport is None:
            return SessionState.UNINITIALIZED
        if self._anchor is not None:
            return SessionState.DRAGGING
        return SessionState.READY

    @property
    def is_dragging(self) -> bool:
        return self._anchor is not None

    @property
    def offset(self) -> PanOffset:
        return self._offset

    @property
    def drag_anchor(self) -> DragAnchor | None:
        return self._anchor

    @property
    def viewport(self) -> Size | None:
        return self._viewport

    @property
    def device_pixel_ratio(self) -> float:
        return self._dpr

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def image(self) -> Image.Image | None:
        return self._image

    @property
    def image_size(self) -> Size | None:
        if self._image is None:
            return None
        return Size(self._image.width, self._image.height)

    @property
    def last_error(self) -> Exception | None:
        """The most recent image load failure, cleared by a successful load."""
        return self._last_error

    def geometry(self) -> DerivedGeometry:
        """Frame geometry for the current image, viewport and scale."""
        if self._image is None or self._viewport is None:
            raise NotReady("no image or viewport")
        return compute_geometry(self.image_size, self._viewport, self._config.crop_target, self._scale)

    # --- Listeners ---

    def subscribe(self, callback: Callable[[], None]) -> None:
        """Call *callback* after every recompute (the host schedules a repaint)."""
        self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # --- Reactions ---

    def dispatch(self, event) -> None:
        """Single entry point for tagged events."""
        try:
            handler = self._handlers[type(event)]
        except KeyError:
            raise TypeError(f"Unknown session event: {event!r}") from None
        handler(event)

    def load_image(self, path: Path) -> None:
        """Decode *path* synchronously and bind it.  ``DecodeFailure`` propagates."""
        try:
            image = open_image(path)
        except DecodeFailure as exc:
            self.on_image_failed(exc)
            raise
        self.on_image_loaded(image)

    def on_image_loaded(self, image: Image.Image) -> None:
        self._end_drag()
        self._image = image
        self._last_error = None
        logger.debug("Image bound: %dx%d", image.width, image.height)
        self._reset()

    def on_image_failed(self, error: Exception) -> None:
        self._end_drag()
        self._image = None
        self._last_error = error
        logger.warning("Image load failed: %s", error)
        self._redraw()

    def clear_image(self) -> None:
        """Unbind the image; the session returns to UNINITIALIZED."""
        self._end_drag()
        self._image = None
        self._last_error = None
        self._offset = PanOffset()
        self._redraw()

    def on_viewport_resized(self, width: float, height: float, device_pixel_ratio: float = 1.0) -> None:
        """New logical viewport size (device pixels / *device_pixel_ratio*)."""
        self._end_drag()
        self._dpr = device_pixel_ratio
        if width <= 0 or height <= 0:
            # Hidden or collapsed host; wait for a real size
            self._viewport = None
            self._offset = PanOffset()
            self._redraw()
            return
        self._viewport = Size(width, height)
        logger.debug("Viewport %gx%g @%gx", width, height, device_pixel_ratio)
        self._reset()

    def on_scale_changed(self, scale: float) -> None:
        """Apply a new zoom and pull the current offset back into range."""
        if scale < SCALE_MIN:
            raise ValueError(f"scale must be >= {SCALE_MIN}, got {scale!r}")
        self._scale = scale
        if self.state is SessionState.UNINITIALIZED:
            return
        self._offset = clamp_offset(self._offset, self.geometry())
        self._redraw()

    def on_offset_changed(self) -> None:
        self._redraw()

    def set_offset(self, x: float, y: float) -> PanOffset:
        """Pan programmatically; the offset is clamped like a drag."""
        if self.state is SessionState.UNINITIALIZED:
            raise NotReady("no image or viewport")
        clamped = clamp_offset(PanOffset(x, y), self.geometry())
        if clamped != self._offset:
            self._offset = clamped
            self.on_offset_changed()
        return self._offset

    def _reset(self) -> None:
        self._offset = PanOffset()
        if self.state is not SessionState.UNINITIALIZED:
            self._redraw()

    # --- Pointer input ---

    def press(self, x: float, y: float) -> bool:
        """Start a drag.  Returns False when there is nothing to drag."""
        if self.state is not SessionState.READY:
            return False
        self._anchor = DragAnchor(x - self._offset.x, y - self._offset.y)
        if self._cursor_host is not None:
            self._drag_guard.enter_context(grab_cursor(self._cursor_host))
        return True

    def move(self, x: float, y: float) -> None:
        if self._anchor is None:
            return
        tentative = PanOffset(x - self._anchor.x, y - self._anchor.y)
        clamped = clamp_offset(tentative, self.geometry())
        if clamped != self._offset:
            self._offset = clamped
            self.on_offset_changed()

    def release(self) -> None:
        self._end_drag()

    def _end_drag(self) -> None:
        self._anchor = None
        self._drag_guard.close()

    # --- Drawing ---

    def _redraw(self) -> None:
        if self._surface is not None:
            self.render(self._surface)
        for callback in list(self._listeners):
            callback()

    def render(self, surface: RenderSurface | None = None, source=None) -> None:
        """Draw the current frame.

        *source* replaces the bound image as the drawable, for hosts that
        keep their own copy of it (a QPixmap, for instance).
        """
        surface = surface if surface is not None else self._surface
        if surface is None:
            return
        width, height = surface.width, surface.height
        surface.clear(0, 0, width, height)
        surface.fill_color = self._config.background_color
        surface.fill_rect(0, 0, width, height)
        if self.state is SessionState.UNINITIALIZED:
            return

        geo = self.geometry()
        rect = geo.image_rect(self._offset)
        surface.draw_image(source if source is not None else self._image,
                           rect.x, rect.y, rect.width, rect.height)
        surface.fill_color = self._config.overlay_color
        for band in geo.overlay:
            if band.area > 0:
                surface.fill_rect(band.x, band.y, band.width, band.height)

    # --- Export ---

    def prepare_export(self) -> ExportJob:
        """Snapshot everything the export needs.  Raises ``NotReady`` before load."""
        if self._image is None or self._viewport is None:
            raise NotReady("no image or viewport to export")
        return ExportJob(
            image=self._image,
            config=self._config,
            offset=self._offset,
            scale=self._scale,
            viewport=self._viewport,
        )

    def export_crop(self) -> ExportResult:
        return render_export(self.prepare_export())

    # --- Teardown ---

    def close(self) -> None:
        """Release the grab cursor and drop listeners; safe to call twice."""
        self._end_drag()
        self._listeners.clear()
        self._surface = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
