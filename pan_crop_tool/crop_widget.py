"""
Interactive crop canvas widget and Qt image helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, the background ``ImageLoaderThread``, the QPainter
rendering surface, the application-wide grab cursor and the
``CropCanvasWidget`` that wires pointer, touch and resize events into a
``CropSession``.
"""

from functools import lru_cache
from pathlib import Path

from PIL import Image, ImageColor
from PyQt6.QtWidgets import QApplication, QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QEvent, QRectF, QPointF, pyqtSignal, QThread
from PyQt6.QtGui import (
    QPainter, QPixmap, QColor, QPen, QImage, QCursor,
    QKeyEvent, QMouseEvent, QPaintEvent, QResizeEvent,
)

from pan_crop_tool.config import CropConfig, NUDGE_SMALL, NUDGE_LARGE
from pan_crop_tool.errors import DecodeFailure
from pan_crop_tool.image_io import open_image
from pan_crop_tool.session import CropSession, SessionState


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    img_rgba = pil_img.convert("RGBA")
    data = img_rgba.tobytes("raw", "RGBA")
    qimg = QImage(data, img_rgba.width, img_rgba.height, QImage.Format.Format_RGBA8888)
    return QPixmap.fromImage(qimg)


@lru_cache(maxsize=32)
def to_qcolor(color: str) -> QColor:
    """Parse a CSS-style colour (``#rrggbbaa``, names, ``rgb()``) into a QColor."""
    r, g, b, a = ImageColor.getcolor(color, "RGBA")
    return QColor(r, g, b, a)


# =============================================================================
# Background image loader
# =============================================================================

class ImageLoaderThread(QThread):
    """Background thread for decoding images (especially large PSDs)."""
    loaded = pyqtSignal(object)
    error = pyqtSignal(str)

    def __init__(self, path: Path, parent=None):
        super().__init__(parent)
        self._path = path

    def run(self):
        try:
            image = open_image(self._path)
        except Exception as e:
            self.error.emit(str(e))
            return
        self.loaded.emit(image)


# =============================================================================
# Session collaborators backed by Qt
# =============================================================================

class QtCursorHost:
    """Application-wide "grabbing" cursor via QApplication's override stack."""

    def set_grab_cursor(self) -> None:
        QApplication.setOverrideCursor(QCursor(Qt.CursorShape.ClosedHandCursor))

    def restore_cursor(self) -> None:
        QApplication.restoreOverrideCursor()


class QPainterSurface:
    """RenderSurface over an active QPainter; the painter handles device pixel ratio."""

    def __init__(self, painter: QPainter, width: float, height: float):
        self._painter = painter
        self._width = width
        self._height = height
        self.fill_color = "black"

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    def clear(self, x: float, y: float, width: float, height: float) -> None:
        p = self._painter
        p.save()
        p.setCompositionMode(QPainter.CompositionMode.CompositionMode_Clear)
        p.fillRect(QRectF(x, y, width, height), Qt.GlobalColor.transparent)
        p.restore()

    def draw_image(self, source: QPixmap, x: float, y: float, width: float, height: float) -> None:
        self._painter.drawPixmap(QRectF(x, y, width, height), source, QRectF(source.rect()))

    def fill_rect(self, x: float, y: float, width: float, height: float) -> None:
        self._painter.fillRect(QRectF(x, y, width, height), to_qcolor(self.fill_color))


# =============================================================================
# Crop Canvas Widget: fixed crop box, draggable zoomable image
# =============================================================================

class CropCanvasWidget(QWidget):
    """Widget that shows the image behind a fixed crop box and lets the user pan it."""

    frame_changed = pyqtSignal()

    def __init__(self, config: CropConfig, parent=None):
        super().__init__(parent)
        self.setMinimumSize(400, 300)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setAttribute(Qt.WidgetAttribute.WA_AcceptTouchEvents)
        self.setCursor(Qt.CursorShape.OpenHandCursor)

        self._cursor_host = QtCursorHost()
        self._pixmap: QPixmap | None = None
        self._loading = False
        self._session = self._new_session(config)

    def _new_session(self, config: CropConfig) -> CropSession:
        session = CropSession(config, cursor_host=self._cursor_host)
        session.subscribe(self._on_session_changed)
        return session

    @property
    def session(self) -> CropSession:
        return self._session

    def set_config(self, config: CropConfig):
        """Start a new session for *config*, keeping the current image and viewport."""
        image = self._session.image
        self._session.close()
        self._session = self._new_session(config)
        self._sync_viewport()
        if image is not None:
            self._session.on_image_loaded(image)
        self._on_session_changed()

    def set_loading(self, loading: bool):
        """Show/hide loading indicator."""
        self._loading = loading
        self.update()

    def set_image(self, image: Image.Image):
        """Bind a decoded image; offset resets and the frame is redrawn."""
        self._loading = False
        self._pixmap = pil_to_qpixmap(image)
        if self._session.viewport is None:
            self._sync_viewport()
        self._session.on_image_loaded(image)

    def set_image_error(self, message: str):
        self._loading = False
        self._pixmap = None
        self._session.on_image_failed(DecodeFailure(message))

    def set_scale(self, scale: float):
        self._session.on_scale_changed(scale)

    def has_image(self) -> bool:
        """Return True if an image is loaded and ready for crop operations."""
        return self._pixmap is not None

    def clear(self):
        self._pixmap = None
        self._session.clear_image()

    def shutdown(self):
        """Tear down the session; releases any grab cursor still held."""
        self._session.close()

    def _on_session_changed(self):
        self.update()
        self.frame_changed.emit()

    def _sync_viewport(self):
        self._session.on_viewport_resized(self.width(), self.height(), self.devicePixelRatioF())

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)

        if self._pixmap is None or self._session.state is SessionState.UNINITIALIZED:
            painter.fillRect(self.rect(), to_qcolor(self._session.config.background_color))
            painter.setPen(QColor(128, 128, 128))
            msg = "Loading image…" if self._loading else "No image loaded"
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, msg)
            painter.end()
            return

        surface = QPainterSurface(painter, self.width(), self.height())
        self._session.render(surface, source=self._pixmap)

        geo = self._session.geometry()
        crop_rect = QRectF(geo.crop_origin.x, geo.crop_origin.y, geo.crop_box.width, geo.crop_box.height)

        # Draw crop border
        painter.setPen(QPen(QColor(255, 255, 255, 160), 1))
        painter.drawRect(crop_rect)

        # Draw rule-of-thirds lines
        pen_thirds = QPen(QColor(255, 255, 255, 80), 1, Qt.PenStyle.DashLine)
        painter.setPen(pen_thirds)
        for i in range(1, 3):
            x = crop_rect.left() + crop_rect.width() * i / 3
            painter.drawLine(QPointF(x, crop_rect.top()), QPointF(x, crop_rect.bottom()))
            y = crop_rect.top() + crop_rect.height() * i / 3
            painter.drawLine(QPointF(crop_rect.left(), y), QPointF(crop_rect.right(), y))

        painter.end()

    def resizeEvent(self, event: QResizeEvent):
        self._sync_viewport()
        super().resizeEvent(event)

    def hideEvent(self, event):
        self._session.release()
        super().hideEvent(event)

    def event(self, event: QEvent) -> bool:
        etype = event.type()
        if etype == QEvent.Type.DevicePixelRatioChange:
            self._sync_viewport()
        elif etype in (QEvent.Type.TouchBegin, QEvent.Type.TouchUpdate):
            points = event.points()
            if points:
                pos = self.mapFromGlobal(points[0].globalPosition())
                if etype == QEvent.Type.TouchBegin:
                    self._session.press(pos.x(), pos.y())
                else:
                    self._session.move(pos.x(), pos.y())
            event.accept()
            return True
        elif etype in (QEvent.Type.TouchEnd, QEvent.Type.TouchCancel):
            self._session.release()
            event.accept()
            return True
        return super().event(event)

    # --- Mouse interaction ---

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() != Qt.MouseButton.LeftButton:
            return
        pos = event.position()
        self._session.press(pos.x(), pos.y())

    def mouseMoveEvent(self, event: QMouseEvent):
        pos = event.position()
        self._session.move(pos.x(), pos.y())

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton:
            self._session.release()

    # --- Keyboard nudge ---

    def keyPressEvent(self, event: QKeyEvent):
        if self._session.state is not SessionState.READY:
            super().keyPressEvent(event)
            return
        amount = NUDGE_LARGE if event.modifiers() & Qt.KeyboardModifier.ShiftModifier else NUDGE_SMALL
        deltas = {
            Qt.Key.Key_Left.value: (-amount, 0),
            Qt.Key.Key_Right.value: (amount, 0),
            Qt.Key.Key_Up.value: (0, -amount),
            Qt.Key.Key_Down.value: (0, amount),
        }
        delta = deltas.get(event.key())
        if delta is None:
            super().keyPressEvent(event)
            return
        offset = self._session.offset
        self._session.set_offset(offset.x + delta[0], offset.y + delta[1])
