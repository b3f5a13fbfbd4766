"""Widget-level tests on Qt's offscreen platform (pytest-qt)."""

import pytest
from PIL import Image
from PyQt6.QtCore import QEvent, QPointF, Qt
from PyQt6.QtGui import QEventPoint, QMouseEvent, QPointingDevice, QTouchEvent
from PyQt6.QtWidgets import QApplication

from pan_crop_tool.config import CropConfig
from pan_crop_tool.crop_widget import CropCanvasWidget, ImageLoaderThread, pil_to_qpixmap, to_qcolor
from pan_crop_tool.main_window import MainWindow
from pan_crop_tool.models import PanOffset, Size
from pan_crop_tool.session import SessionState


def _mouse(kind, x, y, buttons=Qt.MouseButton.LeftButton):
    pos = QPointF(x, y)
    return QMouseEvent(kind, pos, pos, Qt.MouseButton.LeftButton, buttons, Qt.KeyboardModifier.NoModifier)


def _touch(widget, kind, state, x, y):
    local = QPointF(x, y)
    point = QEventPoint(1, state, local, widget.mapToGlobal(local))
    return QTouchEvent(kind, QPointingDevice.primaryPointingDevice(), Qt.KeyboardModifier.NoModifier, [point])


def _grabbing() -> bool:
    cursor = QApplication.overrideCursor()
    return cursor is not None and cursor.shape() == Qt.CursorShape.ClosedHandCursor


@pytest.fixture
def canvas(qtbot, square_config, red_image):
    widget = CropCanvasWidget(square_config)
    qtbot.addWidget(widget)
    widget.resize(800, 600)
    widget.show()
    qtbot.waitExposed(widget)
    widget.set_image(red_image)
    yield widget
    widget.shutdown()


@pytest.mark.usefixtures("qapp")
def test_helpers():
    color = to_qcolor("#00000080")
    assert (color.red(), color.green(), color.blue(), color.alpha()) == (0, 0, 0, 128)

    pixmap = pil_to_qpixmap(Image.new("RGB", (7, 5), "red"))
    assert (pixmap.width(), pixmap.height()) == (7, 5)


def test_image_makes_session_ready(canvas):
    assert canvas.has_image()
    assert canvas.session.state is SessionState.READY
    assert canvas.session.viewport == Size(800, 600)


def test_mouse_drag_pans_and_holds_cursor(canvas):
    canvas.mousePressEvent(_mouse(QEvent.Type.MouseButtonPress, 500, 300))
    assert canvas.session.state is SessionState.DRAGGING
    assert _grabbing()

    canvas.mouseMoveEvent(_mouse(QEvent.Type.MouseMove, 550, 320))
    assert canvas.session.offset == PanOffset(50, 0)

    canvas.mouseReleaseEvent(_mouse(QEvent.Type.MouseButtonRelease, 550, 320, Qt.MouseButton.NoButton))
    assert canvas.session.state is SessionState.READY
    assert canvas.session.offset == PanOffset(50, 0)
    assert not _grabbing()


def test_right_button_does_not_drag(canvas):
    pos = QPointF(400, 300)
    event = QMouseEvent(QEvent.Type.MouseButtonPress, pos, pos, Qt.MouseButton.RightButton,
                        Qt.MouseButton.RightButton, Qt.KeyboardModifier.NoModifier)
    canvas.mousePressEvent(event)

    assert canvas.session.state is SessionState.READY
    assert not _grabbing()


def test_hide_during_drag_releases_cursor(canvas):
    canvas.mousePressEvent(_mouse(QEvent.Type.MouseButtonPress, 400, 300))
    canvas.hide()

    assert not canvas.session.is_dragging
    assert not _grabbing()


def test_shutdown_during_drag_releases_cursor(canvas):
    canvas.mousePressEvent(_mouse(QEvent.Type.MouseButtonPress, 400, 300))
    canvas.shutdown()

    assert not _grabbing()


def test_touch_drag_pans_and_holds_cursor(canvas):
    Begin, Update, End = QEvent.Type.TouchBegin, QEvent.Type.TouchUpdate, QEvent.Type.TouchEnd
    State = QEventPoint.State

    assert canvas.event(_touch(canvas, Begin, State.Pressed, 500, 300))
    assert canvas.session.state is SessionState.DRAGGING
    assert _grabbing()

    canvas.event(_touch(canvas, Update, State.Updated, 440, 350))
    assert canvas.session.offset == PanOffset(-60, 0)

    canvas.event(_touch(canvas, End, State.Released, 440, 350))
    assert canvas.session.state is SessionState.READY
    assert canvas.session.offset == PanOffset(-60, 0)
    assert not _grabbing()


def test_touch_cancel_ends_drag(canvas):
    canvas.event(_touch(canvas, QEvent.Type.TouchBegin, QEventPoint.State.Pressed, 400, 300))
    assert _grabbing()

    canvas.event(QTouchEvent(QEvent.Type.TouchCancel, QPointingDevice.primaryPointingDevice()))

    assert not canvas.session.is_dragging
    assert not _grabbing()


def test_device_pixel_ratio_change_recenters(canvas):
    canvas.session.set_offset(70, 0)

    canvas.event(QEvent(QEvent.Type.DevicePixelRatioChange))

    assert canvas.session.offset == PanOffset(0, 0)
    assert canvas.session.state is SessionState.READY


def test_arrow_keys_nudge(qtbot, canvas):
    qtbot.keyClick(canvas, Qt.Key.Key_Right)
    assert canvas.session.offset == PanOffset(1, 0)

    qtbot.keyClick(canvas, Qt.Key.Key_Left, Qt.KeyboardModifier.ShiftModifier)
    assert canvas.session.offset == PanOffset(-9, 0)

    # No vertical room at 100% for a 4:3 image in a square box
    qtbot.keyClick(canvas, Qt.Key.Key_Up)
    assert canvas.session.offset == PanOffset(-9, 0)


def test_scale_change_emits_frame_changed(qtbot, canvas):
    with qtbot.waitSignal(canvas.frame_changed, timeout=1000):
        canvas.set_scale(150)
    assert canvas.session.scale == 150


def test_set_config_keeps_image_and_recenters(canvas):
    canvas.session.set_offset(80, 0)

    canvas.set_config(CropConfig(crop_width=16, crop_height=9))

    assert canvas.session.state is SessionState.READY
    assert canvas.session.offset == PanOffset(0, 0)
    assert canvas.session.config.crop_target.width == 16


def test_image_error_returns_to_uninitialized(canvas):
    canvas.set_image_error("corrupt file")

    assert not canvas.has_image()
    assert canvas.session.state is SessionState.UNINITIALIZED
    assert str(canvas.session.last_error) == "corrupt file"


def test_paint_shows_image_under_overlay(canvas):
    frame = canvas.grab().toImage()

    center = frame.pixelColor(400, 300)
    assert (center.red(), center.green(), center.blue()) == (255, 0, 0)

    band = frame.pixelColor(50, 300)
    assert 120 <= band.red() <= 135
    assert band.green() == 0


def test_main_window_exports_to_folder(qtbot, tmp_path, red_image, isolated_config_dir):
    window = MainWindow()
    qtbot.addWidget(window)
    window.show()
    qtbot.waitExposed(window)

    path = tmp_path / "red.png"
    window._image_path = path
    window._on_image_loaded(path, red_image)
    window._output_root = tmp_path / "out"

    window._export_current()

    exported = tmp_path / "out" / "image.jpg"
    assert exported.exists()
    with Image.open(exported) as img:
        assert img.size == (1080, 1080)

    window.close()
    assert (isolated_config_dir / "settings.json").exists()


def test_loader_thread_reports_undecodable_file(qtbot, oversized_bmp):
    loader = ImageLoaderThread(oversized_bmp)
    loaded = []
    loader.loaded.connect(loaded.append)

    with qtbot.waitSignal(loader.error, timeout=5000) as blocker:
        loader.start()
    loader.wait()

    assert loaded == []
    assert "huge.bmp" in blocker.args[0]


def test_main_window_background_load(qtbot, tmp_path, oversized_bmp):
    window = MainWindow()
    qtbot.addWidget(window)
    window.show()
    qtbot.waitExposed(window)

    path = tmp_path / "photo.png"
    Image.new("RGB", (64, 48), "green").save(path)
    window._load_image(path)
    assert "64 × 48" in window._status.currentMessage()
    qtbot.waitUntil(window._crop_widget.has_image, timeout=5000)
    assert window._crop_widget.session.state is SessionState.READY

    # A file the decoder chokes on ends the loading state with an error
    window._load_image(oversized_bmp)
    qtbot.waitUntil(lambda: window._status.currentMessage().startswith("Failed to load image"), timeout=5000)
    assert not window._crop_widget.has_image()
    assert window._crop_widget.session.state is SessionState.UNINITIALIZED
    assert window._crop_widget.session.last_error is not None
