"""
Main application window.

Orchestrates image loading, the crop canvas, zoom, export settings and
exporting the crop on a worker thread.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path

from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QPushButton, QLabel,
    QFileDialog, QGroupBox, QMessageBox, QProgressDialog, QStatusBar,
    QToolBar, QComboBox, QSpinBox, QSlider, QLineEdit, QApplication,
)
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QAction, QKeySequence, QShortcut

from pan_crop_tool.config import (
    CROP_TYPES, CROP_TYPE_EXTENSIONS, IMAGE_EXTENSIONS,
    SCALE_MIN, SCALE_MAX, SCALE_DEFAULT, CropConfig,
)
from pan_crop_tool.crop_widget import CropCanvasWidget, ImageLoaderThread
from pan_crop_tool.errors import CropError, DecodeFailure, NotReady
from pan_crop_tool.image_io import get_image_size, revoke_object_url, save_file
from pan_crop_tool.settings import load_settings, save_settings
from pan_crop_tool.worker import render_export


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Pan Crop Tool")
        self.setMinimumSize(900, 500)
        self.resize(1280, 800)

        self._config = load_settings()
        self._image_path: Path | None = None
        self._output_root: Path | None = None
        self._loader: ImageLoaderThread | None = None

        self._build_ui()
        self._update_button_states()

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        self._build_toolbar()

        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QHBoxLayout(central)
        main_layout.setContentsMargins(4, 4, 4, 4)

        self._crop_widget = CropCanvasWidget(self._config)
        self._crop_widget.frame_changed.connect(self._update_crop_info)
        main_layout.addWidget(self._crop_widget, stretch=1)

        right_panel = QWidget()
        right_panel.setFixedWidth(260)
        right_layout = QVBoxLayout(right_panel)
        right_layout.setContentsMargins(0, 0, 0, 0)
        right_layout.addWidget(self._build_crop_group())
        right_layout.addWidget(self._build_zoom_group())
        right_layout.addWidget(self._build_export_group())
        self._crop_info_label = QLabel("Offset: —")
        self._crop_info_label.setWordWrap(True)
        right_layout.addWidget(self._crop_info_label)
        right_layout.addStretch()
        main_layout.addWidget(right_panel)

        self._status = QStatusBar()
        self.setStatusBar(self._status)
        self._status.showMessage("Open an image to begin.")

        QShortcut(QKeySequence(Qt.Key.Key_Plus), self, lambda: self._zoom_slider.setValue(self._zoom_slider.value() + 10))
        QShortcut(QKeySequence(Qt.Key.Key_Minus), self, lambda: self._zoom_slider.setValue(self._zoom_slider.value() - 10))
        QShortcut(QKeySequence(Qt.Key.Key_0), self, lambda: self._zoom_slider.setValue(SCALE_DEFAULT))

    def _build_toolbar(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        act_open = QAction("📂 Open Image", self)
        act_open.setShortcut(QKeySequence.StandardKey.Open)
        act_open.triggered.connect(self._select_image)
        toolbar.addAction(act_open)

        act_output = QAction("💾 Set Output Folder", self)
        act_output.triggered.connect(self._select_output_folder)
        toolbar.addAction(act_output)

        toolbar.addSeparator()

        act_export = QAction("▶ Export Crop", self)
        act_export.setShortcut(QKeySequence.StandardKey.Save)
        act_export.triggered.connect(self._export_current)
        toolbar.addAction(act_export)
        self._act_export = act_export

    def _build_crop_group(self) -> QGroupBox:
        group = QGroupBox("Crop Size")
        layout = QVBoxLayout(group)

        row = QHBoxLayout()
        self._crop_w_spin = QSpinBox()
        self._crop_w_spin.setRange(1, 20000)
        self._crop_w_spin.setValue(self._config.crop_width)
        self._crop_h_spin = QSpinBox()
        self._crop_h_spin.setRange(1, 20000)
        self._crop_h_spin.setValue(self._config.crop_height)
        row.addWidget(self._crop_w_spin)
        row.addWidget(QLabel("×"))
        row.addWidget(self._crop_h_spin)
        layout.addLayout(row)

        apply_btn = QPushButton("Apply Size")
        apply_btn.setToolTip("Changing the crop size starts a new session and recenters the image")
        apply_btn.clicked.connect(self._apply_crop_size)
        layout.addWidget(apply_btn)
        return group

    def _build_zoom_group(self) -> QGroupBox:
        group = QGroupBox("Zoom")
        layout = QHBoxLayout(group)
        self._zoom_slider = QSlider(Qt.Orientation.Horizontal)
        self._zoom_slider.setRange(SCALE_MIN, SCALE_MAX)
        self._zoom_slider.setValue(int(min(max(self._config.scale, SCALE_MIN), SCALE_MAX)))
        layout.addWidget(self._zoom_slider, stretch=1)
        self._zoom_label = QLabel(f"{self._zoom_slider.value()}%")
        self._zoom_label.setFixedWidth(40)
        layout.addWidget(self._zoom_label)
        self._zoom_slider.valueChanged.connect(self._on_zoom_changed)
        return group

    def _build_export_group(self) -> QGroupBox:
        group = QGroupBox("Export Settings")
        layout = QVBoxLayout(group)

        fmt_row = QHBoxLayout()
        fmt_row.addWidget(QLabel("Format:"))
        self._export_format = QComboBox()
        self._export_format.addItems(list(CROP_TYPES))
        self._export_format.setCurrentText(self._config.crop_type)
        self._export_format.currentTextChanged.connect(self._on_export_format_changed)
        fmt_row.addWidget(self._export_format)
        layout.addLayout(fmt_row)

        quality_row = QHBoxLayout()
        quality_row.addWidget(QLabel("Quality:"))
        self._quality_slider = QSlider(Qt.Orientation.Horizontal)
        self._quality_slider.setRange(0, 100)
        self._quality_slider.setValue(round(self._config.crop_quality * 100))
        quality_row.addWidget(self._quality_slider, stretch=1)
        self._quality_label = QLabel(str(self._quality_slider.value()))
        self._quality_label.setFixedWidth(24)
        quality_row.addWidget(self._quality_label)
        self._quality_slider.valueChanged.connect(lambda v: self._quality_label.setText(str(v)))
        layout.addLayout(quality_row)

        name_row = QHBoxLayout()
        name_row.addWidget(QLabel("File name:"))
        self._file_name = QLineEdit(self._config.crop_file_name)
        name_row.addWidget(self._file_name)
        layout.addLayout(name_row)

        bg_row = QHBoxLayout()
        bg_row.addWidget(QLabel("Background:"))
        self._background = QLineEdit(self._config.crop_image_background)
        self._background.setToolTip("Fill behind transparent images, e.g. white or #ff000080")
        bg_row.addWidget(self._background)
        layout.addLayout(bg_row)

        return group

    # =========================================================================
    # Settings
    # =========================================================================

    def _current_config(self) -> CropConfig:
        """Build a config from the UI.  Raises ValueError on invalid input."""
        return replace(
            self._crop_widget.session.config,
            scale=self._zoom_slider.value(),
            crop_type=self._export_format.currentText(),
            crop_quality=self._quality_slider.value() / 100,
            crop_file_name=self._file_name.text().strip(),
            crop_image_background=self._background.text().strip(),
        )

    def _on_export_format_changed(self, crop_type: str):
        """Keep the file name extension in step with the selected format."""
        name = Path(self._file_name.text().strip() or "image")
        self._file_name.setText(name.stem + CROP_TYPE_EXTENSIONS[crop_type])

    def _apply_crop_size(self):
        try:
            config = replace(
                self._crop_widget.session.config,
                crop_width=self._crop_w_spin.value(),
                crop_height=self._crop_h_spin.value(),
                scale=self._zoom_slider.value(),
            )
        except ValueError as exc:
            QMessageBox.warning(self, "Invalid crop size", str(exc))
            return
        self._crop_widget.set_config(config)
        self._status.showMessage(f"Crop size {config.crop_width} × {config.crop_height}")

    def _on_zoom_changed(self, value: int):
        self._zoom_label.setText(f"{value}%")
        self._crop_widget.set_scale(value)

    def _update_crop_info(self):
        session = self._crop_widget.session
        if not self._crop_widget.has_image():
            self._crop_info_label.setText("Offset: —")
            return
        off = session.offset
        cfg = session.config
        self._crop_info_label.setText(
            f"Offset: {off.x:.0f}, {off.y:.0f}\n"
            f"Output: {cfg.crop_width} × {cfg.crop_height} @ {session.scale:g}%"
        )

    # =========================================================================
    # Image loading
    # =========================================================================

    def _select_image(self):
        patterns = " ".join(f"*{ext}" for ext in sorted(IMAGE_EXTENSIONS))
        path, _ = QFileDialog.getOpenFileName(self, "Open Image", "", f"Images ({patterns})")
        if path:
            self._load_image(Path(path))

    def _select_output_folder(self):
        folder = QFileDialog.getExistingDirectory(self, "Select Output Folder")
        if folder:
            self._output_root = Path(folder)
            self._status.showMessage(f"Output: {self._output_root}")

    def _load_image(self, path: Path):
        self._image_path = path
        self._crop_widget.clear()
        self._crop_widget.set_loading(True)

        # Detach any previous loader.  A running decode cannot be interrupted;
        # it finishes in the background and its result goes nowhere.
        if self._loader is not None:
            try:
                self._loader.loaded.disconnect()
                self._loader.error.disconnect()
            except (TypeError, RuntimeError):
                pass  # Already disconnected or destroyed

        try:
            width, height = get_image_size(path)
        except DecodeFailure:
            # The loader reports the failure
            self._status.showMessage(f"Loading {path.name}…")
        else:
            self._status.showMessage(f"Loading {path.name} ({width} × {height})…")

        self._loader = ImageLoaderThread(path, self)
        self._loader.loaded.connect(lambda image, p=path: self._on_image_loaded(p, image))
        self._loader.error.connect(self._on_image_load_error)
        self._loader.start()
        self._update_button_states()

    def _on_image_loaded(self, path: Path, image):
        """Called when background image loading completes."""
        if path != self._image_path:
            return  # User picked another file before loading finished
        self._crop_widget.set_image(image)
        self._crop_widget.set_scale(self._zoom_slider.value())
        self._status.showMessage(f"{path.name}: {image.width} × {image.height}")
        self._update_button_states()

    def _on_image_load_error(self, error: str):
        """Called when background image loading fails."""
        self._crop_widget.set_image_error(error)
        self._status.showMessage(f"Failed to load image: {error}")
        self._update_button_states()

    # =========================================================================
    # Export
    # =========================================================================

    def _update_button_states(self):
        self._act_export.setEnabled(self._crop_widget.has_image())

    def _ensure_output_folder(self) -> bool:
        if self._output_root is None:
            self._select_output_folder()
        return self._output_root is not None

    def _export_current(self):
        try:
            config = self._current_config()
            job = self._crop_widget.session.prepare_export()
        except NotReady:
            self._status.showMessage("Nothing to export yet — open an image first.")
            return
        except ValueError as exc:
            QMessageBox.warning(self, "Invalid export settings", str(exc))
            return
        if not self._ensure_output_folder():
            return
        job = replace(job, config=config)

        progress = QProgressDialog(f"Exporting: {config.crop_file_name}…", None, 0, 0, self)
        progress.setWindowModality(Qt.WindowModality.WindowModal)
        progress.setMinimumDuration(0)
        progress.setValue(0)
        QApplication.processEvents()

        try:
            with ThreadPoolExecutor(max_workers=1) as executor:
                future = executor.submit(render_export, job)
                while not future.done():
                    QApplication.processEvents()
                    time.sleep(0.05)
                result = future.result()
            out_path = save_file(result.file, self._output_root)
            revoke_object_url(result.object_url)
        except (CropError, OSError) as exc:
            progress.close()
            QMessageBox.critical(self, "Error", f"Failed to export {config.crop_file_name}:\n{exc}")
            return

        progress.close()
        self._config = config
        self._status.showMessage(f"Exported: {out_path}")

    def closeEvent(self, event):
        """Remember the crop settings and tear down the session before closing."""
        try:
            save_settings(self._current_config())
        except ValueError:
            save_settings(self._config)
        self._crop_widget.shutdown()
        super().closeEvent(event)
