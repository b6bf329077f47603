"""
Main Window
===========
Browse for an image, show it next to its size-constrained preview and save
the re-encoded output.
"""

from pathlib import Path
from typing import Optional

from PyQt6.QtCore import Qt, QSettings, QSize, pyqtSignal
from PyQt6.QtGui import QCloseEvent, QPixmap
from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QLabel, QLineEdit,
    QPushButton, QFileDialog, QMessageBox, QSizePolicy, QStatusBar
)

IMAGE_FILTER = "Images (*.jpg *.jpeg *.png *.bmp *.gif *.tif *.tiff *.ico);;All files (*)"


class ImagePane(QLabel):
    """
    Label that shows a pixmap scaled to fit, or a placeholder/error text.
    """

    def __init__(self, placeholder: str, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self._placeholder = placeholder
        self._pixmap: Optional[QPixmap] = None
        self._scale_to_fit = True

        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setMinimumSize(240, 180)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setStyleSheet("QLabel { background-color: #1E2025; color: #9CA3AF; }")
        self.clear_image()

    def set_image(self, pixmap: QPixmap, scale_to_fit: bool = True):
        self._pixmap = pixmap
        self._scale_to_fit = scale_to_fit
        self._update_display()

    def clear_image(self):
        self._pixmap = None
        self.setPixmap(QPixmap())
        self.setText(self._placeholder)

    def _update_display(self):
        if self._pixmap is None or self._pixmap.isNull():
            self.clear_image()
            return

        if self._scale_to_fit:
            shown = self._pixmap.scaled(
                self.size(),
                Qt.AspectRatioMode.KeepAspectRatio,
                Qt.TransformationMode.SmoothTransformation
            )
        else:
            shown = self._pixmap
        self.setPixmap(shown)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        if self._pixmap is not None:
            self._update_display()


class MainWindow(QMainWindow):
    """
    Application main window.

    Signals:
        image_selected(Path): User picked a source image
        preview_area_resized(QSize): The preview viewport changed size
        save_requested(Path): User chose a destination for the output
    """

    image_selected = pyqtSignal(object)
    preview_area_resized = pyqtSignal(object)
    save_requested = pyqtSignal(object)

    KEY_LAST_DIR = "ui/last_dir"
    KEY_WINDOW_GEOMETRY = "ui/geometry"

    def __init__(self, settings: QSettings, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self._settings = settings

        self.setWindowTitle("ImgResizer")
        self.resize(960, 600)

        self._setup_ui()
        self._restore_settings()

    def _setup_ui(self):
        central = QWidget(self)
        layout = QVBoxLayout(central)

        # Path row
        path_row = QHBoxLayout()
        self.path_edit = QLineEdit()
        self.path_edit.setReadOnly(True)
        self.path_edit.setPlaceholderText("Select an image...")
        path_row.addWidget(self.path_edit, 1)

        self.browse_btn = QPushButton("Browse...")
        self.browse_btn.clicked.connect(self._on_browse_clicked)
        path_row.addWidget(self.browse_btn)

        self.save_btn = QPushButton("Save As...")
        self.save_btn.setEnabled(False)
        self.save_btn.clicked.connect(self._on_save_clicked)
        path_row.addWidget(self.save_btn)
        layout.addLayout(path_row)

        # Image panes
        panes = QHBoxLayout()
        self.source_pane = ImagePane("Selected image")
        self.preview_pane = ImagePane("Preview")
        panes.addWidget(self.source_pane, 1)
        panes.addWidget(self.preview_pane, 1)
        layout.addLayout(panes, 1)

        self.setCentralWidget(central)
        self.setStatusBar(QStatusBar(self))

    # ===== Settings =====

    def _restore_settings(self):
        geometry = self._settings.value(self.KEY_WINDOW_GEOMETRY)
        if geometry:
            self.restoreGeometry(geometry)

    def _save_settings(self):
        self._settings.setValue(self.KEY_WINDOW_GEOMETRY, self.saveGeometry())
        self._settings.sync()

    def closeEvent(self, event: QCloseEvent):
        self._save_settings()
        super().closeEvent(event)

    # ===== Slots =====

    def _on_browse_clicked(self):
        start_dir = self._settings.value(self.KEY_LAST_DIR, "")
        file_name, _ = QFileDialog.getOpenFileName(
            self, "Select Image", start_dir, IMAGE_FILTER
        )
        if not file_name:
            return

        path = Path(file_name)
        self._settings.setValue(self.KEY_LAST_DIR, str(path.parent))
        self.path_edit.setText(str(path))
        self.source_pane.set_image(QPixmap(str(path)))
        self.image_selected.emit(path)

    def _on_save_clicked(self):
        source = Path(self.path_edit.text()) if self.path_edit.text() else None
        suggested = str(source.with_name(f"{source.stem}_resized")) if source else ""
        file_name, _ = QFileDialog.getSaveFileName(self, "Save Image", suggested)
        if file_name:
            self.save_requested.emit(Path(file_name))

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.preview_area_resized.emit(self.preview_size())

    # ===== Public API =====

    def preview_size(self) -> QSize:
        """Size of the preview viewport in pixels."""
        return self.preview_pane.size()

    def set_preview(self, pixmap: QPixmap):
        # The pipeline already sized the preview to the viewport
        self.preview_pane.set_image(pixmap, scale_to_fit=False)
        self.save_btn.setEnabled(True)

    def set_busy(self, busy: bool):
        self.browse_btn.setEnabled(not busy)
        if busy:
            self.show_message("Generating preview...")

    def show_message(self, message: str, timeout: int = 0):
        self.statusBar().showMessage(message, timeout)

    def show_error(self, title: str, message: str):
        QMessageBox.critical(self, title, message)
