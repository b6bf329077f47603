"""
ImgResizer - Main Entry Point
=============================
A desktop application that previews, watermarks and re-encodes images.

Usage:
    python main.py

Architecture:
    - Model: imgresizer/core/ (pure imaging pipeline)
    - View: imgresizer/ui/ (PyQt6 interface)
    - Controller: This file (signal/slot connections)
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QSize
from PyQt6.QtWidgets import QApplication

from imgresizer.core.codec import write_bytes
from imgresizer.core.errors import EncodeError
from imgresizer.core.pipeline import PreviewResult
from imgresizer.settings import create_settings, load_pipeline_config
from imgresizer.ui import MainWindow
from imgresizer.workers import PreviewManager, PreviewRequest, bytes_to_qpixmap

logger = logging.getLogger(__name__)


class ResizerController:
    """
    Controller class that connects UI signals to the preview manager.

    Responsibilities:
    - Turn browse/resize events into preview requests
    - Show previews, status text and errors
    - Write the last output buffer on save
    """

    def __init__(self, main_window: MainWindow):
        self.window = main_window
        self._settings = create_settings()
        self._preview_manager = PreviewManager(parent=main_window)

        self._image_path: Optional[Path] = None
        self._last_result: Optional[PreviewResult] = None

        self._connect_signals()

    def _connect_signals(self):
        self.window.image_selected.connect(self._on_image_selected)
        self.window.preview_area_resized.connect(self._on_preview_area_resized)
        self.window.save_requested.connect(self._on_save_requested)

        self._preview_manager.preview_started.connect(self._on_preview_started)
        self._preview_manager.preview_updated.connect(self._on_preview_ready)
        self._preview_manager.preview_error.connect(self._on_preview_error)

    def _make_request(self, viewport: QSize) -> PreviewRequest:
        return PreviewRequest(
            image_path=self._image_path,
            bounding_size=(max(1, viewport.width()), max(1, viewport.height())),
            config=load_pipeline_config(self._settings)
        )

    # ===== Preview =====

    def _on_image_selected(self, path: Path):
        self._image_path = path
        self._preview_manager.request_preview(self._make_request(self.window.preview_size()))

    def _on_preview_area_resized(self, viewport: QSize):
        if self._image_path is None:
            return
        self._preview_manager.request_preview(self._make_request(viewport), debounce=True)

    def _on_preview_started(self):
        self.window.set_busy(True)

    def _on_preview_ready(self, result: PreviewResult):
        self.window.set_busy(False)
        self._last_result = result
        self.window.set_preview(bytes_to_qpixmap(result.preview_bytes))
        self.window.show_message(result.status_text())

    def _on_preview_error(self, message: str):
        # Previous preview stays on screen
        self.window.set_busy(False)
        self.window.show_message("")
        self.window.show_error("Error", message)

    # ===== Save =====

    def _on_save_requested(self, path: Path):
        result = self._last_result
        if result is None or not result.success:
            return

        if not path.suffix:
            path = path.with_suffix(result.output_format.extension)

        try:
            write_bytes(path, result.output_bytes)
        except EncodeError as e:
            logger.warning("Save failed: %s", e)
            self.window.show_error("Error", f"Could not save image: {e}")
            return

        self.window.show_message(f"Saved {path.name}", 5000)

    def shutdown(self):
        self._preview_manager.cancel()


def main():
    """Application entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    app = QApplication(sys.argv)
    app.setApplicationName("ImgResizer")
    app.setApplicationVersion("1.0.0")
    app.setOrganizationName("ImgResizer")

    window = MainWindow(create_settings())
    controller = ResizerController(window)
    app.aboutToQuit.connect(controller.shutdown)

    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
