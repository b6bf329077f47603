"""
Preview Worker - Async Preview Generation
=========================================
Runs the imaging pipeline off the UI thread.

Components:
- PreviewWorker: one QThread per request, cooperatively cancellable
- PreviewDebouncer: collapses bursts of requests (e.g. window resizes)
- PreviewManager: keeps at most one active worker; a new request cancels
  the previous one without blocking the UI thread on it

The worker never touches Qt GUI classes, it emits the PreviewResult and the
UI converts the preview bytes with bytes_to_qpixmap().
"""

import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Set, Tuple

from PyQt6.QtCore import QThread, pyqtSignal, QTimer, QObject, QMutex, QMutexLocker
from PyQt6.QtGui import QPixmap

from imgresizer.core.codec import read_image_file
from imgresizer.core.errors import DecodeError
from imgresizer.core.pipeline import (
    ImagingPipeline, PipelineConfig, PreviewResult, LOAD_ERROR_MESSAGE
)


@dataclass
class PreviewRequest:
    """A single preview request from the UI."""
    image_path: Optional[Path] = None
    bounding_size: Tuple[int, int] = (400, 300)
    config: PipelineConfig = field(default_factory=PipelineConfig)


def bytes_to_qpixmap(data: bytes) -> QPixmap:
    """Decode encoded image bytes into a QPixmap (null pixmap on failure)."""
    pixmap = QPixmap()
    pixmap.loadFromData(data)
    return pixmap


class PreviewWorker(QThread):
    """
    Worker thread that builds a single preview.

    Signals:
        preview_ready(PreviewResult): Emitted when the preview was built
        preview_error(str): Emitted with a user-facing message on failure
    """

    preview_ready = pyqtSignal(object)
    preview_error = pyqtSignal(str)

    def __init__(self, request: PreviewRequest, parent=None):
        super().__init__(parent)
        self.request = request
        self._pipeline = ImagingPipeline(request.config)

    def cancel(self):
        """Request cancellation of this worker."""
        self._pipeline.cancel()

    @property
    def is_cancelled(self) -> bool:
        return self._pipeline.is_cancelled

    def run(self):
        try:
            if self.is_cancelled:
                return

            if self.request.image_path is None:
                self.preview_error.emit("No image selected")
                return

            try:
                source_bytes = read_image_file(self.request.image_path)
            except DecodeError:
                self.preview_error.emit(LOAD_ERROR_MESSAGE)
                return

            result: Optional[PreviewResult] = self._pipeline.build_preview(
                source_bytes, self.request.bounding_size
            )

            if result is None or self.is_cancelled:
                return

            if result.success:
                self.preview_ready.emit(result)
            else:
                self.preview_error.emit(result.error_message)

        except Exception as e:
            if not self.is_cancelled:
                self.preview_error.emit(f"Preview failed: {str(e)}")
                traceback.print_exc()


class PreviewDebouncer(QObject):
    """
    Debounce helper for preview requests.

    Only the last request within the delay window is emitted.
    """

    preview_requested = pyqtSignal(object)

    def __init__(self, delay_ms: int = 150, parent=None):
        super().__init__(parent)
        self._delay_ms = delay_ms
        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.timeout.connect(self._on_timeout)
        self._pending_request: Optional[PreviewRequest] = None
        self._mutex = QMutex()

    def request_preview(self, request: PreviewRequest):
        with QMutexLocker(self._mutex):
            self._pending_request = request
            self._timer.stop()
            self._timer.start(self._delay_ms)

    def cancel(self):
        """Drop any pending request."""
        with QMutexLocker(self._mutex):
            self._timer.stop()
            self._pending_request = None

    def _on_timeout(self):
        with QMutexLocker(self._mutex):
            request = self._pending_request
            self._pending_request = None
        if request is not None:
            self.preview_requested.emit(request)


class PreviewManager(QObject):
    """
    High-level manager for preview generation.

    USAGE:
        manager = PreviewManager()
        manager.preview_updated.connect(on_preview_ready)
        manager.request_preview(request)             # immediate (browse)
        manager.request_preview(request, debounce=True)  # resize storms
    """

    preview_updated = pyqtSignal(object)  # PreviewResult
    preview_error = pyqtSignal(str)
    preview_started = pyqtSignal()

    def __init__(self, debounce_ms: int = 150, parent=None):
        super().__init__(parent)

        self._debouncer = PreviewDebouncer(debounce_ms, self)
        self._debouncer.preview_requested.connect(self._start_preview_worker)

        self._current_worker: Optional[PreviewWorker] = None
        # Cancelled workers still finishing their current stage
        self._retired_workers: Set[PreviewWorker] = set()
        self._mutex = QMutex()

    def request_preview(self, request: PreviewRequest, debounce: bool = False):
        """Request a preview; a new request supersedes any running one."""
        if debounce:
            self._debouncer.request_preview(request)
        else:
            self._debouncer.cancel()
            self._start_preview_worker(request)

    def cancel(self):
        """
        Cancel all pending and in-progress preview work.

        Blocks until every worker thread has exited, so it is safe to call
        right before the application quits.
        """
        self._debouncer.cancel()
        self._cancel_current_worker()

        with QMutexLocker(self._mutex):
            retired = list(self._retired_workers)
            self._retired_workers.clear()

        for worker in retired:
            try:
                worker.finished.disconnect()
            except (TypeError, RuntimeError):
                pass  # already disconnected
            worker.wait()
            worker.deleteLater()

    def _cancel_current_worker(self):
        with QMutexLocker(self._mutex):
            worker = self._current_worker
            self._current_worker = None

        if worker is None:
            return

        worker.cancel()
        try:
            worker.preview_ready.disconnect()
            worker.preview_error.disconnect()
            worker.finished.disconnect()
        except (TypeError, RuntimeError):
            pass  # already disconnected

        # Give the worker a moment to stop
        if worker.wait(50):
            worker.deleteLater()
            return

        # Still inside a stage; it exits at the next cancel check
        with QMutexLocker(self._mutex):
            self._retired_workers.add(worker)
        worker.finished.connect(self._on_retired_worker_finished)

    def _start_preview_worker(self, request: PreviewRequest):
        self._cancel_current_worker()

        self.preview_started.emit()

        worker = PreviewWorker(request)
        worker.preview_ready.connect(self._on_preview_ready)
        worker.preview_error.connect(self._on_preview_error)
        worker.finished.connect(self._on_worker_finished)

        with QMutexLocker(self._mutex):
            self._current_worker = worker
        worker.start()

    def _on_preview_ready(self, result: PreviewResult):
        self.preview_updated.emit(result)

    def _on_preview_error(self, error: str):
        self.preview_error.emit(error)

    def _on_worker_finished(self):
        worker = self.sender()
        with QMutexLocker(self._mutex):
            if worker is None or worker is not self._current_worker:
                return
            self._current_worker = None
        worker.deleteLater()

    def _on_retired_worker_finished(self):
        worker = self.sender()
        with QMutexLocker(self._mutex):
            if worker not in self._retired_workers:
                return
            self._retired_workers.discard(worker)
        worker.deleteLater()
