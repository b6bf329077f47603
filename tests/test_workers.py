"""
Test script for worker threads and settings.

Run with: python -m pytest tests/test_workers.py -v
Or simply: python tests/test_workers.py
"""

import gc
import os
import sys
import tempfile
import time
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import numpy as np
import pytest
from PIL import Image

from PyQt6.QtWidgets import QApplication
from PyQt6.QtCore import QEventLoop, QObject, QTimer, QSettings, pyqtSignal

from imgresizer.core.models import FontSpec, PhotoFormat
from imgresizer.core.pipeline import PipelineConfig, PreviewResult, WatermarkSettings
from imgresizer.settings import (
    KEY_OPACITY, KEY_QUALITY, KEY_IS_TRIAL, load_pipeline_config,
    save_pipeline_config
)
from imgresizer.workers import (
    PreviewManager, PreviewRequest, PreviewWorker, bytes_to_qpixmap
)
from imgresizer.workers import preview_worker

# Global QApplication instance
_app = None


def get_app():
    """Get or create QApplication instance."""
    global _app
    if _app is None:
        _app = QApplication.instance() or QApplication(sys.argv)
    return _app


def safe_delete(file_path: Path, max_retries: int = 3, delay: float = 0.5):
    """Safely delete a file with retry logic."""
    if not file_path or not file_path.exists():
        return

    for attempt in range(max_retries):
        try:
            gc.collect()
            file_path.unlink()
            return
        except PermissionError:
            if attempt < max_retries - 1:
                time.sleep(delay)
            else:
                print(f"Warning: Could not delete {file_path}")


def create_test_image(width: int = 800, height: int = 400) -> Path:
    """Create a gradient PNG on disk."""
    xs = np.linspace(0, 255, width, dtype=np.float32)[np.newaxis, :]
    arr = np.zeros((height, width, 3), dtype=np.uint8)
    arr[..., 0] = np.broadcast_to(xs, (height, width)).astype(np.uint8)
    arr[..., 1] = 64

    img = Image.fromarray(arr)
    temp_path = Path(tempfile.mktemp(suffix=".png"))
    img.save(temp_path)
    img.close()
    return temp_path


def wait_for_signal(signal, timeout_ms: int = 30000):
    """
    Wait for a Qt signal with timeout.

    Returns:
        The value emitted by the signal, or None if timeout.
    """
    get_app()
    loop = QEventLoop()
    result = [None]

    def on_signal(*args):
        result[0] = args[0] if len(args) == 1 else args
        loop.quit()

    signal.connect(on_signal)

    timer = QTimer()
    timer.setSingleShot(True)
    timer.timeout.connect(loop.quit)
    timer.start(timeout_ms)

    loop.exec()
    timer.stop()

    return result[0]


def test_preview_worker_success():
    print("\n" + "=" * 50)
    print("Testing PreviewWorker - Success")
    print("=" * 50)

    get_app()
    test_image = create_test_image()

    try:
        worker = PreviewWorker(PreviewRequest(image_path=test_image, bounding_size=(300, 300)))
        errors = []
        worker.preview_error.connect(errors.append)

        worker.start()
        result = wait_for_signal(worker.preview_ready)
        worker.wait()

        assert result is not None, "Worker timed out"
        assert isinstance(result, PreviewResult)
        assert result.success
        assert tuple(result.preview_size) == (300, 150)
        assert tuple(result.source_size) == (800, 400)
        assert not errors

        pixmap = bytes_to_qpixmap(result.preview_bytes)
        assert not pixmap.isNull()
        assert (pixmap.width(), pixmap.height()) == (300, 150)

        print(f"   {result.status_text()}")

    finally:
        gc.collect()
        safe_delete(test_image)


def test_preview_worker_corrupt_file():
    print("\n" + "=" * 50)
    print("Testing PreviewWorker - Corrupt File")
    print("=" * 50)

    get_app()
    bad_file = Path(tempfile.mktemp(suffix=".jpg"))
    bad_file.write_bytes(b"this is not a jpeg")

    try:
        worker = PreviewWorker(PreviewRequest(image_path=bad_file))
        worker.start()
        message = wait_for_signal(worker.preview_error)
        worker.wait()

        assert message == "Could not load image"

    finally:
        safe_delete(bad_file)


def test_preview_worker_missing_file():
    get_app()
    missing = Path(tempfile.gettempdir()) / "no-such-image-here.png"

    worker = PreviewWorker(PreviewRequest(image_path=missing))
    worker.start()
    message = wait_for_signal(worker.preview_error)
    worker.wait()

    assert message == "Could not load image"


def test_preview_worker_without_image():
    get_app()

    worker = PreviewWorker(PreviewRequest(image_path=None))
    worker.start()
    message = wait_for_signal(worker.preview_error)
    worker.wait()

    assert message == "No image selected"


def test_preview_worker_cancelled_before_start():
    get_app()
    test_image = create_test_image(200, 100)

    try:
        worker = PreviewWorker(PreviewRequest(image_path=test_image))
        emitted = []
        worker.preview_ready.connect(emitted.append)
        worker.preview_error.connect(emitted.append)

        worker.cancel()
        worker.start()
        assert worker.wait(10000)
        get_app().processEvents()

        assert worker.is_cancelled
        assert emitted == []

    finally:
        safe_delete(test_image)


def test_preview_manager_latest_request_wins():
    print("\n" + "=" * 50)
    print("Testing PreviewManager - Supersede")
    print("=" * 50)

    get_app()
    test_image = create_test_image()

    try:
        manager = PreviewManager(debounce_ms=10)
        received = []
        manager.preview_updated.connect(received.append)

        manager.request_preview(PreviewRequest(image_path=test_image, bounding_size=(100, 100)))
        manager.request_preview(PreviewRequest(image_path=test_image, bounding_size=(200, 200)))

        result = wait_for_signal(manager.preview_updated)

        assert result is not None, "Manager timed out"
        assert tuple(result.preview_size) == (200, 100)
        assert all(tuple(r.preview_size) == (200, 100) for r in received)

        manager.cancel()

    finally:
        gc.collect()
        safe_delete(test_image)


class SlowPreviewWorker(PreviewWorker):
    """Spends a second in a stage that does not check for cancellation."""

    def run(self):
        time.sleep(1.0)
        super().run()


class StandInWorker(QObject):
    finished = pyqtSignal()


def test_preview_manager_supersede_does_not_block(monkeypatch):
    print("\n" + "=" * 50)
    print("Testing PreviewManager - Non-blocking Supersede")
    print("=" * 50)

    get_app()
    test_image = create_test_image()
    monkeypatch.setattr(preview_worker, "PreviewWorker", SlowPreviewWorker)

    try:
        manager = PreviewManager()
        received = []
        manager.preview_updated.connect(received.append)

        manager.request_preview(PreviewRequest(image_path=test_image, bounding_size=(100, 100)))

        started = time.monotonic()
        manager.request_preview(PreviewRequest(image_path=test_image, bounding_size=(200, 200)))
        elapsed = time.monotonic() - started

        assert elapsed < 0.5, f"Superseding blocked for {elapsed:.2f}s"
        assert len(manager._retired_workers) == 1

        result = wait_for_signal(manager.preview_updated)

        assert result is not None, "Manager timed out"
        assert tuple(result.preview_size) == (200, 100)
        assert all(tuple(r.preview_size) == (200, 100) for r in received)

        manager.cancel()
        assert not manager._retired_workers
        assert manager._current_worker is None

    finally:
        gc.collect()
        safe_delete(test_image)


def test_preview_manager_ignores_finished_from_other_worker(monkeypatch):
    get_app()
    test_image = create_test_image(200, 100)
    monkeypatch.setattr(preview_worker, "PreviewWorker", SlowPreviewWorker)

    try:
        manager = PreviewManager()
        manager.request_preview(PreviewRequest(image_path=test_image, bounding_size=(50, 50)))
        current = manager._current_worker
        assert current is not None

        # A late finished signal from some other worker
        stale = StandInWorker()
        stale.finished.connect(manager._on_worker_finished)
        stale.finished.emit()

        assert manager._current_worker is current
        assert current.isRunning()

        result = wait_for_signal(manager.preview_updated)
        assert result is not None, "Manager timed out"
        assert tuple(result.preview_size) == (50, 25)

        manager.cancel()

    finally:
        gc.collect()
        safe_delete(test_image)


def test_preview_manager_debounce():
    get_app()
    test_image = create_test_image(400, 400)

    try:
        manager = PreviewManager(debounce_ms=30)
        started = []
        manager.preview_started.connect(lambda: started.append(True))

        for size in (50, 60, 70, 80):
            manager.request_preview(
                PreviewRequest(image_path=test_image, bounding_size=(size, size)),
                debounce=True
            )

        result = wait_for_signal(manager.preview_updated)

        assert result is not None, "Manager timed out"
        assert tuple(result.preview_size) == (80, 80)
        assert len(started) == 1

        manager.cancel()

    finally:
        gc.collect()
        safe_delete(test_image)


def test_settings_round_trip():
    print("\n" + "=" * 50)
    print("Testing Settings")
    print("=" * 50)

    get_app()
    ini_path = Path(tempfile.mktemp(suffix=".ini"))

    try:
        settings = QSettings(str(ini_path), QSettings.Format.IniFormat)
        config = PipelineConfig(
            is_trial_version=True,
            output_format=PhotoFormat.PNG,
            output_quality=42,
            watermark_settings=WatermarkSettings(
                font=FontSpec(path="/fonts/custom.ttf", size=28),
                offset_x=-12,
                offset_y=7,
                rotation=-30.5,
                opacity=65
            )
        )

        save_pipeline_config(settings, config)
        loaded = load_pipeline_config(QSettings(str(ini_path), QSettings.Format.IniFormat))

        assert loaded.is_trial_version is True
        assert loaded.output_format is PhotoFormat.PNG
        assert loaded.output_quality == 42
        assert loaded.watermark_settings == config.watermark_settings

    finally:
        safe_delete(ini_path)


def test_settings_defaults_and_clamping():
    get_app()
    ini_path = Path(tempfile.mktemp(suffix=".ini"))

    try:
        settings = QSettings(str(ini_path), QSettings.Format.IniFormat)
        assert load_pipeline_config(settings) == PipelineConfig()

        settings.setValue(KEY_QUALITY, "not a number")
        settings.setValue(KEY_OPACITY, 500)
        settings.setValue(KEY_IS_TRIAL, "maybe")
        settings.sync()

        loaded = load_pipeline_config(settings)
        assert loaded.output_quality == PipelineConfig().output_quality
        assert loaded.watermark_settings.opacity == 100
        assert loaded.is_trial_version is False

    finally:
        safe_delete(ini_path)


def main():
    """Run all tests."""
    return pytest.main([__file__, "-v"])


if __name__ == "__main__":
    sys.exit(main())
