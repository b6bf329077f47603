"""
Workers Module - Async Thread Management
========================================
Contains QThread workers so image decoding and resizing never block the UI.

Components:
- PreviewWorker: builds one preview with cooperative cancellation
- PreviewManager: supersedes in-flight work when a new request arrives
"""

from .preview_worker import (
    PreviewWorker, PreviewRequest, PreviewDebouncer, PreviewManager,
    bytes_to_qpixmap
)

__all__ = [
    "PreviewWorker",
    "PreviewRequest",
    "PreviewDebouncer",
    "PreviewManager",
    "bytes_to_qpixmap",
]
