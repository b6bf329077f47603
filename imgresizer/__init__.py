"""
ImgResizer Application Package
==============================
A desktop tool that previews an image inside a bounding box, optionally
watermarks it, and re-encodes it at a configurable quality.

Modules:
    - core: Pure imaging logic (no UI dependencies)
    - workers: QThread workers for async preview generation
    - ui: PyQt6 user interface components
    - settings: QSettings-backed configuration

Usage:
    from imgresizer.core import ImagingPipeline, PipelineConfig
    from imgresizer.workers import PreviewManager, PreviewRequest
    from imgresizer.ui import MainWindow
"""

__version__ = "1.0.0"
__app_name__ = "ImgResizer"

from .core import (
    ImagingPipeline, PipelineConfig, PreviewResult, WatermarkSettings,
    build_preview
)

__all__ = [
    "__version__",
    "__app_name__",
    "ImagingPipeline",
    "PipelineConfig",
    "PreviewResult",
    "WatermarkSettings",
    "build_preview",
]
