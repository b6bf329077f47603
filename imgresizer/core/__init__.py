"""
Core Module - Imaging Pipeline
==============================
This module contains no UI dependencies.
Geometry, compositing, encoding and the preview pipeline live here.
"""

from .codec import decode, encode, read_image_file, save_image_to_file
from .compositor import ImageCompositor
from .errors import DecodeError, EncodeError, ImagingError, UnsupportedFormatError
from .geometry import compute_anchor_point, compute_aspect_fit, compute_rotation_transform
from .models import (
    Alignment, FontSpec, HorizontalAlignment, ImageWatermark, PhotoFormat,
    Point, Size, TextWatermark, VerticalAlignment, WatermarkMode
)
from .pipeline import (
    ImagingPipeline, PipelineConfig, PreviewResult, SizeInfo, WatermarkSettings,
    build_preview
)

__all__ = [
    "Alignment",
    "DecodeError",
    "EncodeError",
    "FontSpec",
    "HorizontalAlignment",
    "ImageCompositor",
    "ImageWatermark",
    "ImagingError",
    "ImagingPipeline",
    "PhotoFormat",
    "PipelineConfig",
    "Point",
    "PreviewResult",
    "Size",
    "SizeInfo",
    "TextWatermark",
    "UnsupportedFormatError",
    "VerticalAlignment",
    "WatermarkMode",
    "WatermarkSettings",
    "build_preview",
    "compute_anchor_point",
    "compute_aspect_fit",
    "compute_rotation_transform",
    "decode",
    "encode",
    "read_image_file",
    "save_image_to_file",
]
