"""
Preview Pipeline
================
Turns source image bytes into an on-screen preview plus the bytes that would
be written on save.

Workflow:
1. Decode the source bytes
2. Resize into the bounding box (aspect-preserving)
3. Draw the preview frame (preview only)
4. Apply the trial watermark and/or the configured watermark
5. Encode the unresized image at the output format/quality, and the preview
   at maximum quality
6. Return both buffers with the dimensions needed for the status line

Decode and encode failures become a failed PreviewResult carrying one
user-facing message. Each stage checks a cooperative cancel flag first.
"""

import logging
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Tuple

from PIL import Image

from .codec import decode, encode
from .compositor import DIM_GRAY, ImageCompositor
from .errors import ImagingError
from .models import (
    Alignment, FontSpec, PhotoFormat, Size, TextWatermark, WatermarkSpec,
    clamp_percent
)

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Could not load image"
TRIAL_TEXT = "TRIAL - VERSION"


@dataclass(frozen=True)
class WatermarkSettings:
    """Settings for the trial watermark."""
    text: str = TRIAL_TEXT
    font: FontSpec = field(default_factory=FontSpec)
    color: Tuple[int, int, int] = (255, 255, 255)
    alignment: Alignment = field(default_factory=Alignment)
    offset_x: int = 0
    offset_y: int = 0
    rotation: float = 0.0
    opacity: int = 50  # 0-100

    def to_watermark(self) -> TextWatermark:
        return TextWatermark(
            text=self.text,
            font=self.font,
            color=self.color,
            alignment=self.alignment,
            offset_x=self.offset_x,
            offset_y=self.offset_y,
            rotation=self.rotation,
            opacity=clamp_percent(self.opacity)
        )


@dataclass(frozen=True)
class PipelineConfig:
    """
    Read-only configuration for a preview request.

    `watermark` is an optional user watermark applied to both the preview
    and the saved output. The trial watermark only ever marks the preview.
    """
    is_trial_version: bool = False
    output_format: PhotoFormat = PhotoFormat.JPEG
    output_quality: int = 75
    preview_quality: int = 100
    watermark_settings: WatermarkSettings = field(default_factory=WatermarkSettings)
    watermark: Optional[WatermarkSpec] = None
    border_width: int = 2
    border_color: Tuple[int, int, int] = DIM_GRAY

    def __post_init__(self):
        object.__setattr__(self, "output_quality", clamp_percent(self.output_quality))
        object.__setattr__(self, "preview_quality", clamp_percent(self.preview_quality))


class SizeInfo(NamedTuple):
    """Encoded size and pixel dimensions, as shown in the status bar."""
    byte_count: int
    width: int
    height: int

    @property
    def kilobytes(self) -> int:
        return self.byte_count // 1024


@dataclass
class PreviewResult:
    """Result of building a preview."""
    success: bool = False
    error_message: str = ""
    preview_bytes: bytes = b""
    output_bytes: bytes = b""
    source_size: Size = Size(0, 0)
    preview_size: Size = Size(0, 0)
    source_byte_count: int = 0
    output_format: PhotoFormat = PhotoFormat.JPEG

    @property
    def source_info(self) -> SizeInfo:
        return SizeInfo(self.source_byte_count, *self.source_size)

    @property
    def output_info(self) -> SizeInfo:
        return SizeInfo(len(self.output_bytes), *self.preview_size)

    def status_text(self) -> str:
        if not self.success:
            return self.error_message
        src = self.source_info
        out = self.output_info
        return (
            f"File size {src.kilobytes}Kb ({src.width}x{src.height}px), "
            f"On saving {out.kilobytes}Kb ({out.width}x{out.height}px)"
        )


class ImagingPipeline:
    """
    Runs preview requests against a fixed configuration.

    cancel() may be called from another thread; the running build stops at
    the next stage boundary and returns None. Cancellation is permanent, so
    use a fresh pipeline for each superseding request.
    """

    def __init__(self, config: Optional[PipelineConfig] = None,
                 compositor: Optional[ImageCompositor] = None):
        self.config = config or PipelineConfig()
        self.compositor = compositor or ImageCompositor()
        self._is_cancelled = False

    def cancel(self):
        """Request cancellation of the current build."""
        self._is_cancelled = True

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    def _watermark(self, image: Image.Image, trial: bool) -> Image.Image:
        if trial and self.config.is_trial_version:
            image = self.compositor.apply_watermark(
                image, self.config.watermark_settings.to_watermark()
            )
        if self.config.watermark is not None:
            image = self.compositor.apply_watermark(image, self.config.watermark)
        return image

    def render_output(self, original: Image.Image) -> bytes:
        """
        Encode the full-size image as it would be saved.

        The original is copied before the user watermark is drawn, so it is
        never modified.
        """
        config = self.config
        if config.watermark is None:
            return encode(original, config.output_format, config.output_quality)

        with original.copy() as canvas:
            marked = self._watermark(canvas, trial=False)
            try:
                return encode(marked, config.output_format, config.output_quality)
            finally:
                if marked is not canvas:
                    marked.close()

    def build_preview(
            self,
            source_bytes: bytes,
            bounding_size: Tuple[int, int]
    ) -> Optional[PreviewResult]:
        """
        Build a preview for the source image.

        Args:
            source_bytes: Encoded source image.
            bounding_size: (width, height) of the preview area.

        Returns:
            PreviewResult, with success=False and a user-facing message on
            decode/encode failure or an empty preview area, or None if
            cancelled.
        """
        config = self.config

        width, height = bounding_size
        if width < 1 or height < 1:
            logger.warning("Preview area too small: %sx%s", width, height)
            return PreviewResult(success=False, error_message=LOAD_ERROR_MESSAGE)

        try:
            if self._is_cancelled:
                return None
            original = decode(source_bytes)

            with original:
                if self._is_cancelled:
                    return None
                preview = self.compositor.resize(original, bounding_size, True)

                try:
                    if self._is_cancelled:
                        return None
                    preview = self.compositor.draw_border(
                        preview, config.border_width, config.border_color
                    )
                    preview = self._watermark(preview, trial=True)

                    if self._is_cancelled:
                        return None
                    output_bytes = self.render_output(original)
                    preview_bytes = encode(preview, PhotoFormat.JPEG, config.preview_quality)

                    return PreviewResult(
                        success=True,
                        preview_bytes=preview_bytes,
                        output_bytes=output_bytes,
                        source_size=Size(*original.size),
                        preview_size=Size(*preview.size),
                        source_byte_count=len(source_bytes),
                        output_format=config.output_format
                    )
                finally:
                    preview.close()

        except ImagingError as e:
            logger.warning("Preview failed: %s", e, exc_info=True)
            return PreviewResult(success=False, error_message=LOAD_ERROR_MESSAGE)


def build_preview(
        source_bytes: bytes,
        bounding_size: Tuple[int, int],
        config: Optional[PipelineConfig] = None
) -> Optional[PreviewResult]:
    """Convenience wrapper around ImagingPipeline.build_preview."""
    return ImagingPipeline(config).build_preview(source_bytes, bounding_size)
