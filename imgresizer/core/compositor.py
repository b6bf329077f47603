"""
Image Compositor
================
Resampling and watermark compositing using PIL/Pillow.

Technical Notes:
- Resizing always goes through BICUBIC resampling into a fresh image
- A watermark is first rendered to its own RGBA tile, then mapped onto a
  canvas-sized transparent overlay and alpha-composited
- Rotation pivots on the watermark's own centre (see geometry.py); anything
  that lands outside the canvas is clipped
- RGB and RGBA canvases are modified in place and returned; other modes are
  converted first, so always use the return value
"""

from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from .geometry import (
    compute_aspect_fit, compute_anchor_point, compute_rotation_transform,
    RotationTransform
)
from .models import (
    Alignment, FontSpec, Point, Size, WatermarkMode, WatermarkSpec,
    clamp_percent
)

DIM_GRAY = (105, 105, 105)
CHROMA_KEY = (0, 255, 0)

# Tried in order when a FontSpec has no usable path
_FALLBACK_FONTS = (
    "arial.ttf",  # Windows
    "/System/Library/Fonts/Helvetica.ttc",  # macOS
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",  # Linux
)


def _normalize_mode(image: Image.Image) -> Image.Image:
    """Return an RGB/RGBA view of the image (the image itself if already one)."""
    if image.mode in ("RGB", "RGBA"):
        return image
    has_alpha = "A" in image.getbands() or "transparency" in image.info
    return image.convert("RGBA" if has_alpha else "RGB")


class ImageCompositor:
    """
    Resizes images and draws text or bitmap watermarks onto them.

    Fonts are cached per FontSpec, so a single compositor can be reused for
    many requests.
    """

    def __init__(self):
        self._cached_fonts: Dict[FontSpec, ImageFont.ImageFont] = {}

    def get_font(self, font: FontSpec) -> ImageFont.ImageFont:
        """
        Get or create a cached font object.

        Falls back to common system fonts and finally to Pillow's bundled
        default font when the requested file cannot be loaded.
        """
        if font not in self._cached_fonts:
            candidates = []
            if font.path and Path(font.path).exists():
                candidates.append(font.path)
            candidates.extend(_FALLBACK_FONTS)

            loaded: Optional[ImageFont.ImageFont] = None
            for candidate in candidates:
                try:
                    loaded = ImageFont.truetype(candidate, font.size)
                    break
                except OSError:
                    continue

            if loaded is None:
                loaded = ImageFont.load_default(size=font.size)

            self._cached_fonts[font] = loaded

        return self._cached_fonts[font]

    def clear_fonts(self):
        self._cached_fonts.clear()

    # ===== Resize =====

    def resize(
            self,
            image: Image.Image,
            bounding_size: Tuple[int, int],
            maintain_aspect_ratio: bool = True
    ) -> Image.Image:
        """
        Resize an image into a bounding box.

        Args:
            image: Source image, left untouched.
            bounding_size: (width, height) of the box.
            maintain_aspect_ratio: Fit inside the box keeping the aspect ratio
                                   (never upscaling); otherwise stretch to the
                                   exact box size.

        Returns:
            A new RGB or RGBA image.
        """
        if maintain_aspect_ratio:
            target = compute_aspect_fit(image.size, bounding_size)
        else:
            target = Size(*bounding_size)
            if target.width < 1 or target.height < 1:
                raise ValueError(f"Target size must be at least 1x1, got {target}")

        source = _normalize_mode(image)
        try:
            return source.resize(target, Image.Resampling.BICUBIC)
        finally:
            if source is not image:
                source.close()

    def draw_border(
            self,
            image: Image.Image,
            width: int = 2,
            color: Tuple[int, int, int] = DIM_GRAY
    ) -> Image.Image:
        """Draw a frame of `width` pixels just inside the image edge."""
        if width > 0:
            draw = ImageDraw.Draw(image)
            draw.rectangle(
                [0, 0, image.width - 1, image.height - 1],
                outline=color,
                width=width
            )
        return image

    # ===== Watermarks =====

    def _render_text_tile(
            self,
            text: str,
            font: FontSpec,
            color: Tuple[int, int, int],
            alpha: int
    ) -> Optional[Image.Image]:
        """Render text onto a tight transparent tile, or None for blank text."""
        pil_font = self.get_font(font)

        measure = ImageDraw.Draw(Image.new("RGBA", (1, 1), (0, 0, 0, 0)))
        left, top, right, bottom = measure.textbbox((0, 0), text, font=pil_font)
        width = right - left
        height = bottom - top
        if width <= 0 or height <= 0:
            return None

        tile = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(tile)
        draw.text((-left, -top), text, font=pil_font, fill=(*color[:3], alpha))
        return tile

    def _prepare_watermark_image(self, watermark: Image.Image, opacity: int) -> Image.Image:
        """
        Key out pure green and scale alpha by opacity / 100.

        Colour channels are left as they are.
        """
        rgba = np.array(watermark.convert("RGBA"), dtype=np.uint8)

        keyed = (
            (rgba[..., 0] == CHROMA_KEY[0])
            & (rgba[..., 1] == CHROMA_KEY[1])
            & (rgba[..., 2] == CHROMA_KEY[2])
            & (rgba[..., 3] == 255)
        )
        rgba[keyed] = 0

        alpha = rgba[..., 3].astype(np.float32) * (opacity / 100.0)
        rgba[..., 3] = np.clip(np.rint(alpha), 0, 255).astype(np.uint8)

        return Image.fromarray(rgba)

    def _composite_tile(
            self,
            canvas: Image.Image,
            tile: Image.Image,
            anchor: Point,
            transform: RotationTransform
    ) -> Image.Image:
        """Draw an RGBA tile at the anchor, rotated by the transform."""
        canvas = _normalize_mode(canvas)
        origin = (int(anchor.x), int(anchor.y))

        if transform.is_identity:
            overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
            overlay.paste(tile, origin)
        else:
            overlay = tile.transform(
                canvas.size,
                Image.Transform.AFFINE,
                transform.affine_coefficients(origin),
                resample=Image.Resampling.BICUBIC
            )

        with overlay:
            if canvas.mode == "RGBA":
                canvas.alpha_composite(overlay)
            else:
                canvas.paste(overlay, (0, 0), overlay)

        return canvas

    def apply_text_watermark(
            self,
            image: Image.Image,
            text: str,
            font: FontSpec,
            color: Tuple[int, int, int],
            alignment: Alignment,
            offset_x: int = 0,
            offset_y: int = 0,
            rotation: float = 0.0,
            opacity: int = 100
    ) -> Image.Image:
        """
        Draw a text watermark onto an image.

        Args:
            image: Canvas to draw on (modified in place when RGB/RGBA).
            text: Watermark text.
            font: Font descriptor.
            color: RGB text colour.
            alignment: Placement of the text box on the canvas.
            offset_x: Pixel offset added after alignment.
            offset_y: Pixel offset added after alignment.
            rotation: Degrees, clockwise, around the text box centre.
            opacity: 0-100 percent, folded into the colour's alpha.

        Returns:
            The watermarked image.
        """
        alpha = clamp_percent(opacity) * 255 // 100

        tile = self._render_text_tile(text, font, color, alpha)
        if tile is None:
            return _normalize_mode(image)

        with tile:
            anchor = compute_anchor_point(image.size, tile.size, alignment, offset_x, offset_y)
            transform = compute_rotation_transform(rotation, tile.size, anchor)
            return self._composite_tile(image, tile, anchor, transform)

    def apply_image_watermark(
            self,
            image: Image.Image,
            watermark: Image.Image,
            alignment: Alignment,
            offset_x: int = 0,
            offset_y: int = 0,
            rotation: float = 0.0,
            opacity: int = 100
    ) -> Image.Image:
        """
        Draw a bitmap watermark onto an image at its natural size.

        Pure green (0, 255, 0) in the watermark is treated as transparent and
        the remaining alpha is scaled by opacity / 100.

        Returns:
            The watermarked image (the same object for RGB/RGBA canvases).
        """
        tile = self._prepare_watermark_image(watermark, clamp_percent(opacity))

        with tile:
            anchor = compute_anchor_point(image.size, tile.size, alignment, offset_x, offset_y)
            transform = compute_rotation_transform(rotation, tile.size, anchor)
            return self._composite_tile(image, tile, anchor, transform)

    def apply_watermark(self, image: Image.Image, spec: WatermarkSpec) -> Image.Image:
        """Apply a TextWatermark or ImageWatermark."""
        mode = getattr(spec, "mode", None)
        if mode is WatermarkMode.TEXT:
            return self.apply_text_watermark(
                image,
                text=spec.text,
                font=spec.font,
                color=spec.color,
                alignment=spec.alignment,
                offset_x=spec.offset_x,
                offset_y=spec.offset_y,
                rotation=spec.rotation,
                opacity=spec.opacity
            )
        if mode is WatermarkMode.IMAGE:
            return self.apply_image_watermark(
                image,
                watermark=spec.image,
                alignment=spec.alignment,
                offset_x=spec.offset_x,
                offset_y=spec.offset_y,
                rotation=spec.rotation,
                opacity=spec.opacity
            )
        raise TypeError(f"Unknown watermark spec: {type(spec).__name__}")
