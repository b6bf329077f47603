"""
Watermark and Resize Geometry
=============================
Pure arithmetic used by the compositor.

Coordinate conventions:
- Origin is the top-left corner of the canvas, y grows downwards.
- Positive rotation angles turn clockwise on screen.
- Anchor points are not clamped: a watermark may sit partly or entirely
  outside the canvas, drawing simply clips it.
"""

import math
from dataclasses import dataclass
from typing import Tuple

from .models import Alignment, HorizontalAlignment, Point, Size, VerticalAlignment


def compute_aspect_fit(source_size: Tuple[int, int], bounding_size: Tuple[int, int]) -> Size:
    """
    Compute the largest size with the source aspect ratio that fits the box.

    Each source dimension is first clamped down to the bound (never up), so an
    image that already fits keeps its size. Results are truncated, not rounded,
    and never drop below 1px for a non-empty source.

    Args:
        source_size: (width, height) of the source image.
        bounding_size: (width, height) of the box to fit into.

    Returns:
        The target Size.

    Raises:
        ValueError: If the bounding box has a dimension smaller than 1.
    """
    src_w, src_h = source_size
    bound_w, bound_h = bounding_size

    if bound_w < 1 or bound_h < 1:
        raise ValueError(f"Bounding size must be at least 1x1, got {bound_w}x{bound_h}")

    if src_w <= 0 or src_h <= 0:
        return Size(0, 0)

    fit_w = min(bound_w, src_w)
    fit_h = min(bound_h, src_h)

    # scale = min(fit_w / src_w, fit_h / src_h), kept in integers so that
    # floor(src * scale) is exact on the limiting axis.
    if fit_w * src_h <= fit_h * src_w:
        target_w = fit_w
        target_h = src_h * fit_w // src_w
    else:
        target_w = src_w * fit_h // src_h
        target_h = fit_h

    return Size(max(1, target_w), max(1, target_h))


def compute_anchor_point(
        canvas_size: Tuple[int, int],
        watermark_size: Tuple[float, float],
        alignment: Alignment,
        offset_x: int = 0,
        offset_y: int = 0
) -> Point:
    """
    Top-left position of the watermark box on the canvas.

    Args:
        canvas_size: (width, height) of the target image.
        watermark_size: (width, height) of the watermark box.
        alignment: Horizontal and vertical alignment.
        offset_x: Signed pixel offset added after alignment.
        offset_y: Signed pixel offset added after alignment.

    Returns:
        The anchor Point, unclamped.
    """
    canvas_w, canvas_h = canvas_size
    wm_w, wm_h = watermark_size

    if alignment.horizontal is HorizontalAlignment.LEFT:
        x = 0.0
    elif alignment.horizontal is HorizontalAlignment.CENTER:
        x = (canvas_w - wm_w) / 2.0
    else:
        x = float(canvas_w - wm_w)

    if alignment.vertical is VerticalAlignment.TOP:
        y = 0.0
    elif alignment.vertical is VerticalAlignment.MIDDLE:
        y = (canvas_h - wm_h) / 2.0
    else:
        y = float(canvas_h - wm_h)

    return Point(x + offset_x, y + offset_y)


@dataclass(frozen=True)
class RotationTransform:
    """A rotation by `angle` degrees about `center`."""
    angle: float
    center: Point

    @property
    def is_identity(self) -> bool:
        return math.isclose(math.fmod(self.angle, 360.0), 0.0, abs_tol=1e-9)

    def _cos_sin(self) -> Tuple[float, float]:
        radians = math.radians(self.angle)
        return math.cos(radians), math.sin(radians)

    def map_point(self, point: Tuple[float, float]) -> Point:
        """Map a point from watermark space onto the canvas."""
        cos_a, sin_a = self._cos_sin()
        cx, cy = self.center
        dx = point[0] - cx
        dy = point[1] - cy
        return Point(cx + dx * cos_a - dy * sin_a, cy + dx * sin_a + dy * cos_a)

    def affine_coefficients(self, origin: Tuple[float, float]) -> Tuple[float, ...]:
        """
        Inverse mapping for Image.transform(..., Image.Transform.AFFINE, ...).

        Pillow asks, for every output (canvas) pixel, where to sample the
        input. The input here is the watermark tile whose top-left corner sits
        at `origin` on the canvas, so the result maps canvas coordinates back
        through the inverse rotation and then into tile-local coordinates.

        Args:
            origin: Canvas position of the tile's top-left corner.

        Returns:
            (a, b, c, d, e, f) such that tile = (a*x + b*y + c, d*x + e*y + f).
        """
        cos_a, sin_a = self._cos_sin()
        cx, cy = self.center
        ox, oy = origin
        return (
            cos_a, sin_a, cx - cx * cos_a - cy * sin_a - ox,
            -sin_a, cos_a, cy + cx * sin_a - cy * cos_a - oy,
        )


def compute_rotation_transform(
        angle: float,
        size: Tuple[float, float],
        anchor_point: Tuple[float, float]
) -> RotationTransform:
    """
    Rotation about the watermark's own centre.

    Args:
        angle: Rotation in degrees, clockwise on screen.
        size: (width, height) of the watermark box.
        anchor_point: Top-left of the watermark box before rotation.
    """
    width, height = size
    center = Point(anchor_point[0] + width / 2.0, anchor_point[1] + height / 2.0)
    return RotationTransform(angle=float(angle), center=center)
