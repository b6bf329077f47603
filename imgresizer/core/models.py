"""
Imaging Value Types
===================
Plain value objects shared by the geometry, compositor, codec and pipeline
modules. Nothing in here touches pixels.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional, Tuple, Union

from PIL import Image


class Size(NamedTuple):
    """A (width, height) pair in pixels."""
    width: int
    height: int


class Point(NamedTuple):
    """A point in canvas coordinates (origin top-left, y pointing down)."""
    x: float
    y: float


class HorizontalAlignment(Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class VerticalAlignment(Enum):
    TOP = "top"
    MIDDLE = "middle"
    BOTTOM = "bottom"


@dataclass(frozen=True)
class Alignment:
    """Where a watermark box sits on the canvas before offsets are applied."""
    horizontal: HorizontalAlignment = HorizontalAlignment.CENTER
    vertical: VerticalAlignment = VerticalAlignment.MIDDLE


class PhotoFormat(Enum):
    """Output raster formats known to the application."""
    BMP = "bmp"
    EMF = "emf"
    EXIF = "exif"
    GIF = "gif"
    ICON = "icon"
    JPEG = "jpeg"
    PNG = "png"
    TIFF = "tiff"
    WMF = "wmf"

    @property
    def supports_quality(self) -> bool:
        return self is PhotoFormat.JPEG

    @property
    def extension(self) -> str:
        return {
            PhotoFormat.ICON: ".ico",
            PhotoFormat.JPEG: ".jpg",
            PhotoFormat.TIFF: ".tif",
        }.get(self, f".{self.value}")


class WatermarkMode(Enum):
    TEXT = "text"
    IMAGE = "image"


@dataclass(frozen=True)
class FontSpec:
    """
    Font descriptor for text watermarks.

    Args:
        path: Path to a TrueType/OpenType file. None means "use a system
              default", see ImageCompositor.get_font.
        size: Font size in pixels.
    """
    path: Optional[str] = None
    size: int = 36


def clamp_percent(value: Union[int, float]) -> int:
    """Clamp an opacity/quality percentage to [0, 100]."""
    return max(0, min(100, int(value)))


@dataclass
class TextWatermark:
    """Text watermark description."""
    text: str
    font: FontSpec = field(default_factory=FontSpec)
    color: Tuple[int, int, int] = (255, 255, 255)
    alignment: Alignment = field(default_factory=Alignment)
    offset_x: int = 0
    offset_y: int = 0
    rotation: float = 0.0
    opacity: int = 100  # 0-100

    mode = WatermarkMode.TEXT


@dataclass
class ImageWatermark:
    """Bitmap watermark description. Pure green pixels are keyed out."""
    image: Image.Image
    alignment: Alignment = field(default_factory=Alignment)
    offset_x: int = 0
    offset_y: int = 0
    rotation: float = 0.0
    opacity: int = 100  # 0-100

    mode = WatermarkMode.IMAGE


WatermarkSpec = Union[TextWatermark, ImageWatermark]
