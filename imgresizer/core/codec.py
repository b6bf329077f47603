"""
Codec Adapter
=============
Decodes raw bytes into PIL images and encodes images to a chosen raster
format and quality.

Technical Notes:
- Decoding loads pixel data eagerly so truncated files fail here, not later
- EXIF orientation is applied on decode
- Only JPEG takes a quality parameter; other encoders ignore it
- JPEG cannot store alpha, so transparent images are flattened onto white
"""

import io
import logging
from pathlib import Path
from typing import Union

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError, EncodeError, UnsupportedFormatError
from .models import PhotoFormat, clamp_percent

logger = logging.getLogger(__name__)

# PhotoFormat -> Pillow format id. EXIF, EMF and WMF have no encoder.
PILLOW_FORMATS = {
    PhotoFormat.BMP: "BMP",
    PhotoFormat.GIF: "GIF",
    PhotoFormat.ICON: "ICO",
    PhotoFormat.JPEG: "JPEG",
    PhotoFormat.PNG: "PNG",
    PhotoFormat.TIFF: "TIFF",
}

_JPEG_MODES = ("RGB", "L", "CMYK")


def decode(data: bytes) -> Image.Image:
    """
    Decode an encoded raster image.

    Args:
        data: Encoded image bytes.

    Returns:
        A fully loaded PIL Image with EXIF orientation applied.

    Raises:
        DecodeError: If the bytes are empty, not an image, or truncated.
    """
    if not data:
        raise DecodeError("Image data is empty")

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Unrecognised image data: {e}") from e
    except (OSError, SyntaxError, ValueError, EOFError) as e:
        raise DecodeError(f"Corrupt or truncated image data: {e}") from e

    transposed = ImageOps.exif_transpose(image)
    if transposed is not None and transposed is not image:
        image.close()
        image = transposed

    return image


def get_encoder_name(photo_format: PhotoFormat) -> str:
    """
    Resolve the Pillow encoder for a format.

    Raises:
        UnsupportedFormatError: If no encoder is registered for the format.
    """
    name = PILLOW_FORMATS.get(photo_format)
    if name is None:
        raise UnsupportedFormatError(f"No encoder for {photo_format.name}")

    Image.init()
    if name not in Image.SAVE:
        raise UnsupportedFormatError(
            f"{photo_format.name} encoder is not available on this platform"
        )
    return name


def _flatten_for_jpeg(image: Image.Image) -> Image.Image:
    """Return a JPEG-compatible copy of the image."""
    if image.mode in _JPEG_MODES:
        return image

    rgba = image.convert("RGBA")
    rgb = Image.new("RGB", rgba.size, (255, 255, 255))
    rgb.paste(rgba, mask=rgba.split()[3])
    rgba.close()
    return rgb


def encode(image: Image.Image, photo_format: PhotoFormat, quality: int = 100) -> bytes:
    """
    Encode an image to bytes.

    Args:
        image: Image to encode, not modified.
        photo_format: Target format.
        quality: 0-100, honoured by JPEG only.

    Returns:
        The encoded bytes.

    Raises:
        UnsupportedFormatError: If the format has no encoder.
        EncodeError: If the encoder fails.
    """
    encoder = get_encoder_name(photo_format)

    params = {}
    source = image
    if photo_format.supports_quality:
        params["quality"] = clamp_percent(quality)
    if photo_format is PhotoFormat.JPEG:
        source = _flatten_for_jpeg(image)

    buffer = io.BytesIO()
    try:
        source.save(buffer, format=encoder, **params)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Failed to encode {photo_format.name}: {e}") from e
    finally:
        if source is not image:
            source.close()

    return buffer.getvalue()


def save_image_to_file(
        image: Image.Image,
        path: Union[str, Path],
        photo_format: PhotoFormat,
        quality: int = 100
) -> Path:
    """
    Encode an image and write it to a file.

    Raises:
        UnsupportedFormatError: If the format has no encoder.
        EncodeError: If encoding or writing fails.
    """
    data = encode(image, photo_format, quality)
    return write_bytes(path, data)


def write_bytes(path: Union[str, Path], data: bytes) -> Path:
    """Write already encoded bytes, creating parent directories."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise EncodeError(f"Could not write {path}: {e}") from e

    logger.debug("Wrote %d bytes to %s", len(data), path)
    return path


def read_image_file(path: Union[str, Path]) -> bytes:
    """
    Read the raw bytes of an image file.

    Raises:
        DecodeError: If the file cannot be read.
    """
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise DecodeError(f"Could not read {path}: {e}") from e
