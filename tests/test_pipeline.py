"""
Test script for the preview pipeline.

Run with: python -m pytest tests/test_pipeline.py -v
Or simply: python tests/test_pipeline.py
"""

import io
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
import pytest
from PIL import Image

from imgresizer.core.codec import decode, encode
from imgresizer.core.models import (
    Alignment, FontSpec, ImageWatermark, PhotoFormat, Size
)
from imgresizer.core.pipeline import (
    ImagingPipeline, PipelineConfig, PreviewResult, SizeInfo, WatermarkSettings,
    build_preview, LOAD_ERROR_MESSAGE
)


def create_test_bytes(width: int = 800, height: int = 400, color=None) -> bytes:
    """PNG bytes of a gradient (or solid colour) test image."""
    if color is not None:
        image = Image.new("RGB", (width, height), color)
    else:
        xs = np.linspace(0, 255, width, dtype=np.float32)[np.newaxis, :]
        arr = np.zeros((height, width, 3), dtype=np.uint8)
        arr[..., 0] = np.broadcast_to(xs, (height, width)).astype(np.uint8)
        arr[..., 2] = 128
        image = Image.fromarray(arr)
    return encode(image, PhotoFormat.PNG)


def dark_trial_config(**kwargs) -> PipelineConfig:
    settings = WatermarkSettings(font=FontSpec(size=40), color=(0, 0, 0), opacity=100)
    return PipelineConfig(watermark_settings=settings, **kwargs)


def test_build_preview_sizes_and_formats():
    print("\n" + "=" * 50)
    print("Testing Preview Pipeline")
    print("=" * 50)

    source = create_test_bytes(800, 400)

    result = build_preview(source, (300, 300))

    assert result is not None
    assert result.success, result.error_message
    assert result.source_size == Size(800, 400)
    assert result.preview_size == Size(300, 150)
    assert result.source_byte_count == len(source)

    with Image.open(io.BytesIO(result.preview_bytes)) as preview:
        assert preview.format == "JPEG"
        assert preview.size == (300, 150)

    with Image.open(io.BytesIO(result.output_bytes)) as output:
        assert output.format == "JPEG"
        assert output.size == (800, 400)

    print(f"   {result.status_text()}")


def test_status_text_and_size_info():
    source = create_test_bytes(800, 400)
    result = build_preview(source, (300, 300))

    assert result.source_info == SizeInfo(len(source), 800, 400)
    assert result.output_info == SizeInfo(len(result.output_bytes), 300, 150)

    text = result.status_text()
    assert text.startswith(f"File size {len(source) // 1024}Kb (800x400px)")
    assert f"On saving {len(result.output_bytes) // 1024}Kb (300x150px)" in text


def test_preview_has_border_output_does_not():
    result = build_preview(create_test_bytes(400, 200, color=(255, 255, 255)), (200, 200))

    preview = np.asarray(decode(result.preview_bytes), dtype=np.int16)
    output = np.asarray(decode(result.output_bytes), dtype=np.int16)

    # Left edge of the preview is dim grey, its centre stays white
    assert np.abs(preview[50, 0] - 105).max() <= 20
    assert preview[50, 100].min() >= 240
    # The saved image has no frame
    assert output[100, 0].min() >= 240


def test_output_is_unresized_source():
    """With a lossless output format the output equals the source pixels."""
    source = create_test_bytes(120, 80)
    config = PipelineConfig(output_format=PhotoFormat.PNG)

    result = ImagingPipeline(config).build_preview(source, (50, 50))

    assert result.success
    assert np.array_equal(
        np.asarray(decode(result.output_bytes).convert("RGB")),
        np.asarray(decode(source).convert("RGB"))
    )


def test_trial_watermark_marks_preview_only():
    source = create_test_bytes(600, 300, color=(255, 255, 255))

    plain = ImagingPipeline(dark_trial_config(is_trial_version=False)).build_preview(source, (600, 300))
    trial = ImagingPipeline(dark_trial_config(is_trial_version=True)).build_preview(source, (600, 300))

    assert plain.success and trial.success
    assert plain.preview_bytes != trial.preview_bytes

    plain_centre = np.asarray(decode(plain.preview_bytes))[120:180, 150:450]
    trial_centre = np.asarray(decode(trial.preview_bytes))[120:180, 150:450]
    assert trial_centre.mean() < plain_centre.mean() - 5

    output = np.asarray(decode(trial.output_bytes))
    assert output[120:180, 150:450].min() >= 240


def test_user_watermark_marks_output():
    source = create_test_bytes(200, 200, color=(255, 255, 255))
    mark = Image.new("RGB", (40, 40), (255, 0, 0))
    config = PipelineConfig(
        output_format=PhotoFormat.PNG,
        watermark=ImageWatermark(image=mark, alignment=Alignment(), opacity=100)
    )

    result = ImagingPipeline(config).build_preview(source, (100, 100))

    assert result.success
    output = decode(result.output_bytes).convert("RGB")
    assert output.getpixel((100, 100)) == (255, 0, 0)
    assert output.getpixel((10, 10)) == (255, 255, 255)

    preview = np.asarray(decode(result.preview_bytes), dtype=np.int16)
    r, g, b = preview[50, 50]
    assert r >= 200 and g <= 60 and b <= 60


def test_corrupt_source_reports_load_error():
    print("\n" + "=" * 50)
    print("Testing Pipeline Errors")
    print("=" * 50)

    source = create_test_bytes(100, 100)

    for data in (b"", b"garbage bytes", source[:len(source) // 3]):
        result = build_preview(data, (50, 50))
        assert result is not None
        assert not result.success
        assert result.error_message == LOAD_ERROR_MESSAGE
        assert result.preview_bytes == b""
        assert result.output_bytes == b""
        assert result.status_text() == LOAD_ERROR_MESSAGE


def test_unsupported_output_format_reports_error():
    config = PipelineConfig(output_format=PhotoFormat.EMF)

    result = ImagingPipeline(config).build_preview(create_test_bytes(50, 50), (20, 20))

    assert not result.success
    assert result.error_message == LOAD_ERROR_MESSAGE


@pytest.mark.parametrize("bounding_size", [(0, 0), (0, 50), (50, 0), (-10, 20)])
def test_empty_preview_area_reports_load_error(bounding_size):
    """A collapsed preview area gives a failed result instead of raising."""
    result = build_preview(create_test_bytes(40, 40), bounding_size)

    assert result is not None
    assert not result.success
    assert result.error_message == LOAD_ERROR_MESSAGE
    assert result.preview_bytes == b""
    assert result.output_bytes == b""


def test_cancelled_pipeline_returns_nothing():
    pipeline = ImagingPipeline()
    pipeline.cancel()

    assert pipeline.is_cancelled
    assert pipeline.build_preview(create_test_bytes(50, 50), (20, 20)) is None


def test_config_clamps_quality():
    config = PipelineConfig(output_quality=150, preview_quality=-5)
    assert config.output_quality == 100
    assert config.preview_quality == 0


def test_watermark_settings_to_watermark():
    settings = WatermarkSettings(offset_x=3, offset_y=-4, rotation=12.5, opacity=250)
    mark = settings.to_watermark()

    assert mark.text == "TRIAL - VERSION"
    assert mark.alignment == Alignment()
    assert (mark.offset_x, mark.offset_y, mark.rotation) == (3, -4, 12.5)
    assert mark.opacity == 100


def test_failed_result_defaults():
    result = PreviewResult()
    assert not result.success
    assert result.source_info == SizeInfo(0, 0, 0)


def main():
    """Run all tests."""
    return pytest.main([__file__, "-v"])


if __name__ == "__main__":
    sys.exit(main())
