"""
Application Settings
====================
Loads and stores the pipeline configuration with QSettings.

The keys follow the application's historical setting names. Values that are
missing or malformed fall back to the PipelineConfig defaults; percentages
are clamped to [0, 100].
"""

from typing import Any, Callable, TypeVar

from PyQt6.QtCore import QSettings

from .core.models import FontSpec, PhotoFormat, clamp_percent
from .core.pipeline import PipelineConfig, WatermarkSettings

SETTINGS_ORG = "ImgResizer"
SETTINGS_APP = "ImgResizer"

KEY_IS_TRIAL = "IsTrialVersion"
KEY_QUALITY = "ImageQuality"
KEY_OUTPUT_FORMAT = "OutputFormat"
KEY_FONT_PATH = "WatermarkFontPath"
KEY_FONT_SIZE = "WatermarkFontSize"
KEY_OFFSET_X = "WatermarkOffsetX"
KEY_OFFSET_Y = "WatermarkOffsetY"
KEY_ROTATION = "WatermarkRotation"
KEY_OPACITY = "WatermarkOpacity"

T = TypeVar("T")


def create_settings() -> QSettings:
    return QSettings(SETTINGS_ORG, SETTINGS_APP)


def _read(settings: QSettings, key: str, default: T, convert: Callable[[Any], T]) -> T:
    raw = settings.value(key, None)
    if raw is None or raw == "":
        return default
    try:
        return convert(raw)
    except (TypeError, ValueError):
        return default


def _to_bool(value: Any) -> bool:
    # QSettings INI backends hand back strings
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        raise ValueError(f"Not a boolean: {value!r}")
    return bool(value)


def _to_format(value: Any) -> PhotoFormat:
    return PhotoFormat(str(value).lower())


def load_pipeline_config(settings: QSettings) -> PipelineConfig:
    """Build a PipelineConfig from stored settings."""
    defaults = PipelineConfig()
    wm_defaults = defaults.watermark_settings

    font = FontSpec(
        path=_read(settings, KEY_FONT_PATH, wm_defaults.font.path, str),
        size=max(1, _read(settings, KEY_FONT_SIZE, wm_defaults.font.size, int))
    )

    watermark_settings = WatermarkSettings(
        font=font,
        offset_x=_read(settings, KEY_OFFSET_X, wm_defaults.offset_x, int),
        offset_y=_read(settings, KEY_OFFSET_Y, wm_defaults.offset_y, int),
        rotation=_read(settings, KEY_ROTATION, wm_defaults.rotation, float),
        opacity=clamp_percent(_read(settings, KEY_OPACITY, wm_defaults.opacity, int))
    )

    return PipelineConfig(
        is_trial_version=_read(settings, KEY_IS_TRIAL, defaults.is_trial_version, _to_bool),
        output_format=_read(settings, KEY_OUTPUT_FORMAT, defaults.output_format, _to_format),
        output_quality=_read(settings, KEY_QUALITY, defaults.output_quality, int),
        watermark_settings=watermark_settings
    )


def save_pipeline_config(settings: QSettings, config: PipelineConfig):
    """Store the user-editable parts of a PipelineConfig."""
    wm = config.watermark_settings
    settings.setValue(KEY_IS_TRIAL, config.is_trial_version)
    settings.setValue(KEY_QUALITY, config.output_quality)
    settings.setValue(KEY_OUTPUT_FORMAT, config.output_format.value)
    settings.setValue(KEY_FONT_PATH, wm.font.path or "")
    settings.setValue(KEY_FONT_SIZE, wm.font.size)
    settings.setValue(KEY_OFFSET_X, wm.offset_x)
    settings.setValue(KEY_OFFSET_Y, wm.offset_y)
    settings.setValue(KEY_ROTATION, wm.rotation)
    settings.setValue(KEY_OPACITY, wm.opacity)
    settings.sync()
