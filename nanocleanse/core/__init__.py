"""
Core Module - Pure Algorithm Logic
==================================
This module contains no UI dependencies.
Alpha map building, overlay location, unblending and the engine facade
are implemented here.
"""

from .alpha_map import AlphaMapCache, build_alpha_map
from .codec import (
    ImageCodec, OpenCVCodec, PillowCodec, available_codecs, get_codec, read_exif_orientation
)
from .engine import RemovalResult, WatermarkEngine, remove_watermark
from .errors import (
    DecodeError, EncodeError, ProcessingError, ReferenceCaptureError, SurfaceError
)
from .locator import (
    LARGE_VARIANT, SMALL_VARIANT, OverlayConfig, OverlayFootprint,
    compute_footprint, detect_config
)
from .unblend import ALPHA_THRESHOLD, LOGO_VALUE, MAX_ALPHA, unblend

__all__ = [
    "WatermarkEngine",
    "RemovalResult",
    "remove_watermark",
    "AlphaMapCache",
    "build_alpha_map",
    "OverlayConfig",
    "OverlayFootprint",
    "SMALL_VARIANT",
    "LARGE_VARIANT",
    "detect_config",
    "compute_footprint",
    "unblend",
    "ALPHA_THRESHOLD",
    "MAX_ALPHA",
    "LOGO_VALUE",
    "ImageCodec",
    "PillowCodec",
    "OpenCVCodec",
    "get_codec",
    "available_codecs",
    "read_exif_orientation",
    "ProcessingError",
    "DecodeError",
    "SurfaceError",
    "EncodeError",
    "ReferenceCaptureError",
]
