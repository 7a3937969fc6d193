"""
NanoCleanse Package
===================
Removes the semi-transparent corner logo a generator stamps on its images.

Modules:
    - core: Pure algorithm logic (no Qt dependencies)
    - workers: QThread workers for async processing

Usage:
    from nanocleanse.core import WatermarkEngine
    from nanocleanse.workers import RemovalWorker, BatchRemovalWorker
"""

__version__ = "1.0.0"
__author__ = "NanoCleanse"
__app_name__ = "NanoCleanse"

# Core exports
from .core import (
    WatermarkEngine, RemovalResult, remove_watermark,
    ProcessingError, DecodeError, SurfaceError, EncodeError, ReferenceCaptureError
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__app_name__",

    # Core
    "WatermarkEngine",
    "RemovalResult",
    "remove_watermark",
    "ProcessingError",
    "DecodeError",
    "SurfaceError",
    "EncodeError",
    "ReferenceCaptureError",
]
