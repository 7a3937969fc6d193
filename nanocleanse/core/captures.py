"""
Reference Captures
==================
Loads the bundled bitmaps of the overlay rendered on black.

The files are `bg_48.png` and `bg_96.png` in the assets directory
(see nanocleanse.config.assets_dir). Each must decode to a square image
whose side equals the logo size it stands for.
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np

from nanocleanse import config

from .codec import ImageCodec, PillowCodec
from .errors import DecodeError, ReferenceCaptureError, SurfaceError

logger = logging.getLogger(__name__)

CAPTURE_SIZES = (48, 96)


def capture_path(size: int, directory: Optional[Path] = None) -> Path:
    """Path of the reference capture for a logo size."""
    directory = Path(directory) if directory is not None else config.assets_dir()
    return directory / config.CAPTURE_FILENAME.format(size=size)


def load_reference_capture(
        size: int,
        codec: Optional[ImageCodec] = None,
        directory: Optional[Path] = None
) -> np.ndarray:
    """
    Read and decode one reference capture.

    Args:
        size: Logo size, 48 or 96.
        codec: Codec used to decode the PNG (default: PillowCodec).
        directory: Overrides the configured assets directory.

    Returns:
        uint8 RGBA array of shape (size, size, 4).

    Raises:
        ReferenceCaptureError: If the file is missing, undecodable or
                               not size x size.
    """
    if size not in CAPTURE_SIZES:
        raise ReferenceCaptureError(f"No reference capture for logo size {size}")

    path = capture_path(size, directory)
    codec = codec or PillowCodec()

    try:
        data = path.read_bytes()
    except OSError as e:
        raise ReferenceCaptureError(f"Reference capture not readable: {path} ({e})") from e

    try:
        capture = codec.decode_to_surface(data)
    except (DecodeError, SurfaceError) as e:
        raise ReferenceCaptureError(f"Reference capture not decodable: {path} ({e})") from e

    if capture.shape[:2] != (size, size):
        raise ReferenceCaptureError(
            f"Reference capture {path.name} is {capture.shape[1]}x{capture.shape[0]}, "
            f"expected {size}x{size}"
        )

    logger.debug("Loaded reference capture %s", path)
    return capture


def missing_captures_hint() -> str:
    """Tell the user where the reference captures are looked up."""
    names = " and ".join(config.CAPTURE_FILENAME.format(size=size) for size in CAPTURE_SIZES)
    return (
        f"Place {names} in {config.assets_dir()} "
        f"or set {config.ASSETS_DIR_ENV_VAR} to a directory holding them"
    )
