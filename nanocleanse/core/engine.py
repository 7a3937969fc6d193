"""
Watermark Engine
================
Facade that runs the whole removal on one image.

Workflow:
1. Decode both reference captures (once per engine)
2. Decode the input and acquire an RGBA surface
3. Pick the overlay variant and footprint from the image size
4. Fetch (or build) the alpha map for that variant
5. Unblend the footprint in place
6. Encode the surface as PNG

The engine owns its alpha map cache; nothing is kept in module globals.
An engine may be shared between worker threads.
"""

import logging
import threading
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Optional, Union

import numpy as np

from .alpha_map import AlphaMapCache, build_alpha_map
from .captures import CAPTURE_SIZES, load_reference_capture
from .codec import ImageCodec, PillowCodec
from .errors import DecodeError, ReferenceCaptureError
from .locator import OverlayConfig, OverlayFootprint, compute_footprint, detect_config
from .unblend import unblend

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, memoryview, str, Path, BinaryIO]
CaptureLoader = Callable[[int], np.ndarray]


@dataclass
class RemovalResult:
    """Outcome of a successful removal run."""
    png_bytes: bytes
    width: int
    height: int
    config: OverlayConfig
    footprint: OverlayFootprint
    applied: bool  # False when the footprint fell outside the image


def read_source(source: ImageSource) -> bytes:
    """
    Get the raw bytes of an image source.

    Raises:
        DecodeError: If the source cannot be read.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)

    if isinstance(source, (str, Path)):
        path = Path(source)
        try:
            return path.read_bytes()
        except OSError as e:
            raise DecodeError(f"Cannot read image file {path}: {e}") from e

    if hasattr(source, "read"):
        try:
            data = source.read()
        except OSError as e:
            raise DecodeError(f"Cannot read image stream: {e}") from e
        if not isinstance(data, (bytes, bytearray)):
            raise DecodeError("Image stream must be opened in binary mode")
        return bytes(data)

    raise DecodeError(f"Unsupported image source type: {type(source).__name__}")


class WatermarkEngine:
    """
    Removes the generator's corner overlay from images.

    Args:
        codec: Image codec (default: PillowCodec).
        capture_loader: Returns the RGBA reference capture for a logo
                        size. Defaults to reading the bundled PNGs.
        cache: Alpha map cache; a fresh one is created if omitted.
    """

    def __init__(
            self,
            codec: Optional[ImageCodec] = None,
            capture_loader: Optional[CaptureLoader] = None,
            cache: Optional[AlphaMapCache] = None
    ):
        self.codec = codec or PillowCodec()
        self._capture_loader = capture_loader or partial(
            load_reference_capture, codec=self.codec
        )
        self._cache = cache if cache is not None else AlphaMapCache()
        self._captures: Dict[int, np.ndarray] = {}
        self._init_lock = threading.Lock()
        self._initialized = False

    @property
    def cache(self) -> AlphaMapCache:
        return self._cache

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def init(self):
        """Decode the reference captures. Safe to call repeatedly."""
        if self._initialized:
            return

        with self._init_lock:
            if self._initialized:
                return
            captures = {size: self._capture_loader(size) for size in CAPTURE_SIZES}
            self._captures = captures
            self._initialized = True
            logger.info("Reference captures loaded (%s)", ", ".join(
                f"{size}px" for size in CAPTURE_SIZES
            ))

    def _build_alpha_map(self, size: int) -> np.ndarray:
        self.init()
        capture = self._captures.get(size)
        if capture is None:
            raise ReferenceCaptureError(f"No reference capture for logo size {size}")

        try:
            alpha_map = build_alpha_map(capture)
        except ValueError as e:
            raise ReferenceCaptureError(str(e)) from e

        if alpha_map.shape != (size, size):
            raise ReferenceCaptureError(
                f"Alpha map for {size}px logo has shape {alpha_map.shape}"
            )
        return alpha_map

    def get_alpha_map(self, size: int) -> np.ndarray:
        """Return the cached alpha map for a logo size, building it on first use."""
        return self._cache.get(size, self._build_alpha_map)

    def process(self, source: ImageSource) -> RemovalResult:
        """
        Remove the overlay from one image.

        Args:
            source: Image bytes, a file path or a binary file object.

        Returns:
            RemovalResult holding the PNG output and what was done.

        Raises:
            DecodeError: The input is not a readable image.
            SurfaceError: No RGBA surface could be created.
            EncodeError: The output could not be encoded.
            ReferenceCaptureError: A reference capture is unavailable.
        """
        data = read_source(source)
        self.init()

        surface = self.codec.to_surface(self.codec.decode(data))
        height, width = surface.shape[:2]

        overlay = detect_config(width, height)
        footprint = compute_footprint(width, height, overlay)
        alpha_map = self.get_alpha_map(overlay.logo_size)

        applied = unblend(surface, alpha_map, footprint)
        if applied:
            logger.debug("Unblended %dpx overlay at (%d, %d) on %dx%d image",
                         overlay.logo_size, footprint.x, footprint.y, width, height)
        else:
            logger.warning(
                "Image %dx%d too small for the %dpx overlay footprint; left unchanged",
                width, height, overlay.logo_size
            )

        return RemovalResult(
            png_bytes=self.codec.encode_png(surface),
            width=width,
            height=height,
            config=overlay,
            footprint=footprint,
            applied=applied,
        )

    def remove_watermark(self, source: ImageSource) -> bytes:
        """Remove the overlay and return the cleaned image as PNG bytes."""
        return self.process(source).png_bytes


# Convenience function for simple usage
def remove_watermark(
        image_path: Union[str, Path],
        output_path: Union[str, Path],
        codec: Optional[ImageCodec] = None
) -> RemovalResult:
    """
    Clean one image file and write the PNG result.

    Args:
        image_path: Source image path.
        output_path: Destination path; parent directories are created.
        codec: Optional codec override.
    """
    result = WatermarkEngine(codec=codec).process(image_path)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.png_bytes)
    return result
