"""
Image Codecs
============
The host boundary of the engine: decode compressed bytes, hand out a
writable RGBA surface, encode the result as PNG.

Two interchangeable backends are provided:
- PillowCodec (default): honours EXIF orientation, like a browser canvas
- OpenCVCodec: cv2.imdecode / cv2.imencode, same EXIF orientation

Both backends reduce 16-bit samples to 8 bits by keeping the high byte,
so they hand the engine the same pixel grid for the same input.

Library exceptions are translated into DecodeError, SurfaceError and
EncodeError so callers only ever see the processing error taxonomy.
"""

import io
import logging
from abc import ABC, abstractmethod
from typing import Any

import cv2
import numpy as np
from PIL import Image, ImageOps

from .errors import DecodeError, EncodeError, SurfaceError

logger = logging.getLogger(__name__)

EXIF_ORIENTATION_TAG = 0x0112

# Pillow modes holding more than 8 bits per sample
_WIDE_MODES = ("I;16", "I;16B", "I;16L", "I;16N", "I", "F")


def read_exif_orientation(data: bytes) -> int:
    """
    Return the EXIF orientation (1-8) stored in encoded image bytes.

    Only the metadata is parsed. Unreadable or missing tags give 1.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            orientation = image.getexif().get(EXIF_ORIENTATION_TAG, 1)
    except (OSError, ValueError, SyntaxError, KeyError, TypeError,
            Image.DecompressionBombError) as e:
        logger.debug("Ignoring unreadable EXIF orientation: %s", e)
        return 1

    return orientation if orientation in range(1, 9) else 1


def wide_to_8bit(samples: np.ndarray) -> np.ndarray:
    """Keep the high byte of 16-bit samples; wider values are clipped first."""
    samples = np.clip(samples, 0, 65535).astype(np.uint16)
    return (samples >> 8).astype(np.uint8)


class ImageCodec(ABC):
    """Decode/surface/encode contract the engine depends on."""

    name = "abstract"

    @abstractmethod
    def decode(self, data: bytes) -> Any:
        """Decode compressed image bytes into a backend-specific handle."""

    @abstractmethod
    def to_surface(self, decoded: Any) -> np.ndarray:
        """Return a fresh, writable uint8 RGBA array of shape (H, W, 4)."""

    @abstractmethod
    def encode_png(self, surface: np.ndarray) -> bytes:
        """Encode an RGBA array as PNG bytes."""

    def decode_to_surface(self, data: bytes) -> np.ndarray:
        """Convenience: decode and convert in one call."""
        return self.to_surface(self.decode(data))


class PillowCodec(ImageCodec):
    """Codec backed by Pillow."""

    name = "pillow"

    def decode(self, data: bytes) -> Image.Image:
        if not data:
            raise DecodeError("Input is empty")

        try:
            image = Image.open(io.BytesIO(data))
            # Force the full decode now so truncated files fail here
            image.load()
        except (OSError, EOFError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            raise DecodeError(f"Cannot decode image: {e}") from e

        # Phone photos carry rotation in EXIF rather than in the pixels
        try:
            image = ImageOps.exif_transpose(image)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.debug("Ignoring unreadable EXIF orientation: %s", e)

        return image

    def to_surface(self, decoded: Image.Image) -> np.ndarray:
        try:
            if decoded.mode in _WIDE_MODES:
                # convert("RGBA") would clip these to 255 instead of scaling
                decoded = Image.fromarray(wide_to_8bit(np.array(decoded)))
            rgba = decoded if decoded.mode == "RGBA" else decoded.convert("RGBA")
            surface = np.array(rgba, dtype=np.uint8)
        except (OSError, ValueError, MemoryError) as e:
            raise SurfaceError(f"Cannot create RGBA surface: {e}") from e

        if surface.ndim != 3 or surface.shape[2] != 4:
            raise SurfaceError(f"Unexpected surface shape {surface.shape}")
        return np.ascontiguousarray(surface)

    def encode_png(self, surface: np.ndarray) -> bytes:
        buffer = io.BytesIO()
        try:
            Image.fromarray(surface).save(buffer, format="PNG")
        except (OSError, ValueError, TypeError) as e:
            raise EncodeError(f"Cannot encode PNG: {e}") from e
        return buffer.getvalue()


class OpenCVCodec(ImageCodec):
    """Codec backed by OpenCV's in-memory image codecs."""

    name = "opencv"

    _TO_RGBA = {
        1: cv2.COLOR_GRAY2RGBA,
        3: cv2.COLOR_BGR2RGBA,
        4: cv2.COLOR_BGRA2RGBA,
    }

    def decode(self, data: bytes) -> np.ndarray:
        if not data:
            raise DecodeError("Input is empty")

        try:
            image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        except cv2.error as e:
            raise DecodeError(f"Cannot decode image: {e}") from e

        if image is None:
            raise DecodeError("Cannot decode image: unsupported or corrupt data")

        # IMREAD_UNCHANGED keeps alpha and depth but skips EXIF orientation
        return self._apply_orientation(image, read_exif_orientation(data))

    @staticmethod
    def _apply_orientation(image: np.ndarray, orientation: int) -> np.ndarray:
        """Transform pixels the way ImageOps.exif_transpose does for each tag."""
        if orientation == 2:
            return cv2.flip(image, 1)
        if orientation == 3:
            return cv2.rotate(image, cv2.ROTATE_180)
        if orientation == 4:
            return cv2.flip(image, 0)
        if orientation == 5:
            return cv2.transpose(image)
        if orientation == 6:
            return cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
        if orientation == 7:
            return cv2.flip(cv2.transpose(image), -1)
        if orientation == 8:
            return cv2.rotate(image, cv2.ROTATE_90_COUNTERCLOCKWISE)
        return image

    def to_surface(self, decoded: np.ndarray) -> np.ndarray:
        image = decoded
        if image.dtype == np.uint16:
            image = wide_to_8bit(image)
        elif image.dtype != np.uint8:
            raise SurfaceError(f"Unsupported sample type {image.dtype}")

        channels = 1 if image.ndim == 2 else image.shape[2]
        code = self._TO_RGBA.get(channels)
        if code is None:
            raise SurfaceError(f"Unsupported channel count {channels}")

        try:
            surface = cv2.cvtColor(image, code)
        except cv2.error as e:
            raise SurfaceError(f"Cannot create RGBA surface: {e}") from e
        return np.ascontiguousarray(surface)

    def encode_png(self, surface: np.ndarray) -> bytes:
        try:
            bgra = cv2.cvtColor(surface, cv2.COLOR_RGBA2BGRA)
            ok, encoded = cv2.imencode(".png", bgra)
        except cv2.error as e:
            raise EncodeError(f"Cannot encode PNG: {e}") from e

        if not ok:
            raise EncodeError("Cannot encode PNG: encoder reported failure")
        return encoded.tobytes()


_CODECS = {
    PillowCodec.name: PillowCodec,
    OpenCVCodec.name: OpenCVCodec,
}


def get_codec(name: str = "pillow") -> ImageCodec:
    """
    Create a codec by name.

    Raises:
        ValueError: If the name is not a known backend.
    """
    try:
        return _CODECS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown codec '{name}', expected one of: {', '.join(sorted(_CODECS))}"
        ) from None


def available_codecs() -> list[str]:
    return sorted(_CODECS)
