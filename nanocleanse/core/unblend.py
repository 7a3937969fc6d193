"""
Pixel Unblender
===============
Recovers the original colours under the overlay by reversing
straight-alpha compositing.

The generator composites a white logo over the picture:

    observed = alpha * 255 + (1 - alpha) * original

so for every pixel in the footprint:

    original = (observed - alpha * 255) / (1 - alpha)

Technical Notes:
- Pixels with alpha below ALPHA_THRESHOLD are left alone (encoding noise)
- Alpha is capped at MAX_ALPHA so (1 - alpha) never gets near zero
- Only R, G, B are rewritten; the alpha channel is never touched
- The whole footprint is handled in one vectorised pass, in place
"""

import logging

import numpy as np

from .locator import OverlayFootprint

logger = logging.getLogger(__name__)

ALPHA_THRESHOLD = 2e-3  # below this the overlay is indistinguishable from noise
MAX_ALPHA = 0.99
LOGO_VALUE = 255  # white overlay ink


def unblend(buffer: np.ndarray, alpha_map: np.ndarray, footprint: OverlayFootprint) -> bool:
    """
    Remove the overlay from `buffer` in place.

    If the footprint does not lie entirely inside the buffer nothing is
    written at all; this is not treated as an error.

    Args:
        buffer: uint8 RGBA array of shape (H, W, 4), modified in place.
        alpha_map: float32 array of shape (footprint.height, footprint.width).
        footprint: Where the overlay sits in the buffer.

    Returns:
        True if the footprint was processed, False if it was skipped
        for falling outside the buffer.
    """
    img_h, img_w = buffer.shape[:2]
    if not footprint.fits(img_w, img_h):
        logger.debug(
            "Footprint %s outside %dx%d buffer, skipping", footprint, img_w, img_h
        )
        return False

    x, y = footprint.x, footprint.y
    w, h = footprint.width, footprint.height

    region = buffer[y:y + h, x:x + w, :3]
    alpha = alpha_map[:h, :w].astype(np.float64)

    mask = alpha >= ALPHA_THRESHOLD
    if not mask.any():
        return True

    capped = np.minimum(alpha, MAX_ALPHA)[:, :, np.newaxis]
    observed = region.astype(np.float64)

    restored = (observed - capped * LOGO_VALUE) / (1.0 - capped)
    # Round half up, then clamp to the byte range
    restored = np.clip(np.floor(restored + 0.5), 0, 255).astype(np.uint8)

    region[mask] = restored[mask]
    return True
