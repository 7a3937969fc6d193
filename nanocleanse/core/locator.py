"""
Watermark Locator
=================
Works out where the overlay sits from the image dimensions alone.

Technical Notes:
- The generator stamps one of exactly two logo sizes, always anchored
  to the bottom-right corner
- Both dimensions must exceed 1024px for the large variant
- No search or correlation is done; the position is pure arithmetic
"""

from dataclasses import dataclass


# Images must be strictly larger than this on both sides for the large logo
LARGE_VARIANT_MIN_SIDE = 1024


@dataclass(frozen=True)
class OverlayConfig:
    """Size variant and corner offsets of the overlay."""
    logo_size: int
    margin_right: int
    margin_bottom: int


@dataclass(frozen=True)
class OverlayFootprint:
    """Rectangle, in image pixels, the overlay is expected to cover."""
    x: int
    y: int
    width: int
    height: int

    def fits(self, image_width: int, image_height: int) -> bool:
        """Return True if the whole rectangle lies inside the image."""
        return (
            self.x >= 0
            and self.y >= 0
            and self.x + self.width <= image_width
            and self.y + self.height <= image_height
        )


SMALL_VARIANT = OverlayConfig(logo_size=48, margin_right=32, margin_bottom=32)
LARGE_VARIANT = OverlayConfig(logo_size=96, margin_right=64, margin_bottom=64)


def detect_config(width: int, height: int) -> OverlayConfig:
    """
    Pick the overlay variant for an image of the given size.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        LARGE_VARIANT if both sides exceed 1024px, SMALL_VARIANT otherwise.
    """
    if width > LARGE_VARIANT_MIN_SIDE and height > LARGE_VARIANT_MIN_SIDE:
        return LARGE_VARIANT
    return SMALL_VARIANT


def compute_footprint(width: int, height: int, config: OverlayConfig) -> OverlayFootprint:
    """
    Place the overlay in the bottom-right corner of the image.

    The result may have negative coordinates when the image is smaller
    than margin + logo; callers decide what to do with that.
    """
    return OverlayFootprint(
        x=width - config.margin_right - config.logo_size,
        y=height - config.margin_bottom - config.logo_size,
        width=config.logo_size,
        height=config.logo_size,
    )
