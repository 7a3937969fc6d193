"""
Test script for the engine facade and codecs.

Run with: python -m pytest tests/test_engine.py -v
Or simply: python tests/test_engine.py
"""

import io
import os
import shutil
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import cv2
import numpy as np
from PIL import Image

from nanocleanse import config
from nanocleanse.core import (
    LARGE_VARIANT, SMALL_VARIANT, AlphaMapCache, DecodeError, EncodeError,
    OpenCVCodec, OverlayFootprint, PillowCodec, ProcessingError,
    ReferenceCaptureError, SurfaceError, WatermarkEngine, build_alpha_map,
    get_codec, read_exif_orientation, remove_watermark
)
from nanocleanse.core.captures import load_reference_capture

from synthetic import (
    CountingLoader, composite_overlay, decode_png, gradient_rgb, png_bytes,
    solid_rgba, synthetic_capture, temp_dir, write_png, write_reference_captures
)


def make_engine(codec=None):
    loader = CountingLoader()
    return WatermarkEngine(codec=codec, capture_loader=loader), loader


class _AssetsDir:
    """Point the assets directory setting somewhere else for a block."""

    def __init__(self, path: Path):
        self.path = path
        self._previous = None

    def __enter__(self):
        self._previous = os.environ.get(config.ASSETS_DIR_ENV_VAR)
        os.environ[config.ASSETS_DIR_ENV_VAR] = str(self.path)
        return self.path

    def __exit__(self, *exc):
        if self._previous is None:
            os.environ.pop(config.ASSETS_DIR_ENV_VAR, None)
        else:
            os.environ[config.ASSETS_DIR_ENV_VAR] = self._previous
        return False


def test_alpha_map_cached_per_size():
    """Same size twice: identical map, one capture decode, one build."""
    engine, loader = make_engine()

    first = engine.get_alpha_map(48)
    second = engine.get_alpha_map(48)

    assert first is second
    assert np.array_equal(first, second)
    assert loader.calls == {48: 1, 96: 1}
    assert engine.cache.build_count(48) == 1

    engine.get_alpha_map(96)
    engine.get_alpha_map(96)
    assert loader.calls == {48: 1, 96: 1}
    assert engine.cache.build_count(96) == 1
    print("✅ Alpha maps cached per size")


def test_init_is_idempotent():
    engine, loader = make_engine()
    assert not engine.is_initialized
    engine.init()
    engine.init()
    assert engine.is_initialized
    assert loader.calls == {48: 1, 96: 1}


def test_cache_can_be_shared_between_engines():
    cache = AlphaMapCache()
    engine_a = WatermarkEngine(capture_loader=CountingLoader(), cache=cache)
    engine_b = WatermarkEngine(capture_loader=CountingLoader(), cache=cache)

    assert engine_a.get_alpha_map(48) is engine_b.get_alpha_map(48)
    assert cache.build_count(48) == 1


def test_small_image_passes_through_unchanged():
    """Images smaller than margin + logo come back pixel-for-pixel identical."""
    engine, _ = make_engine()
    rng = np.random.default_rng(3)

    for width, height in ((60, 60), (200, 60), (60, 200)):
        original = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
        result = engine.process(png_bytes(original))

        assert result.applied is False
        assert (result.width, result.height) == (width, height)
        assert np.array_equal(decode_png(result.png_bytes), original), f"{width}x{height} changed"

    print("✅ Undersized images pass through unchanged")


def test_end_to_end_white_large_variant():
    """2000x2000 white: large variant, footprint at (1840, 1840), outside untouched."""
    engine, _ = make_engine()
    original = np.full((2000, 2000, 3), 255, dtype=np.uint8)

    result = engine.process(png_bytes(original))

    assert result.config == LARGE_VARIANT
    assert result.footprint == OverlayFootprint(1840, 1840, 96, 96)
    assert result.applied

    output = decode_png(result.png_bytes)
    assert output.shape == (2000, 2000, 4)

    inside = np.zeros((2000, 2000), dtype=bool)
    inside[1840:1936, 1840:1936] = True
    assert np.all(output[~inside] == 255)

    # White is a fixed point of the inversion: (255 - 255a) / (1 - a) = 255
    alpha_map = engine.get_alpha_map(96)
    region = output[1840:1936, 1840:1936, :3]
    processed = alpha_map >= 2e-3
    assert processed.any()
    assert np.all(region[processed] == 255)
    print("✅ End-to-end large variant verified")


def test_end_to_end_removes_stamped_overlay():
    """Grey image with a stamped overlay: footprint pixels darken back to grey."""
    engine, _ = make_engine()
    width, height = 1100, 1100
    original = solid_rgba(width, height, 128)

    alpha_map = build_alpha_map(synthetic_capture(96))
    stamped = composite_overlay(original, alpha_map, 1100 - 64 - 96, 1100 - 64 - 96)

    result = engine.process(png_bytes(stamped))
    output = decode_png(result.png_bytes)

    fp = result.footprint
    assert fp == OverlayFootprint(940, 940, 96, 96)

    above = alpha_map >= 2e-3
    before = stamped[fp.y:fp.y + 96, fp.x:fp.x + 96, :3]
    after = output[fp.y:fp.y + 96, fp.x:fp.x + 96, :3]

    assert np.all(after[above] < before[above]), "every overlay pixel must darken"
    assert np.abs(after.astype(np.int16) - 128).max() <= 2

    outside = np.ones((height, width), dtype=bool)
    outside[fp.y:fp.y + 96, fp.x:fp.x + 96] = False
    assert np.array_equal(output[outside], stamped[outside])


def test_small_variant_footprint():
    engine, _ = make_engine()
    result = engine.process(png_bytes(gradient_rgb(800, 600)))
    assert result.config == SMALL_VARIANT
    assert result.footprint == OverlayFootprint(720, 520, 48, 48)
    assert result.applied


def test_input_is_not_mutated():
    engine, _ = make_engine()
    data = bytearray(png_bytes(solid_rgba(300, 300, 90)))
    snapshot = bytes(data)

    engine.remove_watermark(data)

    assert bytes(data) == snapshot


def test_accepts_path_and_file_object():
    engine, _ = make_engine()
    work_dir = temp_dir()
    try:
        arr = gradient_rgb(320, 240)
        path = write_png(arr, work_dir, "input.png")

        from_path = engine.remove_watermark(path)
        from_str = engine.remove_watermark(str(path))
        with open(path, "rb") as f:
            from_file = engine.remove_watermark(f)
        from_bytes = engine.remove_watermark(path.read_bytes())

        assert from_path == from_str == from_file == from_bytes
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)


def test_decode_errors():
    engine, _ = make_engine()
    bad_inputs = [b"definitely not an image", b"", Path("/nonexistent/image.png"), 12345]

    for bad in bad_inputs:
        try:
            engine.process(bad)
        except DecodeError as e:
            assert isinstance(e, ProcessingError)
        else:
            raise AssertionError(f"{bad!r} should fail to decode")

    # A truncated PNG is a decode error too, not a partial image
    noise = np.random.default_rng(5).integers(0, 256, size=(200, 200, 3), dtype=np.uint8)
    truncated = png_bytes(noise)[:200]
    try:
        engine.process(truncated)
    except DecodeError:
        pass
    else:
        raise AssertionError("truncated PNG should fail to decode")
    print("✅ Decode errors reported")


def test_encode_error():
    codec = PillowCodec()
    try:
        codec.encode_png(np.zeros((4, 4, 4), dtype=np.float64))
    except EncodeError as e:
        assert isinstance(e, ProcessingError)
    else:
        raise AssertionError("float surface should not encode")


def test_surface_error_propagates():
    class BrokenSurfaceCodec(PillowCodec):
        def to_surface(self, decoded):
            raise SurfaceError("no surface available")

    engine = WatermarkEngine(codec=BrokenSurfaceCodec(), capture_loader=CountingLoader())
    try:
        engine.process(png_bytes(solid_rgba(10, 10, 0)))
    except SurfaceError:
        pass
    else:
        raise AssertionError("SurfaceError should reach the caller")


def test_pillow_surface_is_rgba():
    codec = PillowCodec()
    for mode in ("L", "RGB", "P", "LA"):
        image = Image.new(mode, (12, 7))
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        surface = codec.decode_to_surface(buffer.getvalue())
        assert surface.shape == (7, 12, 4), mode
        assert surface.dtype == np.uint8
        assert surface.flags.c_contiguous
        assert surface.flags.writeable


def test_pillow_applies_exif_orientation():
    """Orientation 6 (rotate 90 CW) swaps width and height like a browser does."""
    image = Image.new("RGB", (40, 20), (200, 10, 10))
    exif = image.getexif()
    exif[0x0112] = 6
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", exif=exif.tobytes())

    surface = PillowCodec().decode_to_surface(buffer.getvalue())
    assert surface.shape[:2] == (40, 20)


def test_opencv_codec_matches_pillow():
    rng = np.random.default_rng(11)
    original = rng.integers(0, 256, size=(300, 400, 3), dtype=np.uint8)
    data = png_bytes(original)

    pillow_engine, _ = make_engine(PillowCodec())
    opencv_engine, _ = make_engine(OpenCVCodec())

    pillow_out = decode_png(pillow_engine.remove_watermark(data))
    opencv_out = decode_png(opencv_engine.remove_watermark(data))

    assert np.array_equal(pillow_out, opencv_out)
    print("✅ OpenCV and Pillow codecs agree")


def _orientation_jpeg(width: int, height: int, orientation: int) -> bytes:
    """Grey JPEG with a red top-left corner block and an EXIF orientation tag."""
    image = Image.new("RGB", (width, height), (128, 128, 128))
    image.paste((255, 0, 0), (0, 0, 100, 100))
    exif = image.getexif()
    exif[0x0112] = orientation
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=95, exif=exif.tobytes())
    return buffer.getvalue()


def test_opencv_applies_exif_orientation():
    """Both codecs see a rotated JPEG upright, so the footprint lands in the same corner."""
    data = _orientation_jpeg(1200, 1100, 6)
    assert read_exif_orientation(data) == 6

    pillow_engine, _ = make_engine(PillowCodec())
    opencv_engine, _ = make_engine(OpenCVCodec())
    pillow_result = pillow_engine.process(data)
    opencv_result = opencv_engine.process(data)

    assert (pillow_result.width, pillow_result.height) == (1100, 1200)
    assert (opencv_result.width, opencv_result.height) == (1100, 1200)
    assert pillow_result.footprint == opencv_result.footprint == OverlayFootprint(940, 1040, 96, 96)

    # Rotating 90 CW moves the top-left block to the top-right
    for codec in (PillowCodec(), OpenCVCodec()):
        surface = codec.decode_to_surface(data)
        red, green, _, _ = surface[50, 1100 - 50].astype(int)
        assert red > 200 and green < 60, codec.name
    print("✅ EXIF orientation honoured by both codecs")


def test_codecs_agree_on_every_orientation():
    """Lossless RGBA PNG with each EXIF orientation decodes identically in both codecs."""
    rng = np.random.default_rng(17)
    original = rng.integers(0, 256, size=(9, 14, 4), dtype=np.uint8)

    for orientation in range(1, 9):
        image = Image.fromarray(original)
        exif = image.getexif()
        exif[0x0112] = orientation
        buffer = io.BytesIO()
        image.save(buffer, format="PNG", exif=exif)
        data = buffer.getvalue()

        pillow_surface = PillowCodec().decode_to_surface(data)
        opencv_surface = OpenCVCodec().decode_to_surface(data)

        expected_shape = (9, 14, 4) if orientation <= 4 else (14, 9, 4)
        assert pillow_surface.shape == expected_shape, orientation
        assert np.array_equal(pillow_surface, opencv_surface), f"orientation {orientation}"


def test_sixteen_bit_greyscale_png():
    """16-bit samples keep their high byte in both codecs instead of clipping to white."""
    samples = np.linspace(0, 65535, 64 * 32).astype(np.uint16).reshape(32, 64)
    samples[0, 0] = 40000
    ok, encoded = cv2.imencode(".png", samples)
    assert ok
    data = encoded.tobytes()

    pillow_surface = PillowCodec().decode_to_surface(data)
    opencv_surface = OpenCVCodec().decode_to_surface(data)

    assert pillow_surface.shape == (32, 64, 4)
    assert list(pillow_surface[0, 0]) == [156, 156, 156, 255]
    assert np.array_equal(pillow_surface, opencv_surface)
    assert np.array_equal(pillow_surface[:, :, 0], (samples >> 8).astype(np.uint8))
    print("✅ 16-bit greyscale scaled consistently")


def test_opencv_codec_decode_error():
    try:
        OpenCVCodec().decode(b"garbage bytes")
    except DecodeError:
        pass
    else:
        raise AssertionError("garbage should not decode")


def test_get_codec():
    assert isinstance(get_codec("pillow"), PillowCodec)
    assert isinstance(get_codec("OpenCV"), OpenCVCodec)
    try:
        get_codec("canvas")
    except ValueError:
        pass
    else:
        raise AssertionError("unknown codec name should be rejected")


def test_reference_captures_from_assets_dir():
    """Default loader reads bg_48.png / bg_96.png from the configured directory."""
    assets = write_reference_captures(temp_dir())
    work_dir = temp_dir()
    try:
        with _AssetsDir(assets):
            capture = load_reference_capture(48)
            assert capture.shape == (48, 48, 4)
            assert np.array_equal(capture, synthetic_capture(48))

            engine = WatermarkEngine()
            assert np.array_equal(
                engine.get_alpha_map(96), build_alpha_map(synthetic_capture(96))
            )

            source = write_png(gradient_rgb(640, 480), work_dir, "in.png")
            output = work_dir / "nested" / "out.png"
            result = remove_watermark(source, output)

            assert output.exists()
            assert result.applied
            assert output.read_bytes() == result.png_bytes
    finally:
        shutil.rmtree(assets, ignore_errors=True)
        shutil.rmtree(work_dir, ignore_errors=True)


def test_missing_reference_captures():
    empty = temp_dir()
    try:
        with _AssetsDir(empty):
            engine = WatermarkEngine()
            try:
                engine.process(png_bytes(solid_rgba(100, 100, 50)))
            except ReferenceCaptureError as e:
                assert isinstance(e, ProcessingError)
                assert "bg_48.png" in str(e)
            else:
                raise AssertionError("missing captures should be reported")
            assert not engine.is_initialized
    finally:
        shutil.rmtree(empty, ignore_errors=True)


def test_wrong_size_reference_capture():
    assets = temp_dir()
    try:
        write_png(synthetic_capture(50), assets, "bg_48.png")
        write_png(synthetic_capture(96), assets, "bg_96.png")
        with _AssetsDir(assets):
            try:
                load_reference_capture(48)
            except ReferenceCaptureError as e:
                assert "expected 48x48" in str(e)
            else:
                raise AssertionError("mis-sized capture should be rejected")

            try:
                load_reference_capture(64)
            except ReferenceCaptureError:
                pass
            else:
                raise AssertionError("unknown size should be rejected")
    finally:
        shutil.rmtree(assets, ignore_errors=True)


def main():
    """Run all tests."""
    print("🧪 NanoCleanse Engine Tests")
    print("=" * 50)

    tests = [
        test_alpha_map_cached_per_size,
        test_init_is_idempotent,
        test_cache_can_be_shared_between_engines,
        test_small_image_passes_through_unchanged,
        test_end_to_end_white_large_variant,
        test_end_to_end_removes_stamped_overlay,
        test_small_variant_footprint,
        test_input_is_not_mutated,
        test_accepts_path_and_file_object,
        test_decode_errors,
        test_encode_error,
        test_surface_error_propagates,
        test_pillow_surface_is_rgba,
        test_pillow_applies_exif_orientation,
        test_opencv_codec_matches_pillow,
        test_opencv_applies_exif_orientation,
        test_codecs_agree_on_every_orientation,
        test_sixteen_bit_greyscale_png,
        test_opencv_codec_decode_error,
        test_get_codec,
        test_reference_captures_from_assets_dir,
        test_missing_reference_captures,
        test_wrong_size_reference_capture,
    ]

    failed = 0
    for test in tests:
        try:
            test()
            print(f"  {test.__name__}: ✅ PASS")
        except AssertionError as e:
            failed += 1
            print(f"  {test.__name__}: ❌ FAIL {e}")

    print(f"\nTotal: {len(tests) - failed}/{len(tests)} tests passed")
    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
