import base64
import io

import numpy as np
import pytest
from PIL import Image

from invoicing.compressor import DIMENSION_FLOOR, QUALITY_FLOOR, ImageCompressor
from invoicing.errors import DecodeError
from invoicing.models import MIB, CompressionConfig


def test_small_image_fits_on_first_attempt(flat_image):
    result = ImageCompressor().compress(flat_image(300, 200))

    assert len(result.attempts) == 1
    assert result.attempts[0].dimension_cap == 1200
    assert result.attempts[0].quality == 0.7
    assert result.within_budget
    assert (result.width, result.height) == (300, 200)


def test_output_is_jpeg(flat_image):
    result = ImageCompressor().compress(flat_image(64, 48))

    with Image.open(io.BytesIO(result.data)) as image:
        assert image.format == "JPEG"
        assert image.mode == "RGB"


def test_wide_image_is_resized_to_width_cap(flat_image):
    result = ImageCompressor().compress(flat_image(1600, 900))

    assert (result.width, result.height) == (1200, 675)


def test_tall_screenshot_is_resized_on_its_longer_side(flat_image):
    result = ImageCompressor().compress(flat_image(1000, 5000))

    assert (result.width, result.height) == (240, 1200)
    assert result.attempts[0].height == 1200


def test_transparent_png_is_flattened():
    pixels = np.zeros((40, 40, 4), dtype=np.uint8)
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format="PNG")

    result = ImageCompressor().compress(buffer.getvalue())

    with Image.open(io.BytesIO(result.data)) as image:
        assert image.mode == "RGB"
        r, g, b = image.getpixel((20, 20))
        assert min(r, g, b) > 240


def test_unreachable_target_stops_at_both_floors(noise_image):
    config = CompressionConfig(target_max_size_bytes=1)
    result = ImageCompressor(config).compress(noise_image(600, 400))

    qualities = [attempt.quality for attempt in result.attempts]
    caps = [attempt.dimension_cap for attempt in result.attempts]
    assert qualities == [0.7, 0.6, 0.5, 0.4, 0.3, 0.3, 0.3, 0.3, 0.3]
    assert caps == [1200, 1200, 1200, 1200, 1200, 1000, 800, 600, 400]
    assert result.quality == QUALITY_FLOOR
    assert result.dimension_cap == DIMENSION_FLOOR
    assert (result.width, result.height) == (400, 267)
    assert not result.within_budget
    assert result.size_bytes > 0


@pytest.mark.parametrize("target", [1, 20_000, 60_000, 150_000])
def test_quality_reaches_floor_before_dimension_drops(noise_image, target):
    config = CompressionConfig(target_max_size_bytes=target)
    result = ImageCompressor(config).compress(noise_image(900, 600, seed=3))

    for previous, current in zip(result.attempts, result.attempts[1:]):
        if current.dimension_cap != previous.dimension_cap:
            assert previous.quality == QUALITY_FLOOR
            assert current.dimension_cap < previous.dimension_cap
        else:
            assert current.quality < previous.quality


def test_returns_as_soon_as_budget_is_met(noise_image):
    source = noise_image(800, 600)
    full = ImageCompressor(CompressionConfig(target_max_size_bytes=1)).compress(source)
    # A budget equal to the third attempt's size stops the search there
    target = full.attempts[2].size_bytes
    result = ImageCompressor(CompressionConfig(target_max_size_bytes=target)).compress(source)

    assert len(result.attempts) == 3
    assert result.quality == 0.5
    assert result.within_budget


def test_starting_parameters_follow_upload_size():
    compressor = ImageCompressor()

    assert compressor.starting_parameters(6 * MIB) == (800, 0.5)
    assert compressor.starting_parameters(4 * MIB) == (1000, 0.6)
    assert compressor.starting_parameters(3 * MIB) == (1200, 0.7)
    assert compressor.starting_parameters(100) == (1200, 0.7)


def test_custom_defaults_apply_to_small_uploads(flat_image):
    config = CompressionConfig(max_dimension_px=500, initial_quality=0.9)
    result = ImageCompressor(config).compress(flat_image(1000, 500))

    assert result.attempts[0].dimension_cap == 500
    assert result.attempts[0].quality == 0.9
    assert result.width == 500


def test_medium_upload_starts_at_1000px(noise_image):
    source = noise_image(1100, 1000)
    assert 3 * MIB < len(source) <= 5 * MIB

    result = ImageCompressor(CompressionConfig(target_max_size_bytes=50 * MIB)).compress(source)

    assert (result.attempts[0].dimension_cap, result.attempts[0].quality) == (1000, 0.6)
    assert result.width == 1000


def test_large_upload_starts_at_800px_and_fits_budget(noise_image):
    source = noise_image(1500, 1400)
    assert len(source) > 5 * MIB

    result = ImageCompressor().compress(source)

    assert (result.attempts[0].dimension_cap, result.attempts[0].quality) == (800, 0.5)
    reached_floor = result.quality == QUALITY_FLOOR and result.dimension_cap == DIMENSION_FLOOR
    assert result.size_bytes <= 2 * MIB or reached_floor
    assert result.original_size_mb > 5


def test_base64_measurement(flat_image):
    config = CompressionConfig(measure_base64=True)
    result = ImageCompressor(config).compress(flat_image(120, 90))

    assert result.measured_size_bytes == len(result.to_base64())
    assert base64.b64decode(result.to_base64()) == result.data
    assert result.to_data_url().startswith("data:image/jpeg;base64,")


@pytest.mark.parametrize("source", [b"", b"definitely not an image"])
def test_unreadable_input_raises_decode_error(source):
    with pytest.raises(DecodeError):
        ImageCompressor().compress(source)


def test_truncated_image_raises_decode_error(noise_image):
    source = noise_image(200, 200)

    with pytest.raises(DecodeError):
        ImageCompressor().compress(source[: len(source) // 2])


def test_decode_error_is_a_value_error():
    assert issubclass(DecodeError, ValueError)


@pytest.mark.parametrize("kwargs", [
    {"max_dimension_px": 0},
    {"initial_quality": 0},
    {"initial_quality": 1.5},
    {"target_max_size_bytes": 0},
])
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        CompressionConfig(**kwargs)
