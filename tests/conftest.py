import io

import numpy as np
import pytest
from PIL import Image


def encode_array(array, fmt="PNG", **params):
    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format=fmt, **params)
    return buffer.getvalue()


@pytest.fixture
def noise_image():
    """Random RGB noise, which barely compresses"""
    def make(width, height, fmt="PNG", seed=0):
        rng = np.random.default_rng(seed)
        pixels = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
        return encode_array(pixels, fmt)
    return make


@pytest.fixture
def flat_image():
    """Single-color image"""
    def make(width, height, fmt="PNG", color=(200, 40, 40)):
        pixels = np.zeros((height, width, 3), dtype=np.uint8)
        pixels[:, :] = color
        return encode_array(pixels, fmt)
    return make


@pytest.fixture
def timesheet_jpeg(flat_image):
    return flat_image(320, 240, fmt="JPEG", color=(30, 90, 160))
