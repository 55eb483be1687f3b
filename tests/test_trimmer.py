import io

import numpy as np
import pytest
from PIL import Image

from conftest import encode_array
from invoicing.errors import DecodeError
from invoicing.trimmer import ImageTrimmer


def white_with_block(size=200, block=(50, 100)):
    pixels = np.full((size, size, 3), 255, dtype=np.uint8)
    start, stop = block
    pixels[start:stop, start:stop] = 0
    return pixels


def test_margins_are_cropped_with_padding():
    data = encode_array(white_with_block())

    trimmed = ImageTrimmer(padding=8).trim(data)

    with Image.open(io.BytesIO(trimmed)) as image:
        assert image.size == (66, 66)


def test_content_box():
    image = Image.fromarray(white_with_block())

    assert ImageTrimmer(padding=0).content_box(image) == (50, 50, 100, 100)


def test_blank_image_is_returned_unchanged():
    data = encode_array(np.full((50, 80, 3), 255, dtype=np.uint8))

    assert ImageTrimmer().trim(data) == data


def test_image_without_margins_is_returned_unchanged():
    data = encode_array(np.zeros((40, 40, 3), dtype=np.uint8))

    assert ImageTrimmer().trim(data) == data


def test_unreadable_image():
    with pytest.raises(DecodeError):
        ImageTrimmer().trim(b"nope")


def test_invalid_threshold():
    with pytest.raises(ValueError):
        ImageTrimmer(pixel_threshold=300)
