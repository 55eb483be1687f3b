"""
Whitespace trimming for scanned or screenshotted timesheet images
"""
import io
import logging
from typing import Optional, Tuple

import numpy as np
from PIL import Image

from .compressor import ImageCompressor


logger = logging.getLogger(__name__)


class ImageTrimmer:
    """Crops near-white margins around the content of an image"""

    def __init__(self, pixel_threshold: int = 245, padding: int = 8):
        """Initialize trimmer; pixels darker than the threshold count as content"""
        if not 0 <= pixel_threshold <= 255:
            raise ValueError("pixel_threshold must be in [0, 255]")
        if padding < 0:
            raise ValueError("padding must be non-negative")
        self.pixel_threshold = pixel_threshold
        self.padding = padding

    def trim(self, data: bytes) -> bytes:
        """
        Trim the margins of an encoded image

        Args:
            data: Encoded image bytes

        Returns:
            JPEG bytes of the cropped image, or the input unchanged when
            there is nothing to trim

        Raises:
            DecodeError: if the bytes are not a readable image
        """
        image = ImageCompressor.decode(data)
        box = self.content_box(image)
        if box is None or box == (0, 0, image.width, image.height):
            return data

        logger.debug("Trimming %dx%d image to %s", image.width, image.height, box)
        buffer = io.BytesIO()
        image.crop(box).save(buffer, format="JPEG", quality=90)
        return buffer.getvalue()

    def content_box(self, image: Image.Image) -> Optional[Tuple[int, int, int, int]]:
        """Bounding box (left, top, right, bottom) of non-white pixels, padded"""
        gray = np.asarray(image.convert("L"), dtype=np.uint8)

        mask = gray < self.pixel_threshold
        if not mask.any():
            return None

        rows = np.any(mask, axis=1)
        cols = np.any(mask, axis=0)
        y_min, y_max = np.where(rows)[0][[0, -1]]
        x_min, x_max = np.where(cols)[0][[0, -1]]

        return (
            max(0, int(x_min) - self.padding),
            max(0, int(y_min) - self.padding),
            min(image.width, int(x_max) + 1 + self.padding),
            min(image.height, int(y_max) + 1 + self.padding),
        )
