"""
Adaptive JPEG compression for uploaded timesheet images
"""
import io
import logging
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError
from .models import MIB, CompressionAttempt, CompressionConfig, CompressionResult


logger = logging.getLogger(__name__)

QUALITY_FLOOR = 0.3
QUALITY_STEP = 0.1
DIMENSION_FLOOR = 400
DIMENSION_STEP = 200

# (origin size threshold in MiB, dimension cap, quality), checked in order
ORIGIN_SIZE_PRESETS = (
    (5, 800, 0.5),
    (3, 1000, 0.6),
)


class ImageCompressor:
    """Re-encodes images as JPEG under a size budget.

    Quality is lowered to its floor before the resolution is touched, so
    images stay recognizable rather than full-size but blocky. Both axes
    stop at fixed floors, after which the last encoding is returned even
    if it is still over budget.
    """

    def __init__(self, config: CompressionConfig = None):
        """Initialize compressor with configuration"""
        self.config = config or CompressionConfig()

    def compress(self, source: bytes) -> CompressionResult:
        """
        Compress image bytes to a JPEG under the configured budget

        Args:
            source: Encoded image in any format Pillow can read

        Returns:
            CompressionResult with the final JPEG and every attempt made

        Raises:
            DecodeError: if the bytes are not a readable image
        """
        image = self.decode(source)
        original_size = len(source)
        dimension_cap, quality = self.starting_parameters(original_size)
        target = self.config.target_max_size_bytes
        attempts = []

        logger.debug(
            "Compressing %dx%d image (%.2f MB), starting at %dpx / %.1f",
            image.width, image.height, original_size / MIB, dimension_cap, quality
        )

        while True:
            resized = self._resize(image, dimension_cap)
            data = self._encode(resized, quality)
            measured = self.measure(data)
            attempts.append(CompressionAttempt(
                dimension_cap=dimension_cap,
                quality=quality,
                width=resized.width,
                height=resized.height,
                size_bytes=measured
            ))

            if measured <= target:
                break
            if quality > QUALITY_FLOOR:
                quality = max(QUALITY_FLOOR, round(quality - QUALITY_STEP, 2))
            elif dimension_cap > DIMENSION_FLOOR:
                quality = QUALITY_FLOOR
                dimension_cap = max(DIMENSION_FLOOR, dimension_cap - DIMENSION_STEP)
            else:
                logger.info(
                    "Image still %d bytes over budget at %dpx / %.1f, returning best effort",
                    measured - target, dimension_cap, quality
                )
                break

        result = CompressionResult(
            data=data,
            width=resized.width,
            height=resized.height,
            quality=quality,
            dimension_cap=dimension_cap,
            original_size_bytes=original_size,
            target_size_bytes=target,
            measured_size_bytes=measured,
            attempts=attempts
        )
        logger.info(
            "Compressed %d bytes to %d bytes in %d attempt(s)",
            original_size, result.size_bytes, len(attempts)
        )
        return result

    def starting_parameters(self, original_size: int) -> Tuple[int, float]:
        """Pick (dimension cap, quality) from the size of the upload"""
        size_mb = original_size / MIB
        for threshold_mb, dimension_cap, quality in ORIGIN_SIZE_PRESETS:
            if size_mb > threshold_mb:
                return (dimension_cap, quality)
        return (self.config.max_dimension_px, self.config.initial_quality)

    def measure(self, data: bytes) -> int:
        """Size compared against the budget, as raw bytes or base64 length"""
        if self.config.measure_base64:
            return 4 * ((len(data) + 2) // 3)
        return len(data)

    @staticmethod
    def decode(source: bytes) -> Image.Image:
        """
        Decode image bytes into an RGB image ready for JPEG encoding

        Raises:
            DecodeError: if the bytes are empty, not an image or truncated
        """
        if not source:
            raise DecodeError("Image data is empty")
        try:
            image = Image.open(io.BytesIO(source))
            image.load()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise DecodeError(f"Cannot decode image: {exc}") from exc

        image = ImageOps.exif_transpose(image)
        return ImageCompressor._flatten(image)

    @staticmethod
    def _flatten(image: Image.Image) -> Image.Image:
        """Convert to RGB, painting transparent areas white"""
        if image.mode == "RGB":
            return image
        if image.mode in ("RGBA", "LA", "P"):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        return image.convert("RGB")

    @staticmethod
    def _resize(image: Image.Image, dimension_cap: int) -> Image.Image:
        """Scale the longer side down to the cap, preserving aspect ratio; never upscale"""
        longer = max(image.width, image.height)
        if longer <= dimension_cap:
            return image
        scale = dimension_cap / longer
        size = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
        return image.resize(size, Image.LANCZOS)

    @staticmethod
    def _encode(image: Image.Image, quality: float) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=max(1, int(round(quality * 100))))
        return buffer.getvalue()
