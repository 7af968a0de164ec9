"""Best-effort image resizing and JPEG re-encoding toward a byte budget."""

import base64
import io
import logging
import time
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from shared.errors import DecodeFailure
from shared.models import ImageAsset

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1920
AGGRESSIVE_MAX_DIMENSION = 1200

# Quality is stepped in whole percent to keep the retry sequence exact
START_QUALITY = 80
AGGRESSIVE_START_QUALITY = 60
MIN_QUALITY = 30
AGGRESSIVE_MIN_QUALITY = 20
QUALITY_STEP = 10


def scaled_size(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """
    Scale (width, height) so the longer edge does not exceed max_dimension.

    Aspect ratio is preserved; images already within the cap are unchanged.
    """
    if width <= max_dimension and height <= max_dimension:
        return width, height
    if width > height:
        return max_dimension, max(1, round(height * max_dimension / width))
    return max(1, round(width * max_dimension / height)), max_dimension


class ImageCodec:
    """Pillow-backed image compressor."""

    def decode(self, asset: ImageAsset) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(asset.data))
            image.load()
            return image
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise DecodeFailure(f"Cannot decode {asset.name}: {e}") from e

    def encode(self, image: Image.Image, quality: int) -> bytes:
        buffer = io.BytesIO()
        image.save(buffer, "JPEG", quality=quality, optimize=True)
        return buffer.getvalue()

    def compress(self, asset: ImageAsset, target_kb: float, aggressive: bool = False) -> ImageAsset:
        """
        Resize and re-encode an image until it fits target_kb.

        Args:
            asset: Image to compress
            target_kb: Size budget in kilobytes
            aggressive: Use the smaller dimension cap and lower quality range

        Returns:
            A JPEG ImageAsset, or the original asset if it cannot be decoded
            or already fits both the budget and the dimension cap
        """
        max_dimension = AGGRESSIVE_MAX_DIMENSION if aggressive else MAX_DIMENSION
        quality = AGGRESSIVE_START_QUALITY if aggressive else START_QUALITY
        min_quality = AGGRESSIVE_MIN_QUALITY if aggressive else MIN_QUALITY
        target_bytes = target_kb * 1024

        try:
            image = self.decode(asset)
        except DecodeFailure as e:
            logger.warning(f"Skipping compression, returning original: {e}")
            return asset

        width, height = scaled_size(image.width, image.height, max_dimension)
        if (width, height) == image.size and asset.size <= target_bytes:
            return asset

        if (width, height) != image.size:
            image = image.resize((width, height), Image.LANCZOS)
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")

        while True:
            encoded = self.encode(image, quality)
            if len(encoded) <= target_bytes or quality - QUALITY_STEP < min_quality:
                break
            quality -= QUALITY_STEP

        logger.info(
            f"Compressed {asset.name} from {asset.size / 1024:.0f}KB to "
            f"{len(encoded) / 1024:.0f}KB ({width}x{height}, quality {quality})"
        )
        return ImageAsset(
            name=asset.name,
            content_type="image/jpeg",
            data=encoded,
            created_at=time.time(),
        )


def to_data_url(asset: ImageAsset) -> str:
    """Encode an asset as a self-describing data URL."""
    encoded = base64.b64encode(asset.data).decode("ascii")
    return f"data:{asset.content_type or 'image/jpeg'};base64,{encoded}"


def parse_data_url(data_url: str) -> Tuple[str, bytes]:
    """
    Decode a data URL.

    Returns:
        Tuple of (content type, binary data)

    Raises:
        ValueError: If data_url is not a base64 data URL
    """
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ValueError("Not a base64 data URL")
    content_type = header[len("data:"):-len(";base64")] or "image/jpeg"
    return content_type, base64.b64decode(payload, validate=True)
