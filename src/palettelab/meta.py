"""Header probing and hashing for source images.

``probe_image`` answers "may we decode this?" from the byte count and the
image header alone. Pillow opens images lazily, so no pixel buffer is
allocated until a frame is loaded.
"""

import hashlib
import io
import logging
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from .config import DEFAULT_LIMITS_CONFIG, LimitsConfig
from .error_handling import DecodeError, LimitExceededError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = frozenset({"PNG", "JPEG", "GIF", "WEBP", "BMP"})


@dataclass
class ImageMetadata:
    """Metadata read from a source image header."""

    sha256: str
    format: str
    width: int
    height: int
    byte_size: int
    is_animated: bool
    mode: str


def compute_sha256(data: bytes) -> str:
    """Compute SHA256 hash of in-memory image bytes."""
    return hashlib.sha256(data).hexdigest()


def check_byte_size(data: bytes, limits: LimitsConfig) -> None:
    if len(data) > limits.MAX_IMAGE_BYTES:
        raise LimitExceededError(
            f"{len(data)} bytes exceeds the {limits.MAX_IMAGE_BYTES} byte limit",
            context={"byte_size": len(data), "limit": limits.MAX_IMAGE_BYTES},
        )


def check_dimensions(width: int, height: int, limits: LimitsConfig) -> None:
    limit = limits.MAX_IMAGE_DIMENSION
    if width > limit or height > limit:
        raise LimitExceededError(
            f"{width}x{height} exceeds the {limit}x{limit} pixel limit",
            context={"width": width, "height": height, "limit": limit},
        )


def open_image(data: bytes) -> Image.Image:
    """Open image bytes lazily, mapping Pillow failures to PaletteLab errors."""
    try:
        img = Image.open(io.BytesIO(data))
    except Image.DecompressionBombError as e:
        raise LimitExceededError(f"Image rejected as a decompression bomb: {e}", cause=e) from e
    except UnidentifiedImageError as e:
        raise DecodeError("Unrecognized image data", cause=e) from e
    except (OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Malformed image header: {e}", cause=e) from e

    if img.format not in SUPPORTED_FORMATS:
        fmt = img.format
        img.close()
        raise DecodeError(f"Unsupported image format: {fmt}", context={"format": fmt})
    return img


def probe_image(data: bytes, limits: LimitsConfig | None = None) -> ImageMetadata:
    """Validate size limits and read header metadata without decoding pixels.

    Raises:
        LimitExceededError: If the byte size or dimensions exceed the limits
        DecodeError: If the data is not a supported, well-formed image
    """
    limits = limits or DEFAULT_LIMITS_CONFIG
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise DecodeError(f"Image data must be bytes, got {type(data).__name__}")
    data = bytes(data)
    if not data:
        raise DecodeError("Image data is empty")

    check_byte_size(data, limits)

    with open_image(data) as img:
        width, height = img.size
        check_dimensions(width, height, limits)
        metadata = ImageMetadata(
            sha256=compute_sha256(data),
            format=img.format,
            width=width,
            height=height,
            byte_size=len(data),
            is_animated=bool(getattr(img, "is_animated", False)),
            mode=img.mode,
        )

    logger.debug(
        f"Probed {metadata.format} {metadata.width}x{metadata.height} "
        f"({metadata.byte_size} bytes, animated={metadata.is_animated})"
    )
    return metadata
