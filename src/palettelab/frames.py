"""Frame decoding and encoding.

Sources are decoded into an ordered list of RGBA frames with per-frame
display durations; outputs are encoded from such a list. Animated output
keeps frame order, durations and the loop count.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

import numpy as np
from PIL import GifImagePlugin, Image, PngImagePlugin

from .config import DEFAULT_LIMITS_CONFIG, DEFAULT_REMAP_CONFIG, LimitsConfig
from .error_handling import (
    DecodeError,
    EncodeError,
    InvalidParameterError,
    LimitExceededError,
    error_context,
    log_warning_with_context,
)
from .meta import check_dimensions, open_image, probe_image
from .registry import ExportFormat

logger = logging.getLogger(__name__)

DEFAULT_FRAME_DURATION_MS = 100
GIF_TRANSPARENT_INDEX = 255


@dataclass
class Frame:
    """One RGBA image in a (possibly single-frame) sequence."""

    pixels: np.ndarray  # (H, W, 4) uint8
    index: int
    duration_ms: int | None = None

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass
class DecodedImage:
    """Ordered frames decoded from one source."""

    format: str
    frames: list[Frame]
    loop: int | None = None
    is_animated: bool = False

    @property
    def width(self) -> int:
        return self.frames[0].width

    @property
    def height(self) -> int:
        return self.frames[0].height

    @property
    def durations(self) -> list[int | None]:
        return [frame.duration_ms for frame in self.frames]


def decode_frames(data: bytes, limits: LimitsConfig | None = None) -> DecodedImage:
    """Decode image bytes into RGBA frames.

    Byte size and dimensions are checked from the header before any frame
    is loaded; the frame count is checked before frames are decoded.

    Raises:
        LimitExceededError: If a configured limit is exceeded
        DecodeError: If the data is malformed or unsupported
    """
    limits = limits or DEFAULT_LIMITS_CONFIG
    metadata = probe_image(data, limits)

    with open_image(bytes(data)) as img:
        try:
            frame_count = int(getattr(img, "n_frames", 1))
        except (OSError, EOFError, SyntaxError, ValueError) as e:
            raise DecodeError(f"Error counting frames: {e}", cause=e) from e

        if frame_count > limits.MAX_FRAMES:
            raise LimitExceededError(
                f"{frame_count} frames exceeds the {limits.MAX_FRAMES} frame limit",
                context={"frames": frame_count, "limit": limits.MAX_FRAMES},
            )

        animated = frame_count > 1
        loop = img.info.get("loop")
        frames: list[Frame] = []

        for index in range(frame_count):
            try:
                img.seek(index)
                check_dimensions(img.size[0], img.size[1], limits)
                rgba = img.convert("RGBA")
            except (LimitExceededError, DecodeError):
                raise
            except Image.DecompressionBombError as e:
                raise LimitExceededError(f"Frame {index} rejected: {e}", cause=e) from e
            except (OSError, EOFError, SyntaxError, ValueError) as e:
                raise DecodeError(f"Failed to decode frame {index}: {e}", cause=e) from e

            duration = None
            if animated:
                raw_duration = img.info.get("duration")
                duration = (
                    int(raw_duration) if raw_duration is not None else DEFAULT_FRAME_DURATION_MS
                )

            frames.append(Frame(pixels=np.asarray(rgba, dtype=np.uint8).copy(), index=index, duration_ms=duration))

    logger.debug(f"Decoded {len(frames)} frame(s) from {metadata.format} source")
    return DecodedImage(format=metadata.format, frames=frames, loop=loop, is_animated=animated)


def encode_frames(
    frames: list[Frame],
    export_format: ExportFormat,
    loop: int | None = 0,
    jpeg_quality: int | None = None,
) -> bytes:
    """Encode frames, in index order, to ``export_format``.

    Formats that cannot animate (JPEG, BMP) receive only the first frame.

    Raises:
        InvalidParameterError: If ``export_format`` is not an ExportFormat
        EncodeError: If encoding fails
    """
    if not isinstance(export_format, ExportFormat):
        raise InvalidParameterError(f"Not an export format: {export_format!r}")
    if not frames:
        raise EncodeError("No frames to encode")

    ordered = sorted(frames, key=lambda f: f.index)
    if len(ordered) > 1 and not export_format.supports_animation:
        log_warning_with_context(
            f"{export_format.value} cannot hold animation, encoding first frame only",
            context={"frames": len(ordered)},
            logger=logger,
        )
        ordered = ordered[:1]

    with error_context(
        f"encode {export_format.value} output",
        EncodeError,
        context={"format": export_format.value, "frames": len(ordered)},
        logger=logger,
    ):
        if len(ordered) > 1 and len({(f.width, f.height) for f in ordered}) > 1:
            raise EncodeError("Animation frames must share one size")

        if len(ordered) > 1 and export_format is ExportFormat.GIF:
            return _encode_gif_animation(ordered, loop)

        images = [Image.fromarray(frame.pixels) for frame in ordered]
        buffer = io.BytesIO()
        params: dict = {"format": export_format.value}

        if export_format is ExportFormat.JPEG:
            images = [image.convert("RGB") for image in images]
            params["quality"] = jpeg_quality or DEFAULT_REMAP_CONFIG.JPEG_QUALITY
        elif export_format is ExportFormat.WEBP:
            params["lossless"] = True

        if len(images) > 1:
            params.update(
                save_all=True,
                append_images=images[1:],
                duration=_durations(ordered),
                loop=loop if loop is not None else 0,
            )
            if export_format is ExportFormat.PNG:
                # Each frame replaces a cleared canvas, so identical neighbours stay separate frames
                params.update(
                    disposal=PngImagePlugin.Disposal.OP_BACKGROUND,
                    blend=PngImagePlugin.Blend.OP_SOURCE,
                )
            elif export_format is ExportFormat.WEBP:
                # Every frame is a key frame
                params.update(kmin=0, kmax=1)

        images[0].save(buffer, **params)
        return buffer.getvalue()


def _durations(frames: list[Frame]) -> list[int]:
    return [f.duration_ms if f.duration_ms is not None else DEFAULT_FRAME_DURATION_MS for f in frames]


def _gif_palette_frames(frames: list[Frame]) -> tuple[list[Image.Image], bool]:
    """Index every frame against one shared 256-entry palette.

    Exact colors are kept when they fit; otherwise all frames are quantized
    together. When any pixel is transparent, index 255 is reserved for it.
    """
    height, width = frames[0].height, frames[0].width
    sheet = np.concatenate([frame.pixels for frame in frames], axis=0)
    transparent = sheet[..., 3] < 128
    has_transparency = bool(transparent.any())
    limit = 255 if has_transparency else 256

    rgb = np.ascontiguousarray(sheet[..., :3])
    colors, inverse = np.unique(rgb.reshape(-1, 3), axis=0, return_inverse=True)
    if len(colors) <= limit:
        indices = inverse.reshape(rgb.shape[:2]).astype(np.uint8)
        palette = colors.astype(np.uint8).ravel().tolist()
    else:
        quantized = Image.fromarray(rgb).quantize(
            colors=limit, method=Image.Quantize.MEDIANCUT, dither=Image.Dither.NONE
        )
        indices = np.array(quantized, dtype=np.uint8)
        palette = quantized.getpalette()[: limit * 3]
    palette = palette + [0] * (768 - len(palette))

    if has_transparency:
        indices[transparent] = GIF_TRANSPARENT_INDEX

    images = []
    for i in range(len(frames)):
        rows = np.ascontiguousarray(indices[i * height : (i + 1) * height])
        image = Image.frombytes("P", (width, height), rows.tobytes())
        image.putpalette(palette)
        images.append(image)
    return images, has_transparency


def _encode_gif_animation(frames: list[Frame], loop: int | None) -> bytes:
    """Write one GIF image block per frame.

    Pillow's animated GIF writer folds a frame that matches its predecessor
    into the previous frame's duration; frames here are written one by one
    so the file holds exactly one block per input frame.
    """
    images, has_transparency = _gif_palette_frames(frames)
    durations = _durations(frames)

    header_info: dict = {"optimize": False, "duration": durations[0]}
    frame_params: dict = {"disposal": 2 if has_transparency else 1}
    if loop is not None:
        header_info["loop"] = loop
    if has_transparency:
        header_info["transparency"] = GIF_TRANSPARENT_INDEX
        frame_params["transparency"] = GIF_TRANSPARENT_INDEX

    header, _ = GifImagePlugin.getheader(images[0], info=header_info)
    chunks = list(header)
    for image, duration in zip(images, durations):
        chunks.extend(GifImagePlugin.getdata(image, duration=duration, **frame_params))
    chunks.append(b";")
    return b"".join(chunks)


def read_frame_timing(data: bytes) -> list[int | None]:
    """Per-frame durations stored in encoded image bytes, one entry per frame.

    Single-frame images report ``[None]``.
    """
    with Image.open(io.BytesIO(data)) as img:
        count = int(getattr(img, "n_frames", 1))
        if count == 1:
            return [None]
        durations: list[int | None] = []
        for index in range(count):
            img.seek(index)
            raw = img.info.get("duration")
            durations.append(int(round(raw)) if raw is not None else None)
        return durations
