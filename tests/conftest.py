import io

import numpy as np
import pytest
from PIL import Image

from palettelab.caching import reset_lut_cache
from palettelab.config import LimitsConfig, RemapConfig
from palettelab.pipeline import FramePipeline

# ---------------------------------------------------------------------------
# In-memory image builders. Images are tiny so every test stays fast.
# ---------------------------------------------------------------------------

GIF_FRAME_COLORS = [(220, 40, 40), (40, 200, 60), (50, 60, 230)]
GIF_FRAME_DURATIONS = [100, 200, 300]


def gradient_pixels(width: int, height: int) -> np.ndarray:
    """RGB gradient covering a wide range of colors."""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    r = np.tile(xs, (height, 1))
    g = np.tile(ys[:, None], (1, width))
    b = 255 - (r + g) / 2
    return np.stack([r, g, b], axis=2).astype(np.uint8)


def encode_still(pixels: np.ndarray, fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format=fmt)
    return buffer.getvalue()


def make_png(width: int = 32, height: int = 32) -> bytes:
    return encode_still(gradient_pixels(width, height), "PNG")


def make_gif(
    colors=GIF_FRAME_COLORS, durations=GIF_FRAME_DURATIONS, size=(16, 16), loop: int = 0
) -> bytes:
    """Animated GIF of solid frames. Consecutive colors must differ or Pillow merges them."""
    frames = [Image.new("RGB", size, color) for color in colors]
    buffer = io.BytesIO()
    frames[0].save(
        buffer,
        format="GIF",
        save_all=True,
        append_images=frames[1:],
        duration=list(durations),
        loop=loop,
    )
    return buffer.getvalue()


def decode_all(data: bytes) -> list[Image.Image]:
    """All frames of encoded output as RGBA images."""
    frames = []
    with Image.open(io.BytesIO(data)) as img:
        for index in range(getattr(img, "n_frames", 1)):
            img.seek(index)
            frames.append(img.convert("RGBA"))
    return frames


def frame_durations(data: bytes) -> list[int]:
    durations = []
    with Image.open(io.BytesIO(data)) as img:
        for index in range(getattr(img, "n_frames", 1)):
            img.seek(index)
            durations.append(img.info.get("duration"))
    return durations


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_lut_cache():
    """Each test starts with an empty global lookup table cache."""
    reset_lut_cache()
    yield
    reset_lut_cache()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png(32, 32)


@pytest.fixture
def gif_bytes() -> bytes:
    return make_gif()


@pytest.fixture
def small_limits() -> LimitsConfig:
    return LimitsConfig(MAX_IMAGE_BYTES=64 * 1024, MAX_IMAGE_DIMENSION=64, MAX_FRAMES=5)


@pytest.fixture
def fast_remap_config() -> RemapConfig:
    """Coarse tables and a short fade keep pipeline tests quick."""
    return RemapConfig(DEFAULT_LUT_BITS=5, PIXEL_WORKERS=2, PARALLEL_MIN_ROWS=16, FADE_STEPS=4)


@pytest.fixture
def pipeline(fast_remap_config) -> FramePipeline:
    return FramePipeline(remap_config=fast_remap_config)
