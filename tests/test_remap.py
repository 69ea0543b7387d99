"""Tests for palettelab.remap module."""

import numpy as np
import pytest

from palettelab.caching import LutCache
from palettelab.colormap import remap
from palettelab.error_handling import InvalidParameterError
from palettelab.palette import get_palette
from palettelab.registry import Algorithm, Flavor, QualityPreset
from palettelab.remap import (
    LutParams,
    apply,
    apply_frame,
    get_or_build_lut,
    resolve_algorithm_and_params,
)


@pytest.fixture
def mocha_nn_lut():
    return get_or_build_lut(Flavor.MOCHA, Algorithm.NEAREST_NEIGHBOR, LutParams(bits=5), LutCache())


class TestLutParams:
    """Tests for LutParams validation and preset resolution."""

    @pytest.mark.parametrize("bits", [3, 9, "6"])
    def test_invalid_bits(self, bits):
        with pytest.raises(InvalidParameterError):
            LutParams(bits=bits)

    def test_preset_overrides_algorithm(self):
        algorithm, params = resolve_algorithm_and_params(Algorithm.HALD, QualityPreset.HIGH)
        assert algorithm is Algorithm.GAUSSIAN_SAMPLING
        assert params.bits == 7

    def test_plain_request_uses_default_bits(self):
        algorithm, params = resolve_algorithm_and_params(Algorithm.HALD, None, 5)
        assert algorithm is Algorithm.HALD
        assert params.bits == 5


class TestGetOrBuildLut:
    """Tests for table construction."""

    def test_table_shape_and_key(self, mocha_nn_lut):
        assert mocha_nn_lut.table.shape == (32, 32, 32, 3)
        assert mocha_nn_lut.key == (Flavor.MOCHA, Algorithm.NEAREST_NEIGHBOR, 5)
        assert mocha_nn_lut.shift == 3

    def test_table_is_read_only(self, mocha_nn_lut):
        with pytest.raises(ValueError):
            mocha_nn_lut.table[0, 0, 0, 0] = 1

    def test_cached_per_key(self):
        cache = LutCache()
        first = get_or_build_lut(Flavor.LATTE, Algorithm.EUCLIDE, LutParams(bits=4), cache)
        again = get_or_build_lut(Flavor.LATTE, Algorithm.EUCLIDE, LutParams(bits=4), cache)
        other = get_or_build_lut(Flavor.MOCHA, Algorithm.EUCLIDE, LutParams(bits=4), cache)

        assert first is again
        assert other is not first
        assert cache.get_stats().builds == 2

    def test_rejects_raw_strings(self):
        with pytest.raises(InvalidParameterError):
            get_or_build_lut("mocha", Algorithm.NEAREST_NEIGHBOR)


class TestApply:
    """Tests for per-pixel and per-frame application."""

    def test_apply_reads_the_quantized_bucket(self, mocha_nn_lut):
        pixel = (19, 131, 243)
        expected = tuple(int(c) for c in mocha_nn_lut.table[19 >> 3, 131 >> 3, 243 >> 3])
        assert apply(pixel, mocha_nn_lut) == expected

    def test_palette_color_maps_to_itself(self, mocha_nn_lut):
        palette = get_palette(Flavor.MOCHA)
        color = palette.color("green")
        assert apply(color, mocha_nn_lut) == remap(color, palette, Algorithm.NEAREST_NEIGHBOR)

    def test_apply_keeps_alpha(self, mocha_nn_lut):
        assert apply((1, 2, 3, 128), mocha_nn_lut)[3] == 128

    def test_apply_frame_outputs_palette_colors(self, mocha_nn_lut):
        rng = np.random.default_rng(7)
        pixels = rng.integers(0, 256, size=(40, 30, 4), dtype=np.uint8)

        out = apply_frame(pixels, mocha_nn_lut)

        assert out.shape == pixels.shape
        assert out is not pixels
        np.testing.assert_array_equal(out[..., 3], pixels[..., 3])
        palette_set = {tuple(c) for c in get_palette(Flavor.MOCHA).rgb.tolist()}
        assert {tuple(c) for c in out[..., :3].reshape(-1, 3).tolist()} <= palette_set

    def test_parallel_bands_match_serial(self, mocha_nn_lut):
        rng = np.random.default_rng(11)
        pixels = rng.integers(0, 256, size=(97, 13, 4), dtype=np.uint8)

        serial = apply_frame(pixels, mocha_nn_lut, workers=1)
        parallel = apply_frame(pixels, mocha_nn_lut, workers=4, parallel_min_rows=8)

        np.testing.assert_array_equal(serial, parallel)

    def test_apply_frame_rejects_rgb(self, mocha_nn_lut):
        with pytest.raises(ValueError):
            apply_frame(np.zeros((4, 4, 3), dtype=np.uint8), mocha_nn_lut)


@pytest.mark.slow
def test_default_resolution_weighted_table():
    """Full default-resolution build of a weighted kernel."""
    lut = get_or_build_lut(Flavor.LATTE, Algorithm.SHEPARDS_METHOD, LutParams(), LutCache())

    assert lut.table.shape == (64, 64, 64, 3)
    palette = get_palette(Flavor.LATTE)
    base = palette.color("base")
    assert apply(base, lut) == pytest.approx(base, abs=8)
