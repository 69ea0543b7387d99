"""Tests for the frame pipeline."""

import io

import numpy as np
import pytest
from PIL import Image

from conftest import GIF_FRAME_DURATIONS, decode_all, frame_durations, make_gif, make_png
from palettelab.config import LimitsConfig
from palettelab.error_handling import (
    DecodeError,
    InternalFailureError,
    InvalidParameterError,
    JobCancelledError,
    LimitExceededError,
)
from palettelab.frames import decode_frames
from palettelab.job import CancelToken
from palettelab.palette import get_palette
from palettelab.pipeline import FramePipeline, blend
from palettelab.registry import Algorithm, Effect, ExportFormat, Flavor, QualityPreset
from palettelab.remap import get_or_build_lut
from palettelab.request import ProcessingRequest, RemapTask


def _request(source, **kwargs) -> ProcessingRequest:
    return ProcessingRequest(submitter_id="tester", sources=(source,), **kwargs)


class TestStillImages:
    """Single-frame remapping."""

    def test_mocha_nearest_neighbor_png(self, pipeline):
        source = make_png(100, 100)
        request = _request(source, flavor=Flavor.MOCHA, algorithm=Algorithm.NEAREST_NEIGHBOR)

        output = pipeline.run(request, CancelToken())

        assert output.format is ExportFormat.PNG
        assert (output.width, output.height) == (100, 100)
        assert output.frame_count == 1
        with Image.open(io.BytesIO(output.data)) as img:
            assert img.format == "PNG"
            assert img.size == (100, 100)
            pixels = np.asarray(img.convert("RGB")).reshape(-1, 3)
        palette = {tuple(c) for c in get_palette(Flavor.MOCHA).rgb.tolist()}
        assert {tuple(c) for c in pixels.tolist()} <= palette

    def test_export_format_override(self, pipeline, png_bytes):
        output = pipeline.run(_request(png_bytes, export_format=ExportFormat.JPEG), CancelToken())
        with Image.open(io.BytesIO(output.data)) as img:
            assert img.format == "JPEG"
        assert output.filename.endswith(".jpg")

    def test_quality_preset_sets_algorithm(self, pipeline, png_bytes):
        output = pipeline.run(
            _request(png_bytes, algorithm=Algorithm.HALD, quality=QualityPreset.FAST), CancelToken()
        )
        assert output.algorithm is Algorithm.NEAREST_NEIGHBOR

    def test_task_and_request_are_equivalent(self, pipeline, png_bytes):
        request = _request(png_bytes, flavor=Flavor.FRAPPE, algorithm=Algorithm.EUCLIDE)
        from_request = pipeline.run(request, CancelToken())
        from_task = pipeline.run(RemapTask.from_request(request), CancelToken())
        assert from_request.data == from_task.data


class TestAnimatedImages:
    """Multi-frame remapping."""

    def test_three_frame_gif_latte_default(self, pipeline, gif_bytes):
        output = pipeline.run(_request(gif_bytes), CancelToken())

        assert output.format is ExportFormat.GIF
        assert output.frame_count == 3
        assert output.durations == GIF_FRAME_DURATIONS
        assert len(decode_all(output.data)) == 3
        assert frame_durations(output.data) == GIF_FRAME_DURATIONS

    def test_frame_order_preserved(self, pipeline, gif_bytes):
        output = pipeline.run(
            _request(gif_bytes, flavor=Flavor.MOCHA, algorithm=Algorithm.NEAREST_NEIGHBOR),
            CancelToken(),
        )
        frames = decode_all(output.data)
        # Solid red, green, blue sources keep their dominant channel in order
        firsts = [frame.getpixel((0, 0))[:3] for frame in frames]
        assert len(set(firsts)) == 3
        assert [int(np.argmax(color)) for color in firsts] == [0, 1, 2]

    def test_progress_reports_each_frame(self, pipeline, gif_bytes):
        calls = []
        pipeline.run(_request(gif_bytes), CancelToken(), progress=lambda done, total: calls.append((done, total)))
        assert calls == [(1, 3), (2, 3), (3, 3)]

    def test_still_format_keeps_first_frame(self, pipeline, gif_bytes):
        output = pipeline.run(_request(gif_bytes, export_format=ExportFormat.BMP), CancelToken())
        assert output.frame_count == 1
        with Image.open(io.BytesIO(output.data)) as img:
            assert img.format == "BMP"


class TestCancellation:
    """Cooperative cancellation at frame boundaries."""

    def test_cancel_before_start(self, pipeline, gif_bytes):
        token = CancelToken()
        token.cancel()
        calls = []

        with pytest.raises(JobCancelledError) as exc_info:
            pipeline.run(_request(gif_bytes), token, progress=lambda d, t: calls.append(d))

        assert exc_info.value.reason == "user"
        assert calls == []

    def test_cancel_mid_animation_stops_before_next_frame(self, pipeline, gif_bytes):
        token = CancelToken()
        calls = []

        def progress(done, total):
            calls.append(done)
            if done == 1:
                token.cancel()

        with pytest.raises(JobCancelledError):
            pipeline.run(_request(gif_bytes), token, progress=progress)

        assert calls == [1]

    def test_expired_deadline_reads_as_timeout(self, pipeline, png_bytes):
        token = CancelToken()
        token.set_deadline(0.0)

        with pytest.raises(JobCancelledError) as exc_info:
            pipeline.run(_request(png_bytes), token)

        assert exc_info.value.reason == "timeout"

    def test_cancel_during_decode_skips_table_build(self, pipeline, png_bytes, monkeypatch):
        token = CancelToken()
        built = []

        def decode_then_cancel(*args, **kwargs):
            decoded = decode_frames(*args, **kwargs)
            token.cancel()
            return decoded

        monkeypatch.setattr("palettelab.pipeline.decode_frames", decode_then_cancel)
        monkeypatch.setattr("palettelab.pipeline.get_or_build_lut", lambda *a, **k: built.append(a))

        with pytest.raises(JobCancelledError):
            pipeline.run(_request(png_bytes), token)
        assert built == []

    def test_cancel_during_table_build_skips_frames(self, pipeline, gif_bytes, monkeypatch):
        token = CancelToken()
        remapped = []

        def build_then_cancel(*args, **kwargs):
            lut = get_or_build_lut(*args, **kwargs)
            token.cancel("timeout")
            return lut

        monkeypatch.setattr("palettelab.pipeline.get_or_build_lut", build_then_cancel)
        monkeypatch.setattr("palettelab.pipeline.apply_frame", lambda *a, **k: remapped.append(a))

        with pytest.raises(JobCancelledError) as exc_info:
            pipeline.run(_request(gif_bytes), token)
        assert exc_info.value.reason == "timeout"
        assert remapped == []


NEAR_IDENTICAL_COLORS = [(220, 40, 40), (221, 40, 40), (50, 60, 230)]


class TestFrameIntegrity:
    """Frames that remap to the same colors stay separate frames."""

    @pytest.mark.parametrize("export_format", [ExportFormat.GIF, ExportFormat.PNG])
    def test_matching_neighbours_keep_count_and_timing(self, pipeline, export_format):
        source = make_gif(colors=NEAR_IDENTICAL_COLORS)
        request = _request(
            source,
            flavor=Flavor.LATTE,
            algorithm=Algorithm.NEAREST_NEIGHBOR,
            export_format=export_format,
        )

        output = pipeline.run(request, CancelToken())

        frames = decode_all(output.data)
        # First two frames land on the same palette color
        assert frames[0].getpixel((0, 0)) == frames[1].getpixel((0, 0))
        assert output.frame_count == 3
        assert len(frames) == 3
        assert frame_durations(output.data) == GIF_FRAME_DURATIONS
        assert output.durations == GIF_FRAME_DURATIONS

    def test_webp_metadata_describes_written_file(self, pipeline):
        source = make_gif(colors=NEAR_IDENTICAL_COLORS)
        request = _request(
            source,
            flavor=Flavor.LATTE,
            algorithm=Algorithm.NEAREST_NEIGHBOR,
            export_format=ExportFormat.WEBP,
        )

        output = pipeline.run(request, CancelToken())

        assert output.frame_count == len(decode_all(output.data))
        assert output.durations == frame_durations(output.data)
        assert sum(output.durations) == sum(GIF_FRAME_DURATIONS)


class TestFadeEffect:
    """The fade effect."""

    def test_still_becomes_animation(self, pipeline, png_bytes):
        output = pipeline.run(_request(png_bytes, effect=Effect.FADE), CancelToken())

        config = pipeline.remap_config
        assert output.format is ExportFormat.GIF
        assert output.frame_count == config.FADE_STEPS
        assert output.durations == [config.FADE_FRAME_MS] * (config.FADE_STEPS - 1) + [
            config.FADE_HOLD_MS
        ]

    def test_animated_fade_keeps_timing(self, pipeline, gif_bytes):
        output = pipeline.run(_request(gif_bytes, effect=Effect.FADE), CancelToken())
        assert output.durations == GIF_FRAME_DURATIONS

    def test_fade_skipped_for_still_formats(self, pipeline, png_bytes):
        output = pipeline.run(
            _request(png_bytes, effect=Effect.FADE, export_format=ExportFormat.JPEG), CancelToken()
        )
        assert output.frame_count == 1

    def test_blend_endpoints(self):
        a = np.zeros((2, 2, 4), dtype=np.uint8)
        b = np.full((2, 2, 4), 200, dtype=np.uint8)
        a[..., 3] = 255

        np.testing.assert_array_equal(blend(a, b, 0.0), a)
        np.testing.assert_array_equal(blend(a, b, 1.0), b)
        middle = blend(a, b, 0.5)
        assert middle[0, 0, 0] == 100
        assert middle[0, 0, 3] == 255


class TestFailures:
    """Typed failures."""

    def test_byte_limit(self, png_bytes):
        pipeline = FramePipeline(limits=LimitsConfig(MAX_IMAGE_BYTES=len(png_bytes) - 1))
        with pytest.raises(LimitExceededError):
            pipeline.run(_request(png_bytes), CancelToken())

    def test_malformed_source(self, pipeline):
        with pytest.raises(DecodeError):
            pipeline.run(_request(b"definitely not an image"), CancelToken())

    def test_wrong_option_type(self, pipeline, png_bytes):
        task = RemapTask(source=png_bytes, flavor="mocha")
        with pytest.raises(InvalidParameterError):
            pipeline.run(task, CancelToken())

    def test_unexpected_error_becomes_internal_failure(self, pipeline, png_bytes, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("kaboom")

        monkeypatch.setattr("palettelab.pipeline.apply_frame", explode)
        with pytest.raises(InternalFailureError):
            pipeline.run(_request(png_bytes), CancelToken())
