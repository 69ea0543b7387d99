"""Tests for palettelab.io module."""

import logging
from pathlib import Path

import pytest

from palettelab.io import atomic_write, setup_logging, unique_path, write_bytes_atomic


class TestAtomicWrite:
    """Tests for atomic_write."""

    def test_writes_bytes(self, tmp_path):
        target = tmp_path / "nested" / "out.png"
        write_bytes_atomic(target, b"\x89PNG data")
        assert target.read_bytes() == b"\x89PNG data"

    def test_failure_leaves_no_file(self, tmp_path):
        target = tmp_path / "out.png"
        with pytest.raises(RuntimeError):
            with atomic_write(target) as f:
                f.write(b"partial")
                raise RuntimeError("encoder died")

        assert not target.exists()
        assert list(tmp_path.iterdir()) == []

    def test_replaces_existing(self, tmp_path):
        target = tmp_path / "out.txt"
        target.write_text("old")
        with atomic_write(target, "w") as f:
            f.write("new")
        assert target.read_text() == "new"


class TestUniquePath:
    """Tests for unique_path."""

    def test_free_name(self, tmp_path):
        assert unique_path(tmp_path, "a.png") == tmp_path / "a.png"

    def test_conflicts_get_a_counter(self, tmp_path):
        (tmp_path / "a.png").write_bytes(b"")
        (tmp_path / "a_1.png").write_bytes(b"")
        assert unique_path(tmp_path, "a.png") == tmp_path / "a_2.png"


def test_setup_logging_creates_log_file(tmp_path):
    root = logging.getLogger()
    saved, saved_level = root.handlers[:], root.level
    root.handlers = []
    try:
        logger = setup_logging(tmp_path / "logs", "DEBUG")
        logger.info("hello")
        assert logger.name == "palettelab"
        files = list(Path(tmp_path / "logs").glob("palettelab_*.log"))
        assert len(files) == 1
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = saved
        root.setLevel(saved_level)
