# tests/unit/logging/test_unit_handlers.py - v1
"""Tests for logging/handlers.py: run log rotation."""

from __future__ import annotations

import pytest

from omniforge.logging.handlers import _parse_size, create_rotating_handler


class TestParseSize:
    @pytest.mark.parametrize(
        "raw, expected",
        [("10MB", 10 * 1024**2), ("512kb", 512 * 1024), ("1 GB", 1024**3)],
    )
    def test_units(self, raw, expected):
        assert _parse_size(raw) == expected

    @pytest.mark.parametrize("raw", ["", "10", "10TB", "ten MB"])
    def test_rejects_invalid(self, raw):
        with pytest.raises(ValueError):
            _parse_size(raw)


class TestCreateRotatingHandler:
    def test_size_and_backups(self, tmp_path):
        handler = create_rotating_handler(str(tmp_path / "run.log"), rotation="2MB", retention=7)
        try:
            assert handler.maxBytes == 2 * 1024**2
            assert handler.backupCount == 7
        finally:
            handler.close()

    def test_creates_log_directory(self, tmp_path):
        handler = create_rotating_handler(str(tmp_path / "logs" / "nested" / "run.log"))
        handler.close()
        assert (tmp_path / "logs" / "nested").is_dir()
