"""Tests for vidscript.utils module."""

from __future__ import annotations

from pathlib import Path

from vidscript.utils import format_duration, format_size


class TestFormatDuration:
    def test_short_clip(self) -> None:
        assert format_duration(7.0) == "0:07"

    def test_container_duration(self) -> None:
        assert format_duration(90.0) == "1:30"

    def test_fraction_dropped(self) -> None:
        assert format_duration(59.99) == "0:59"

    def test_two_hour_recording(self) -> None:
        assert format_duration(7200.0 + 61.0) == "2:01:01"

    def test_just_under_an_hour(self) -> None:
        assert format_duration(3599.0) == "59:59"

    def test_negative_clamped(self) -> None:
        assert format_duration(-3.0) == "0:00"


class TestFormatSize:
    def test_missing_file(self, tmp_path: Path) -> None:
        assert format_size(tmp_path / "missing.aac") == "-"

    def test_bytes(self, tmp_path: Path) -> None:
        path = tmp_path / "a.aac"
        path.write_bytes(b"\x00" * 512)
        assert format_size(path) == "512.0 B"

    def test_kilobytes(self, tmp_path: Path) -> None:
        path = tmp_path / "a.aac"
        path.write_bytes(b"\x00" * 2048)
        assert format_size(path) == "2.0 KB"
