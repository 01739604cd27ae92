"""Tests for vidscript.io module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from vidscript.io import save_transcript, save_utterances, write_json, write_text
from vidscript.transcribe.models import ASRResult, Utterance


@pytest.fixture
def result() -> ASRResult:
    return ASRResult(
        utterances=[
            Utterance(text="When I was young", start_time=0, end_time=1800),
            Utterance(text="we lived by the river", start_time=1800, end_time=3500),
        ]
    )


class TestWriteText:
    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "out" / "deep" / "talk.txt"
        write_text(path, "hello")
        assert path.read_text() == "hello"

    def test_overwrites_existing(self, tmp_path: Path) -> None:
        path = tmp_path / "talk.txt"
        path.write_text("old")
        write_text(path, "new")
        assert path.read_text() == "new"

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        write_text(tmp_path / "talk.txt", "hello")
        assert [p.name for p in tmp_path.iterdir()] == ["talk.txt"]

    def test_failed_write_leaves_target_untouched(self, tmp_path: Path) -> None:
        path = tmp_path / "data.json"
        path.write_text("{}")

        with pytest.raises(TypeError):
            write_json(path, {"bad": object()})

        assert path.read_text() == "{}"
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]

    def test_unicode(self, tmp_path: Path) -> None:
        path = tmp_path / "talk.txt"
        write_text(path, "我们住在河边")
        assert path.read_text(encoding="utf-8") == "我们住在河边"


class TestSaveTranscript:
    def test_one_line_per_utterance(self, tmp_path: Path, result: ASRResult) -> None:
        path = tmp_path / "talk.txt"
        save_transcript(path, result)
        assert path.read_text() == "When I was young\nwe lived by the river"

    def test_empty_result(self, tmp_path: Path) -> None:
        path = tmp_path / "talk.txt"
        save_transcript(path, ASRResult())
        assert path.read_text() == ""


class TestSaveUtterances:
    def test_timestamps_kept(self, tmp_path: Path, result: ASRResult) -> None:
        path = tmp_path / "talk.json"
        save_utterances(path, result)

        data = json.loads(path.read_text())
        assert data["utterances"][1] == {
            "text": "we lived by the river",
            "start_time": 1800,
            "end_time": 3500,
        }
