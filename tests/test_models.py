"""Tests for vidscript.transcribe.models module."""

from __future__ import annotations

import json

import pytest

from vidscript.exceptions import ResultParseError
from vidscript.transcribe.models import ASRResult, Utterance, parse_result


class TestParseResult:
    def test_reads_transcript_alias(self, sample_result_json: str) -> None:
        result = parse_result(sample_result_json)
        assert result.utterances[0] == Utterance(text="When I was young", start_time=0, end_time=1800)

    def test_extra_fields_ignored(self) -> None:
        payload = json.dumps(
            {
                "language": "zh",
                "utterances": [{"transcript": "hi", "start_time": 0, "end_time": 10, "words": []}],
            }
        )
        assert parse_result(payload).to_text() == "hi"

    def test_no_utterances(self) -> None:
        assert parse_result('{"utterances": []}').to_text() == ""

    @pytest.mark.parametrize("payload", [None, ""])
    def test_empty_payload(self, payload: str | None) -> None:
        with pytest.raises(ResultParseError, match="empty"):
            parse_result(payload)

    def test_invalid_json(self) -> None:
        with pytest.raises(ResultParseError):
            parse_result("{not json")

    def test_missing_transcript(self) -> None:
        with pytest.raises(ResultParseError):
            parse_result('{"utterances": [{"start_time": 0}]}')

    def test_negative_timestamp(self) -> None:
        with pytest.raises(ResultParseError):
            parse_result('{"utterances": [{"transcript": "x", "start_time": -5}]}')


class TestASRResult:
    def test_to_text_joins_lines(self) -> None:
        result = ASRResult(utterances=[Utterance(text=t) for t in ("a", "b", "c")])
        assert result.to_text() == "a\nb\nc"

    def test_frozen(self) -> None:
        result = ASRResult()
        with pytest.raises(ValueError):
            result.utterances = []
