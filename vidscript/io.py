"""
vidscript.io - Atomic transcript writes.

Transcripts are written to a temp file in the destination directory and then
renamed, so an interrupted run never leaves a half-written file behind.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any

from vidscript.transcribe.models import ASRResult


def _write_atomic(path: Path, write: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            write(tmp)
        except Exception:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    tmp_path.replace(path)


def write_text(path: Path, content: str) -> None:
    """Write a UTF-8 text file atomically.

    Args:
        path: Destination path
        content: Text content to write
    """
    _write_atomic(path, lambda f: f.write(content))


def write_json(path: Path, data: dict[str, Any], indent: int = 2) -> None:
    """Write a JSON file atomically with pretty formatting."""
    _write_atomic(path, lambda f: json.dump(data, f, indent=indent, ensure_ascii=False))


def save_transcript(path: Path, result: ASRResult) -> None:
    """Save a transcript as plain text, one utterance per line."""
    write_text(path, result.to_text())


def save_utterances(path: Path, result: ASRResult) -> None:
    """Save utterances with their millisecond timestamps as JSON."""
    write_json(path, {"utterances": [u.model_dump() for u in result.utterances]})
