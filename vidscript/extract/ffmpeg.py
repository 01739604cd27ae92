"""
vidscript.extract.ffmpeg - FFmpeg fallback extraction.

Used only when the built-in extractor cannot handle an input (unparseable
container, HE-AAC, Opus, ...). Transcodes the audio to MP3 so the result
honors the same file + format contract as the built-in path.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from vidscript.events import Observer, emit
from vidscript.exceptions import DependencyError, ExtractionError
from vidscript.extract.audio import OutputAudioFile, temp_audio_path

INSTALL_HINT = "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)"


def find_ffmpeg(ffmpeg_path: str = "ffmpeg") -> str:
    """Resolve the FFmpeg executable.

    Raises:
        DependencyError: If FFmpeg is not found
    """
    resolved = shutil.which(ffmpeg_path)
    if not resolved:
        raise DependencyError("ffmpeg", f"FFmpeg not found: {ffmpeg_path}", INSTALL_HINT)
    return resolved


def check_ffmpeg(ffmpeg_path: str = "ffmpeg") -> dict[str, str]:
    """Check that FFmpeg is installed and get its version.

    Returns:
        Dict with 'ffmpeg_path' and 'ffmpeg_version'

    Raises:
        DependencyError: If FFmpeg is not found
    """
    resolved = find_ffmpeg(ffmpeg_path)
    result = {"ffmpeg_path": resolved}

    try:
        proc = subprocess.run(
            [resolved, "-version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        version_line = proc.stdout.split("\n")[0]
        result["ffmpeg_version"] = version_line.split()[2] if version_line else "unknown"
    except (subprocess.TimeoutExpired, IndexError):
        result["ffmpeg_version"] = "unknown"

    return result


def extract_with_ffmpeg(
    source_path: Path,
    ffmpeg_path: str = "ffmpeg",
    observer: Observer | None = None,
) -> OutputAudioFile:
    """Extract audio from a media file as MP3 using FFmpeg.

    Args:
        source_path: Path to source media file
        ffmpeg_path: FFmpeg executable name or path
        observer: Optional event observer

    Returns:
        OutputAudioFile pointing at ``<stem>_temp.mp3``

    Raises:
        DependencyError: If FFmpeg is not installed
        ExtractionError: If FFmpeg fails
    """
    executable = find_ffmpeg(ffmpeg_path)
    output_path = temp_audio_path(source_path, "mp3")

    cmd = [
        executable,
        "-y",
        "-i",
        str(source_path),
        "-vn",
        "-acodec",
        "libmp3lame",
        "-q:a",
        "4",
        str(output_path),
    ]

    emit(observer, "ffmpeg.started", source=str(source_path), output=str(output_path))

    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
        )
    except OSError as e:
        output_path.unlink(missing_ok=True)
        raise ExtractionError(f"FFmpeg could not be started: {e}") from e

    if proc.returncode != 0 or not output_path.exists():
        output_path.unlink(missing_ok=True)
        raise ExtractionError(f"FFmpeg audio extraction failed: {proc.stderr}")

    emit(observer, "ffmpeg.completed", path=str(output_path), size=output_path.stat().st_size)
    return OutputAudioFile(path=output_path, format="mp3")
