"""
vidscript.pipeline - Media file to transcript.

Chains the two stages: prepare an uploadable audio file (pass-through,
built-in extraction or FFmpeg fallback), then run one recognition session.
Temporary extracted audio is removed afterwards unless the config asks to
keep it.
"""

from __future__ import annotations

import threading
from pathlib import Path

import requests

from vidscript.config import VidscriptConfig
from vidscript.events import Observer, emit
from vidscript.extract.audio import prepare_audio
from vidscript.transcribe.models import ASRResult
from vidscript.transcribe.session import TranscriptionSession


def transcribe_media(
    source_path: Path,
    config: VidscriptConfig | None = None,
    observer: Observer | None = None,
    cancel: threading.Event | None = None,
    http: requests.Session | None = None,
) -> ASRResult:
    """Transcribe an audio or video file.

    Args:
        source_path: Input media file
        config: Resolved configuration (defaults if None)
        observer: Optional event observer shared by both stages
        cancel: Optional signal checked between polling attempts
        http: Optional HTTP session (the caller keeps ownership)

    Returns:
        The recognition result; ``result.to_text()`` gives the transcript

    Raises:
        ExtractionError: If no uploadable audio could be produced
        TranscriptionError: If any step of the remote workflow fails
    """
    config = config or VidscriptConfig()

    audio = prepare_audio(
        source_path,
        fallback=config.fallback_enabled,
        ffmpeg_path=config.ffmpeg_path,
        observer=observer,
    )
    emit(observer, "pipeline.audio_ready", path=str(audio.path), format=audio.format)

    try:
        with TranscriptionSession(
            audio.path,
            audio_format=audio.format,
            service=config.service,
            http=http,
            observer=observer,
            cancel=cancel,
        ) as session:
            session.run()
            return session.result
    finally:
        if audio.extracted and not config.keep_audio:
            audio.path.unlink(missing_ok=True)
            emit(observer, "pipeline.audio_removed", path=str(audio.path))
