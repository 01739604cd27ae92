"""
vidscript.exceptions - Custom exception classes.

All Vidscript-specific exceptions inherit from VidscriptError.
"""

from __future__ import annotations


class VidscriptError(Exception):
    """Base exception for all Vidscript errors."""

    pass


class ConfigError(VidscriptError):
    """Configuration loading or validation error."""

    pass


class ExtractionError(VidscriptError):
    """Audio extraction error."""

    pass


class ContainerParseError(ExtractionError):
    """Input is not a readable MP4 container or holds no tracks."""

    pass


class NoAudioTrackError(ExtractionError):
    """Container has no audio track the extractor can use."""

    pass


class UnsupportedCodecError(ExtractionError):
    """Audio track uses a codec the recognition service cannot decode."""

    pass


class SampleIOError(ExtractionError):
    """Seek or read failure while copying a sample."""

    pass


class EmptyOutputError(ExtractionError):
    """No audio bytes could be extracted."""

    pass


class TranscriptionError(VidscriptError):
    """Transcription error."""

    pass


class ServiceError(TranscriptionError):
    """Remote service returned a non-zero code or a bad HTTP status."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        status: int | None = None,
        body: str | None = None,
    ):
        self.code = code
        self.status = status
        self.body = body
        super().__init__(message)


class TranscriptionFailedError(TranscriptionError):
    """Remote task ended in the failed state."""

    def __init__(self, remark: str):
        self.remark = remark
        super().__init__(f"Recognition failed: {remark}")


class PollTimeoutError(TranscriptionError, TimeoutError):
    """Task did not reach a terminal state within the polling ceiling."""

    pass


class ResultParseError(TranscriptionError):
    """Completed task returned a malformed result payload."""

    pass


class SessionStateError(TranscriptionError):
    """Session operation called out of sequence."""

    pass


class TranscriptionCancelledError(TranscriptionError):
    """Polling stopped because the caller's cancel signal fired."""

    pass


class DependencyError(VidscriptError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")
