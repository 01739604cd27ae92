"""
vidscript.extract.audio - Audio track extraction from MP4 containers.

Copies the compressed audio samples of a video file into a standalone
elementary stream (.aac with ADTS framing, or raw .mp3) without decoding or
re-encoding. Inputs that are already audio files pass through untouched;
containers the extractor cannot handle can be routed to FFmpeg instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from vidscript.events import Observer, emit
from vidscript.exceptions import (
    ContainerParseError,
    EmptyOutputError,
    ExtractionError,
    NoAudioTrackError,
    SampleIOError,
    UnsupportedCodecError,
)
from vidscript.extract.adts import FrameSynthesizer
from vidscript.extract.codec import (
    OTI_MPEG1_MP3,
    CodecFamily,
    CodecProfile,
    classify_codec,
    frequency_index,
)
from vidscript.extract.mp4 import CodecTag, MediaContainer, Track, open_container

AUDIO_EXTENSIONS = {".mp3", ".wav", ".flac", ".m4a", ".ogg", ".aac", ".wma"}

SMALL_OUTPUT_BYTES = 1000


@dataclass
class OutputAudioFile:
    """An audio file ready for upload.

    ``extracted`` is True when the file is a temporary artifact produced
    from the input; the caller owns it and is responsible for removing it.
    """

    path: Path
    format: str
    extracted: bool = True


def temp_audio_path(source_path: Path, audio_format: str) -> Path:
    """Return ``<stem>_temp.<format>`` next to the source file."""
    return source_path.with_name(f"{source_path.stem}_temp.{audio_format}")


def select_audio_track(container: MediaContainer) -> Track:
    """Pick the track to extract.

    The first AAC track wins regardless of position; otherwise the first
    other audio track is used. Encrypted tracks are never selected.

    Raises:
        NoAudioTrackError: If the container has no usable audio track
    """
    candidates = [t for t in container.tracks if t.is_audio and not t.encrypted]
    for track in candidates:
        if track.codec_tag == CodecTag.AAC:
            return track
    if candidates:
        return candidates[0]

    listing = ", ".join(
        f"track {t.track_id}: handler={t.handler or '?'} "
        f"entry={t.codec_params.get('entry', '?')} encrypted={t.encrypted}"
        for t in container.tracks
    )
    raise NoAudioTrackError(f"No supported audio track found ({listing})")


def classify_track(track: Track, observer: Observer | None = None) -> CodecProfile:
    """Classify a track's codec, treating non-MPEG audio as unsupported.

    AAC profiles carry the ADTS frequency index derived from the track's
    timescale.
    """
    oti = track.codec_params.get("oti")
    aot = track.codec_params.get("aot")

    if track.codec_tag in (CodecTag.OPUS, CodecTag.OTHER):
        entry = track.codec_params.get("entry", "unknown")
        return CodecProfile(CodecFamily.UNSUPPORTED, 1, f"{entry} (not AAC or MP3)")
    if track.codec_tag == CodecTag.MP3 and oti is None:
        return classify_codec(OTI_MPEG1_MP3)

    profile = classify_codec(oti, aot, observer=observer)
    if profile.family == CodecFamily.AAC:
        profile = profile._replace(
            frequency_index=frequency_index(track.timescale, observer=observer)
        )
    return profile


def extract_audio(source_path: Path, observer: Observer | None = None) -> OutputAudioFile:
    """Extract the audio track of an MP4 file into an elementary stream.

    Args:
        source_path: Path to the MP4/MOV input
        observer: Optional event observer

    Returns:
        OutputAudioFile pointing at ``<stem>_temp.aac`` or ``<stem>_temp.mp3``

    Raises:
        ContainerParseError: If the input is not a readable MP4 container
        NoAudioTrackError: If no audio track is present
        UnsupportedCodecError: If the audio is HE-AAC, HE-AACv2 or not AAC/MP3
        SampleIOError: If a sample cannot be read in full
        EmptyOutputError: If no audio bytes were extracted
    """
    container = open_container(source_path)
    track = select_audio_track(container)
    profile = classify_track(track, observer)

    if profile.family == CodecFamily.UNSUPPORTED:
        raise UnsupportedCodecError(
            f"Unsupported audio format: {profile.label}. "
            "Only AAC (Main/LC/SSR/LTP) and MP3 can be extracted; "
            "convert the audio to AAC-LC first."
        )

    synthesizer = FrameSynthesizer(
        profile.family,
        profile=profile.aac_profile,
        freq_index=profile.frequency_index,
        channel_count=track.channel_count,
    )

    emit(
        observer,
        "extract.track_selected",
        track_id=track.track_id,
        codec=profile.label,
        sample_rate=track.timescale,
        channels=synthesizer.channel_config,
        samples=len(track.sample_sizes),
        chunks=len(track.chunks),
    )

    output_path = temp_audio_path(source_path, profile.family.value)
    try:
        frames, payload_bytes = _write_samples(source_path, track, synthesizer, output_path, observer)
    except BaseException:
        output_path.unlink(missing_ok=True)
        raise

    if payload_bytes == 0:
        output_path.unlink(missing_ok=True)
        raise EmptyOutputError(f"No audio data could be extracted from {source_path.name}")

    size = output_path.stat().st_size
    if size < SMALL_OUTPUT_BYTES:
        emit(observer, "extract.small_output", path=str(output_path), size=size)

    emit(
        observer,
        "extract.completed",
        path=str(output_path),
        format=profile.family.value,
        frames=frames,
        size=size,
    )
    return OutputAudioFile(path=output_path, format=profile.family.value)


def _write_samples(
    source_path: Path,
    track: Track,
    synthesizer: FrameSynthesizer,
    output_path: Path,
    observer: Observer | None,
) -> tuple[int, int]:
    """Copy every non-empty sample in container order; return (frames, payload bytes)."""
    frames = 0
    payload_bytes = 0
    with open(source_path, "rb") as src, open(output_path, "wb") as out:
        for index, location in enumerate(track.sample_locations()):
            if location.size == 0:
                continue
            try:
                src.seek(location.offset)
                data = src.read(location.size)
            except OSError as e:
                raise SampleIOError(
                    f"Reading sample {index} failed (offset={location.offset}): {e}"
                ) from e
            if len(data) != location.size:
                raise SampleIOError(
                    f"Short read on sample {index} (offset={location.offset}, "
                    f"size={location.size}, got={len(data)})"
                )

            try:
                header = synthesizer.header(location.size)
            except ValueError as e:
                raise ExtractionError(f"Sample {index}: {e}") from e
            if frames == 0 and header:
                emit(
                    observer,
                    "extract.first_frame",
                    header=header.hex(" ").upper(),
                    frame_length=location.size,
                )

            out.write(header)
            out.write(data)
            frames += 1
            payload_bytes += location.size
    return frames, payload_bytes


def prepare_audio(
    source_path: Path,
    fallback: bool = True,
    ffmpeg_path: str = "ffmpeg",
    observer: Observer | None = None,
) -> OutputAudioFile:
    """Turn any input media file into an uploadable audio file.

    Audio files are returned as-is. Video files go through the built-in
    extractor; if it cannot parse the container or handle the codec and
    ``fallback`` is enabled, FFmpeg transcodes the audio to MP3 instead.

    Raises:
        ExtractionError: If the source is missing or extraction fails
        DependencyError: If the FFmpeg fallback is needed but not installed
    """
    if not source_path.exists():
        raise ExtractionError(f"Source file not found: {source_path}")

    suffix = source_path.suffix.lower()
    if suffix in AUDIO_EXTENSIONS:
        return OutputAudioFile(path=source_path, format=suffix.lstrip("."), extracted=False)

    try:
        return extract_audio(source_path, observer=observer)
    except (ContainerParseError, NoAudioTrackError, UnsupportedCodecError) as e:
        if not fallback:
            raise
        emit(observer, "extract.fallback", source=str(source_path), reason=str(e))

    from vidscript.extract.ffmpeg import extract_with_ffmpeg

    return extract_with_ffmpeg(source_path, ffmpeg_path=ffmpeg_path, observer=observer)
