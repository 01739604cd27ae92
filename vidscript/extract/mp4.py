"""
vidscript.extract.mp4 - Minimal MP4 box reader.

Walks just enough of the ISO base media box tree to locate audio samples:
track headers, media timescale, handler type, the first sample entry (with
its esds decoder config) and the sample-size / sample-to-chunk / chunk-offset
tables. Media data is never loaded; only the ``moov`` box is read into memory.
"""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Iterator, NamedTuple

from vidscript.exceptions import ContainerParseError

MAX_MOOV_SIZE = 256 * 1024 * 1024

AUDIO_SAMPLE_ENTRIES = {"mp4a", ".mp3", "Opus", "enca", "ac-3", "ec-3", "alac", "fLaC"}

_DESCR_ES = 0x03
_DESCR_DECODER_CONFIG = 0x04
_DESCR_DECODER_SPECIFIC = 0x05

_MP3_OTIS = {0x69, 0x6B}


class CodecTag(str, Enum):
    AAC = "aac"
    MP3 = "mp3"
    OPUS = "opus"
    OTHER = "other"


class Chunk(NamedTuple):
    offset: int
    sample_count: int


class SampleLocation(NamedTuple):
    offset: int
    size: int


@dataclass
class Track:
    """One track of a parsed MP4 container."""

    track_id: int
    handler: str
    codec_tag: CodecTag
    timescale: int
    channel_count: int = 0
    sample_rate: int = 0
    codec_params: dict[str, Any] = field(default_factory=dict)
    chunks: list[Chunk] = field(default_factory=list)
    sample_sizes: list[int] = field(default_factory=list)
    encrypted: bool = False

    @property
    def is_audio(self) -> bool:
        return self.handler == "soun"

    def sample_locations(self) -> Iterator[SampleLocation]:
        """Yield each sample's file position in container order.

        Samples within a chunk are stored back to back starting at the
        chunk's own offset. Iteration stops at whichever table runs out
        first, so truncated tables yield a shorter, still ordered, list.
        """
        index = 0
        total = len(self.sample_sizes)
        for chunk in self.chunks:
            offset = chunk.offset
            for _ in range(chunk.sample_count):
                if index >= total:
                    return
                size = self.sample_sizes[index]
                yield SampleLocation(offset, size)
                offset += size
                index += 1


@dataclass
class MediaContainer:
    """Read-only view of a parsed MP4 file."""

    tracks: list[Track]
    major_brand: str = ""
    timescale: int = 0
    duration: int = 0

    @property
    def duration_seconds(self) -> float:
        if not self.timescale:
            return 0.0
        return self.duration / self.timescale

    @property
    def audio_tracks(self) -> list[Track]:
        return [t for t in self.tracks if t.is_audio]


def open_container(path: Path) -> MediaContainer:
    """Parse the MP4 file at ``path``."""
    try:
        with open(path, "rb") as f:
            return read_container(f)
    except OSError as e:
        raise ContainerParseError(f"Cannot read {path}: {e}") from e


def read_container(source: BinaryIO) -> MediaContainer:
    """Parse an MP4 container from a seekable binary stream.

    Raises:
        ContainerParseError: If the box structure is malformed, there is no
            moov box, or the movie declares no tracks
    """
    source.seek(0, os.SEEK_END)
    file_size = source.tell()

    major_brand = ""
    moov: bytes | None = None
    pos = 0
    while pos + 8 <= file_size:
        source.seek(pos)
        header = source.read(16)
        size, box_type = _parse_header(header, pos, file_size)
        if box_type == "ftyp":
            source.seek(pos + 8)
            major_brand = source.read(4).decode("latin-1")
        elif box_type == "moov":
            if size > MAX_MOOV_SIZE:
                raise ContainerParseError(f"moov box too large: {size} bytes")
            source.seek(pos)
            moov = source.read(size)
            if len(moov) != size:
                raise ContainerParseError("Truncated moov box")
        pos += size

    if moov is None:
        raise ContainerParseError("No moov box found (not an MP4 file?)")

    try:
        container = _parse_moov(moov)
    except (struct.error, IndexError) as e:
        raise ContainerParseError(f"Malformed moov box: {e}") from e
    container.major_brand = major_brand

    if not container.tracks:
        raise ContainerParseError("Container has no tracks")
    return container


def _parse_header(header: bytes, pos: int, limit: int) -> tuple[int, str]:
    if len(header) < 8:
        raise ContainerParseError(f"Truncated box header at offset {pos}")
    size, raw_type = struct.unpack_from(">I4s", header)
    box_type = raw_type.decode("latin-1")
    if size == 1:
        if len(header) < 16:
            raise ContainerParseError(f"Truncated largesize header at offset {pos}")
        size = struct.unpack_from(">Q", header, 8)[0]
    elif size == 0:
        size = limit - pos
    if size < 8 or pos + size > limit:
        raise ContainerParseError(
            f"Box '{box_type}' at offset {pos} has invalid size {size}"
        )
    return size, box_type


def _iter_boxes(data: bytes, start: int, end: int) -> Iterator[tuple[str, int, int]]:
    """Yield (type, payload_start, box_end) for each box in data[start:end]."""
    pos = start
    while pos + 8 <= end:
        size, box_type = _parse_header(data[pos : pos + 16], pos, end)
        header = 16 if data[pos : pos + 4] == b"\x00\x00\x00\x01" else 8
        yield box_type, pos + header, pos + size
        pos += size


def _children(data: bytes, start: int, end: int) -> dict[str, tuple[int, int]]:
    found: dict[str, tuple[int, int]] = {}
    for box_type, payload, box_end in _iter_boxes(data, start, end):
        found.setdefault(box_type, (payload, box_end))
    return found


def _parse_moov(data: bytes) -> MediaContainer:
    _, payload, end = next(_iter_boxes(data, 0, len(data)))
    container = MediaContainer(tracks=[])
    for box_type, start, box_end in _iter_boxes(data, payload, end):
        if box_type == "mvhd":
            container.timescale, container.duration = _parse_time_header(data, start)
        elif box_type == "trak":
            track = _parse_trak(data, start, box_end)
            if track is not None:
                container.tracks.append(track)
    return container


def _parse_time_header(data: bytes, start: int) -> tuple[int, int]:
    """Read (timescale, duration) from an mvhd or mdhd payload."""
    version = data[start]
    if version == 1:
        return struct.unpack_from(">IQ", data, start + 20)
    return struct.unpack_from(">II", data, start + 12)


def _parse_trak(data: bytes, start: int, end: int) -> Track | None:
    boxes = _children(data, start, end)
    if "tkhd" not in boxes or "mdia" not in boxes:
        return None

    tkhd = boxes["tkhd"][0]
    id_offset = 20 if data[tkhd] == 1 else 12
    track_id = struct.unpack_from(">I", data, tkhd + id_offset)[0]

    mdia = _children(data, *boxes["mdia"])
    timescale = _parse_time_header(data, mdia["mdhd"][0])[0] if "mdhd" in mdia else 0
    handler = ""
    if "hdlr" in mdia:
        hdlr = mdia["hdlr"][0]
        handler = data[hdlr + 8 : hdlr + 12].decode("latin-1")

    track = Track(track_id=track_id, handler=handler, codec_tag=CodecTag.OTHER, timescale=timescale)

    if "minf" not in mdia:
        return track
    minf = _children(data, *mdia["minf"])
    if "stbl" not in minf:
        return track
    stbl = _children(data, *minf["stbl"])

    if "stsd" in stbl:
        _parse_stsd(data, *stbl["stsd"], track)
    if "stsz" in stbl:
        track.sample_sizes = _parse_stsz(data, stbl["stsz"][0])
    offsets: list[int] = []
    if "stco" in stbl:
        offsets = _parse_offsets(data, stbl["stco"][0], ">I", 4)
    elif "co64" in stbl:
        offsets = _parse_offsets(data, stbl["co64"][0], ">Q", 8)
    runs = _parse_stsc(data, stbl["stsc"][0]) if "stsc" in stbl else []
    track.chunks = _build_chunks(offsets, runs)
    return track


def _parse_stsd(data: bytes, start: int, end: int, track: Track) -> None:
    # full box header + entry_count, then sample entries as boxes
    entries = list(_iter_boxes(data, start + 8, end))
    if not entries:
        return
    entry_type, payload, entry_end = entries[0]
    track.codec_params["entry"] = entry_type
    if entry_type not in AUDIO_SAMPLE_ENTRIES:
        return

    # SampleEntry (8) + AudioSampleEntry fields (20); QuickTime v1/v2 extend it
    sound_version = struct.unpack_from(">H", data, payload + 8)[0]
    track.channel_count = struct.unpack_from(">H", data, payload + 16)[0]
    track.sample_rate = struct.unpack_from(">I", data, payload + 24)[0] >> 16
    children_start = payload + 28 + {1: 16, 2: 36}.get(sound_version, 0)
    boxes = _children(data, children_start, entry_end)

    if entry_type == "enca":
        track.encrypted = True
        if "sinf" in boxes:
            frma = _children(data, *boxes["sinf"]).get("frma")
            if frma:
                entry_type = data[frma[0] : frma[0] + 4].decode("latin-1")
                track.codec_params["original_entry"] = entry_type

    # QuickTime v1/v2 sound descriptions nest esds inside a wave box
    esds = boxes.get("esds")
    if esds is None and "wave" in boxes:
        esds = _children(data, *boxes["wave"]).get("esds")
    if esds is not None:
        oti, aot = _parse_esds(data, *esds)
        track.codec_params["oti"] = oti
        track.codec_params["aot"] = aot

    track.codec_tag = _codec_tag(entry_type, track.codec_params.get("oti"))


def _codec_tag(entry_type: str, oti: int | None) -> CodecTag:
    if entry_type == "mp4a":
        return CodecTag.MP3 if oti in _MP3_OTIS else CodecTag.AAC
    if entry_type == ".mp3":
        return CodecTag.MP3
    if entry_type == "Opus":
        return CodecTag.OPUS
    return CodecTag.OTHER


def _read_descriptor_header(data: bytes, pos: int) -> tuple[int, int, int]:
    """Return (tag, payload_start, payload_length) of an MPEG-4 descriptor."""
    tag = data[pos]
    pos += 1
    length = 0
    for _ in range(4):
        byte = data[pos]
        pos += 1
        length = (length << 7) | (byte & 0x7F)
        if not byte & 0x80:
            break
    return tag, pos, length


def _parse_esds(data: bytes, start: int, end: int) -> tuple[int | None, int | None]:
    """Extract (OTI, AOT) from an esds box payload."""
    oti: int | None = None
    aot: int | None = None
    pos = start + 4
    while pos < end:
        tag, payload, length = _read_descriptor_header(data, pos)
        limit = min(payload + length, end)
        if tag == _DESCR_ES:
            flags = data[payload + 2]
            pos = payload + 3
            if flags & 0x80:
                pos += 2
            if flags & 0x40:
                pos += 1 + data[pos]
            if flags & 0x20:
                pos += 2
            end = limit
            continue
        if tag == _DESCR_DECODER_CONFIG:
            oti = data[payload]
            pos = payload + 13
            end = limit
            continue
        if tag == _DESCR_DECODER_SPECIFIC and length > 0:
            aot = data[payload] >> 3
            if aot == 31 and length > 1:
                aot = 32 + (((data[payload] & 0x07) << 3) | (data[payload + 1] >> 5))
            break
        pos = limit
    return oti, aot


def _parse_stsz(data: bytes, start: int) -> list[int]:
    sample_size, count = struct.unpack_from(">II", data, start + 4)
    if sample_size:
        return [sample_size] * count
    return list(struct.unpack_from(f">{count}I", data, start + 12))


def _parse_stsc(data: bytes, start: int) -> list[tuple[int, int]]:
    count = struct.unpack_from(">I", data, start + 4)[0]
    runs = []
    for i in range(count):
        first_chunk, per_chunk, _ = struct.unpack_from(">III", data, start + 8 + i * 12)
        runs.append((first_chunk, per_chunk))
    return runs


def _parse_offsets(data: bytes, start: int, fmt: str, width: int) -> list[int]:
    count = struct.unpack_from(">I", data, start + 4)[0]
    return [struct.unpack_from(fmt, data, start + 8 + i * width)[0] for i in range(count)]


def _build_chunks(offsets: list[int], runs: list[tuple[int, int]]) -> list[Chunk]:
    """Expand sample-to-chunk runs (1-based first_chunk) over the offset table."""
    chunks = []
    run = -1
    per_chunk = 0
    for number, offset in enumerate(offsets, start=1):
        while run + 1 < len(runs) and runs[run + 1][0] <= number:
            run += 1
            per_chunk = runs[run][1]
        chunks.append(Chunk(offset, per_chunk))
    return chunks
