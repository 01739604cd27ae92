"""
Test configuration and shared fixtures.

MP4 fixtures are assembled box by box: ftyp, an mdat holding the sample
bytes (with filler between chunks so every chunk sits at its own offset),
then a moov describing the tracks.
"""

from __future__ import annotations

import json
import logging
import struct
from pathlib import Path
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

CHUNK_GAP = b"\xee" * 5


def box(box_type: str, payload: bytes) -> bytes:
    return struct.pack(">I4s", 8 + len(payload), box_type.encode("latin-1")) + payload


def full_box(box_type: str, payload: bytes, version: int = 0) -> bytes:
    return box(box_type, struct.pack(">I", version << 24) + payload)


def descriptor(tag: int, payload: bytes) -> bytes:
    return bytes([tag, len(payload)]) + payload


def esds_box(oti: int, aot: int | None) -> bytes:
    specific = descriptor(0x05, bytes([aot << 3, 0x10])) if aot is not None else b""
    decoder_config = descriptor(0x04, bytes([oti, 0x15]) + b"\x00" * 11 + specific)
    es = descriptor(0x03, struct.pack(">HB", 1, 0) + decoder_config + descriptor(0x06, b"\x02"))
    return full_box("esds", es)


def audio_track_layout(**overrides: Any) -> dict[str, Any]:
    layout = {
        "samples": [b"\x21\x10" * 4, b"\x21\x11" * 6, b"\x21\x12" * 5],
        "entry": "mp4a",
        "oti": 0x40,
        "aot": 2,
        "timescale": 44100,
        "channels": 2,
        "handler": "soun",
        "per_chunk": 2,
        "encrypted": False,
    }
    layout.update(overrides)
    return layout


def video_track_layout(**overrides: Any) -> dict[str, Any]:
    layout = {
        "samples": [b"\x00\x00\x00\x01" * 8, b"\x00\x00\x00\x02" * 8],
        "entry": "avc1",
        "oti": None,
        "aot": None,
        "timescale": 90000,
        "channels": 0,
        "handler": "vide",
        "per_chunk": 1,
        "encrypted": False,
    }
    layout.update(overrides)
    return layout


def _sample_entry(layout: dict[str, Any]) -> bytes:
    if layout["handler"] != "soun":
        return box(layout["entry"], b"\x00" * 78)

    sound_version = layout.get("sound_version", 0)
    fields = b"\x00" * 6 + struct.pack(">H", 1)
    fields += struct.pack(
        ">HH4sHHHHI",
        sound_version,
        0,
        b"\x00" * 4,
        layout["channels"],
        16,
        0,
        0,
        (layout["timescale"] & 0xFFFF) << 16,
    )
    if sound_version == 1:
        # samples per packet, bytes per packet/frame/sample
        fields += struct.pack(">IIII", 1024, 0, 0, 2)
    children = b""
    if layout["entry"] == "mp4a" and layout["oti"] is not None:
        children += esds_box(layout["oti"], layout["aot"])
        if sound_version:
            children = box("wave", box("frma", b"mp4a") + children + struct.pack(">II", 8, 0))
    if layout["encrypted"]:
        children += box("sinf", box("frma", layout["entry"].encode("latin-1")))
        return box("enca", fields + children)
    return box(layout["entry"], fields + children)


def _trak(track_id: int, layout: dict[str, Any], offsets: list[int]) -> bytes:
    samples = layout["samples"]
    per = layout["per_chunk"]
    counts = [len(samples[i : i + per]) for i in range(0, len(samples), per)]
    runs: list[tuple[int, int]] = []
    for index, count in enumerate(counts):
        if not runs or runs[-1][1] != count:
            runs.append((index + 1, count))

    tkhd = full_box("tkhd", struct.pack(">III", 0, 0, track_id) + b"\x00" * 68)
    mdhd = full_box("mdhd", struct.pack(">IIII", 0, 0, layout["timescale"], 0) + b"\x00" * 4)
    hdlr = full_box(
        "hdlr", struct.pack(">I4s", 0, layout["handler"].encode("latin-1")) + b"\x00" * 12 + b"h\x00"
    )
    stsd = full_box("stsd", struct.pack(">I", 1) + _sample_entry(layout))
    sizes = [len(s) for s in samples]
    stsz = full_box("stsz", struct.pack(">II", 0, len(sizes)) + struct.pack(f">{len(sizes)}I", *sizes))
    stsc = full_box(
        "stsc",
        struct.pack(">I", len(runs)) + b"".join(struct.pack(">III", f, c, 1) for f, c in runs),
    )
    stco = full_box("stco", struct.pack(">I", len(offsets)) + b"".join(struct.pack(">I", o) for o in offsets))

    stbl = box("stbl", stsd + stsz + stsc + stco)
    minf = box("minf", box("smhd" if layout["handler"] == "soun" else "vmhd", b"\x00" * 8) + stbl)
    mdia = box("mdia", mdhd + hdlr + minf)
    return box("trak", tkhd + mdia)


def build_mp4(layouts: list[dict[str, Any]]) -> bytes:
    """Build an MP4 file with one trak per layout (track ids start at 1)."""
    ftyp = box("ftyp", b"isom" + struct.pack(">I", 512) + b"isommp41")
    mdat_payload = bytearray()
    base = len(ftyp) + 8
    chunk_offsets = []
    for layout in layouts:
        offsets = []
        samples = layout["samples"]
        for i in range(0, len(samples), layout["per_chunk"]):
            mdat_payload += CHUNK_GAP
            offsets.append(base + len(mdat_payload))
            for sample in samples[i : i + layout["per_chunk"]]:
                mdat_payload += sample
        chunk_offsets.append(offsets)

    mvhd = full_box("mvhd", struct.pack(">IIII", 0, 0, 1000, 90_000) + b"\x00" * 80)
    traks = b"".join(_trak(i + 1, layout, offsets) for i, (layout, offsets) in enumerate(zip(layouts, chunk_offsets)))
    return ftyp + box("mdat", bytes(mdat_payload)) + box("moov", mvhd + traks)


@pytest.fixture
def make_mp4(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory writing a synthetic MP4 file and returning its path."""

    def factory(*layouts: dict[str, Any], name: str = "clip.mp4") -> Path:
        path = tmp_path / name
        path.write_bytes(build_mp4(list(layouts) or [audio_track_layout()]))
        return path

    return factory


def make_response(
    payload: Any = None,
    status: int = 200,
    headers: dict[str, str] | None = None,
) -> MagicMock:
    """Build a fake requests.Response."""
    resp = MagicMock()
    resp.status_code = status
    resp.headers = headers or {}
    resp.json.return_value = payload
    resp.text = json.dumps(payload) if payload is not None else ""
    return resp


@pytest.fixture
def response() -> Callable[..., MagicMock]:
    return make_response


@pytest.fixture
def sample_result_json() -> str:
    """Return the embedded result string of a finished task."""
    return json.dumps(
        {
            "utterances": [
                {"transcript": "When I was young", "start_time": 0, "end_time": 1800},
                {"transcript": "we lived by the river", "start_time": 1800, "end_time": 3500},
            ]
        }
    )


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo configure_logging calls made by CLI runs."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    for name in ("vidscript", "urllib3"):
        logging.getLogger(name).setLevel(logging.NOTSET)
