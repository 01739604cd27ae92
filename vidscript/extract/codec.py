"""
vidscript.extract.codec - Audio codec classification.

Maps an MP4 track's codec descriptor (Object Type Indication and, for
MPEG-4 audio, the Audio Object Type) to a coding family plus the values an
ADTS header needs. ADTS has a two-bit profile field, so only Main, LC, SSR
and LTP are representable.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

from vidscript.events import Observer, emit

OTI_MPEG4_AUDIO = 0x40
OTI_MPEG2_AAC_MAIN = 0x66
OTI_MPEG2_AAC_LC = 0x67
OTI_MPEG2_AAC_SSR = 0x68
OTI_MPEG2_MP3 = 0x69
OTI_MPEG1_MP3 = 0x6B

AOT_SBR = 5
AOT_PS = 29

SAMPLING_FREQUENCIES = (
    96000,
    88200,
    64000,
    48000,
    44100,
    32000,
    24000,
    22050,
    16000,
    12000,
    11025,
    8000,
    7350,
)
DEFAULT_FREQUENCY_INDEX = 4

DEFAULT_AAC_PROFILE = 1


class CodecFamily(str, Enum):
    AAC = "aac"
    MP3 = "mp3"
    UNSUPPORTED = "unsupported"


class CodecProfile(NamedTuple):
    family: CodecFamily
    aac_profile: int
    label: str
    frequency_index: int = DEFAULT_FREQUENCY_INDEX


_FIXED_OTI = {
    OTI_MPEG1_MP3: (CodecFamily.MP3, 0, "mp3 (MPEG-1 Layer III)"),
    OTI_MPEG2_MP3: (CodecFamily.MP3, 0, "mp3 (MPEG-2 Layer III)"),
    OTI_MPEG2_AAC_MAIN: (CodecFamily.AAC, 0, "aac (MPEG-2 Main)"),
    OTI_MPEG2_AAC_LC: (CodecFamily.AAC, 1, "aac (MPEG-2 LC)"),
    OTI_MPEG2_AAC_SSR: (CodecFamily.AAC, 2, "aac (MPEG-2 SSR)"),
}

_AOT_PROFILES = {
    1: (0, "Main"),
    2: (1, "LC"),
    3: (2, "SSR"),
    4: (3, "LTP"),
}

_UNSUPPORTED_AOT = {
    AOT_SBR: "aac (HE-AAC/SBR)",
    AOT_PS: "aac (HE-AACv2/PS)",
}


def classify_codec(
    oti: int | None,
    aot: int | None = None,
    observer: Observer | None = None,
) -> CodecProfile:
    """Classify an audio track by its OTI byte and nested AOT.

    Args:
        oti: Object Type Indication from the esds descriptor (None if absent)
        aot: Audio Object Type from the decoder-specific config (None if absent)
        observer: Optional event observer

    Returns:
        CodecProfile with the family, ADTS profile and a readable label
    """
    if aot in _UNSUPPORTED_AOT:
        label = _UNSUPPORTED_AOT[aot]
        emit(observer, "codec.unsupported", aot=aot, label=label)
        return CodecProfile(CodecFamily.UNSUPPORTED, DEFAULT_AAC_PROFILE, label)

    if oti is None:
        return CodecProfile(CodecFamily.AAC, DEFAULT_AAC_PROFILE, "aac (default LC)")

    if oti in _FIXED_OTI:
        return CodecProfile(*_FIXED_OTI[oti])

    if oti == OTI_MPEG4_AUDIO:
        if aot in _AOT_PROFILES:
            profile, name = _AOT_PROFILES[aot]
        else:
            profile, name = DEFAULT_AAC_PROFILE, f"AOT={aot} (as LC)"
            emit(observer, "codec.unknown_aot", aot=aot)
        return CodecProfile(CodecFamily.AAC, profile, f"aac (MPEG-4 {name})")

    emit(observer, "codec.unknown_oti", oti=f"0x{oti:02X}")
    return CodecProfile(CodecFamily.AAC, DEFAULT_AAC_PROFILE, f"aac (OTI=0x{oti:02X} as LC)")


def frequency_index(sample_rate: int, observer: Observer | None = None) -> int:
    """Map a sample rate to its 4-bit ADTS sampling frequency index.

    Exact matches return their table position. Non-standard rates snap down
    to the nearest table entry not exceeding them; rates below 7350 Hz fall
    back to 44100 Hz (index 4).
    """
    if sample_rate in SAMPLING_FREQUENCIES:
        return SAMPLING_FREQUENCIES.index(sample_rate)

    for index, rate in enumerate(SAMPLING_FREQUENCIES):
        if sample_rate >= rate:
            emit(observer, "codec.rate_approximated", sample_rate=sample_rate, matched=rate)
            return index

    emit(observer, "codec.rate_defaulted", sample_rate=sample_rate)
    return DEFAULT_FREQUENCY_INDEX
