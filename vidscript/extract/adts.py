"""
vidscript.extract.adts - Elementary stream framing.

MP4 stores AAC as bare access units; a standalone .aac file needs a 7-byte
ADTS header in front of every frame. MP3 frames carry their own sync
headers and are copied as-is.
"""

from __future__ import annotations

from vidscript.extract.codec import CodecFamily

ADTS_HEADER_SIZE = 7
MAX_ADTS_FRAME_LENGTH = 0x1FFF
DEFAULT_CHANNEL_CONFIG = 2


def make_adts_header(
    profile: int,
    freq_index: int,
    channel_config: int,
    payload_length: int,
) -> bytes:
    """Build the 7-byte ADTS header for one raw AAC frame.

    Layout: MPEG-4, layer 0, no CRC, VBR buffer fullness (0x7FF), one raw
    data block per frame. The 13-bit frame length covers header + payload.

    Args:
        profile: ADTS profile (0=Main, 1=LC, 2=SSR, 3=LTP)
        freq_index: Sampling frequency index (0..12)
        channel_config: Channel configuration (0..7)
        payload_length: Raw AAC frame size in bytes, header excluded

    Returns:
        The header bytes

    Raises:
        ValueError: If the framed length does not fit in 13 bits
    """
    frame_length = payload_length + ADTS_HEADER_SIZE
    if frame_length > MAX_ADTS_FRAME_LENGTH:
        raise ValueError(f"AAC frame too large for ADTS: {payload_length} bytes")

    return bytes(
        (
            0xFF,
            0xF1,
            ((profile & 0x3) << 6) | ((freq_index & 0xF) << 2) | ((channel_config >> 2) & 0x1),
            ((channel_config & 0x3) << 6) | ((frame_length >> 11) & 0x3),
            (frame_length >> 3) & 0xFF,
            ((frame_length & 0x7) << 5) | 0x1F,
            0xFC,
        )
    )


class FrameSynthesizer:
    """Turns container samples into self-describing elementary stream frames."""

    def __init__(
        self,
        family: CodecFamily,
        profile: int = 1,
        freq_index: int = 4,
        channel_count: int = 0,
    ) -> None:
        if family not in (CodecFamily.AAC, CodecFamily.MP3):
            raise ValueError(f"Cannot frame codec family: {family.value}")
        self.family = family
        self.profile = profile
        self.freq_index = freq_index
        self.channel_config = channel_count or DEFAULT_CHANNEL_CONFIG

    @property
    def overhead(self) -> int:
        """Bytes added in front of each frame."""
        return ADTS_HEADER_SIZE if self.family == CodecFamily.AAC else 0

    def header(self, payload_length: int) -> bytes:
        if self.family == CodecFamily.MP3:
            return b""
        return make_adts_header(self.profile, self.freq_index, self.channel_config, payload_length)

    def frame(self, sample: bytes) -> bytes:
        return self.header(len(sample)) + sample
