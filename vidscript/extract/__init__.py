"""
vidscript.extract - Audio extraction from video files.

Pipeline Stage 1: Pull the compressed audio track out of an MP4 container
and re-frame it as a standalone stream:
- AAC samples get a synthesized ADTS header per frame (.aac)
- MP3 samples are copied verbatim (.mp3)
FFmpeg is only used as a fallback for inputs the extractor cannot handle.
"""

from __future__ import annotations
