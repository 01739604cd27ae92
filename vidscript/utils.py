"""
vidscript.utils - Formatting helpers for command output.
"""

from __future__ import annotations

from pathlib import Path

SIZE_UNITS = ("B", "KB", "MB", "GB")


def format_duration(seconds: float) -> str:
    """Render a media duration as ``M:SS``, or ``H:MM:SS`` from one hour up.

    Fractions of a second are dropped; negative values clamp to zero.
    """
    minutes, secs = divmod(max(int(seconds), 0), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_size(path: Path) -> str:
    """Human-readable size of a file on disk, or ``-`` if it is missing."""
    if not path.exists():
        return "-"
    size = float(path.stat().st_size)
    for unit in SIZE_UNITS:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"
