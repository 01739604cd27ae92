"""
vidscript.events - Structured progress events.

Extraction and transcription report progress by calling an observer with an
event name and a dict of fields. Callers inject their own observer (a CLI
progress printer, a test recorder); when none is given the events go to the
package logger.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from vidscript.logging import logger

Observer = Callable[[str, dict[str, Any]], None]

WARNING_EVENTS = {
    "codec.unknown_oti",
    "codec.unknown_aot",
    "codec.unsupported",
    "codec.rate_approximated",
    "codec.rate_defaulted",
    "extract.small_output",
    "extract.fallback",
    "session.task_failed",
}

DEBUG_EVENTS = {
    "extract.first_frame",
    "session.poll",
    "session.chunk_uploaded",
}


def log_event(event: str, fields: dict[str, Any]) -> None:
    """Default observer: forward an event to the vidscript logger."""
    if event in WARNING_EVENTS:
        level = logging.WARNING
    elif event in DEBUG_EVENTS:
        level = logging.DEBUG
    else:
        level = logging.INFO
    details = " ".join(f"{key}={value}" for key, value in fields.items())
    logger.log(level, "%s %s", event, details)


def emit(observer: Observer | None, event: str, **fields: Any) -> None:
    """Send an event to the observer, or the logger when none is set."""
    (observer or log_event)(event, fields)
