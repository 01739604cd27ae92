"""
vidscript.logging - Package logger and CLI log setup.

Library code only logs through the ``vidscript`` logger; handlers are
installed by the CLI via configure_logging.
"""

from __future__ import annotations

import logging
import sys

logger = logging.getLogger("vidscript")

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"

# requests logs every connection through urllib3 at DEBUG
NOISY_LOGGERS = ("urllib3",)


def configure_logging(verbose: bool = False) -> logging.Handler:
    """Route log records to stderr.

    Safe to call more than once: the previous handler is replaced rather
    than stacked, so repeated CLI invocations in one process log each line once.

    Args:
        verbose: Show DEBUG records (per-chunk uploads, every poll attempt)

    Returns:
        The installed handler
    """
    level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)

    logger.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)
    return handler
