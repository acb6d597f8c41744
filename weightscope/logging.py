# weightscope/logging.py
"""
Loguru sink configuration for the CLI and scripts.

Logs go to stderr so that reports printed to stdout stay clean.
"""
from __future__ import annotations

import sys

from loguru import logger

_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> "
    "| <level>{level: <8}</level> "
    "| <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> "
    "- <level>{message}</level>"
)


def resolve_level(*, debug: bool = False, quiet: bool = False) -> str:
    """DEBUG wins over quiet; quiet drops the INFO progress lines."""
    if debug:
        return "DEBUG"
    return "WARNING" if quiet else "INFO"


def configure_logging(*, debug: bool = False, quiet: bool = False) -> None:
    """Replace loguru's default sink with a single stderr sink.

    Args:
        debug: Trace every request, byte range and phase timing.
        quiet: Only warnings and errors.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=resolve_level(debug=debug, quiet=quiet),
        format=_FORMAT,
        backtrace=debug,
        diagnose=debug,
    )
