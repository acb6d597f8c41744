# weightscope/__init__.py
"""
weightscope
===========

Parameter and byte-size statistics for safetensors models hosted on the
Hugging Face Hub, computed from byte-range reads of the file headers only.
"""
from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

__all__ = ["__version__", "DIST_NAME"]

DIST_NAME = "weightscope"

try:
    __version__: str = version(DIST_NAME)
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.0.0-dev"
