# weightscope/errors.py
"""
Error taxonomy shared by the transport, codec and layout layers.

Every error is terminal for the enclosing ``compute_stats`` call.
"""
from __future__ import annotations

from typing import Iterable, Optional


class WeightScopeError(Exception):
    """Base class for all weightscope failures."""


class HttpError(WeightScopeError):
    """Non-2xx response from the Hub."""

    def __init__(self, status: int, reason: str = "", url: str = "", message: str = ""):
        self.status = status
        self.reason = reason
        self.url = url
        if not message:
            message = f"HTTP error! status: {status}"
            if reason:
                message += f" - {reason}"
        super().__init__(message)


class AuthRequired(HttpError):
    """HTTP 401. The message depends on whether a token was sent."""

    def __init__(self, *, token_provided: bool, url: str = ""):
        self.token_provided = token_provided
        if token_provided:
            message = (
                "Authentication failed (401). The provided token may be invalid or expired. "
                "Please check your token. Also verify the model ID is correct (case-sensitive)."
            )
        else:
            message = (
                "Authentication failed (401). This model may be private or require "
                "authentication. Please provide a Hugging Face token. Also verify the "
                "model ID is correct (case-sensitive)."
            )
        super().__init__(401, "Unauthorized", url, message)


class RequestTimeout(WeightScopeError):
    """Request exceeded its deadline on the first attempt and on its retry."""

    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Request to {url} timed out after {timeout:g}s (retried once)")


class LayoutNotFound(WeightScopeError):
    """None of the top-level weight layout markers exist in the repository."""

    def __init__(self, markers: Iterable[str]):
        self.markers = tuple(markers)
        names = ", ".join(f"`{m}`" for m in self.markers)
        super().__init__(f"NONE OF {names} HAS BEEN FOUND")


class UnknownDtype(WeightScopeError):
    """A tensor declared an element type outside the supported table."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"DTYPE={tag} NOT HANDLED")


class HeaderParseError(WeightScopeError):
    """Raised when a safetensors header is malformed."""

    def __init__(self, message: str, *, path: Optional[str] = None):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class IndexParseError(WeightScopeError):
    """A JSON response (tree listing, shard index, module list) is unreadable or mis-shaped."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")
