# weightscope/config.py
"""
Runtime settings: CLI flags first, then environment, then defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_ENDPOINT = "https://huggingface.co"
DEFAULT_REVISION = "main"
DEFAULT_TIMEOUT_S = 60.0
MAX_METADATA_SIZE = 200_000


@dataclass(frozen=True)
class Settings:
    """Connection settings for one analysis run."""

    endpoint: str = DEFAULT_ENDPOINT
    token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT_S
    max_metadata_size: int = MAX_METADATA_SIZE

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        *,
        endpoint: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> "Settings":
        """Build settings, letting explicit arguments override ``env``.

        Reads ``HF_ENDPOINT``, ``HF_TOKEN`` and ``WEIGHTSCOPE_TIMEOUT``.
        """
        env = os.environ if env is None else env
        if timeout is None:
            raw_timeout = env.get("WEIGHTSCOPE_TIMEOUT")
            try:
                timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_S
            except ValueError:
                raise ValueError(f"WEIGHTSCOPE_TIMEOUT must be a number, got {raw_timeout!r}") from None
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        return cls(
            endpoint=(endpoint or env.get("HF_ENDPOINT") or DEFAULT_ENDPOINT).rstrip("/"),
            token=token or env.get("HF_TOKEN") or None,
            timeout=timeout,
        )
