# weightscope/observability.py
"""
Observability helpers: phase timers and dataclass → JSON-ready dict conversion.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from fractions import Fraction
from typing import Any

from loguru import logger


@dataclass
class Timer:
    """Times one analysis phase and logs its duration at DEBUG on exit.

    ``duration_ms`` is set even when the phase raises.
    """

    phase: str
    started_ns: int = 0
    duration_ms: float = 0.0

    def __enter__(self) -> "Timer":
        self.started_ns = time.perf_counter_ns()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.duration_ms = (time.perf_counter_ns() - self.started_ns) / 1_000_000
        outcome = "failed" if exc_type is not None else "done"
        logger.debug("{phase} {outcome} in {ms:.2f}ms", phase=self.phase, outcome=outcome, ms=self.duration_ms)


def to_dict(obj: Any) -> Any:
    """Recursively convert dataclasses, enums and fractions into JSON-ready values.

    Mapping key order is preserved.
    """
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_dict(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {str(to_dict(k)): to_dict(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, frozenset, set)):
        return [to_dict(x) for x in obj]
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Fraction):
        return obj.numerator if obj.denominator == 1 else float(obj)
    return obj
