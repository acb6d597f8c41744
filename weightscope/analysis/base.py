# weightscope/analysis/base.py
"""
Statistics models produced by the aggregator and the analyzer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from weightscope.observability import to_dict

Number = Union[int, float]


@dataclass(frozen=True)
class DtypeStats:
    """Counts for one dtype bucket; bytes = params * width(dtype)."""

    param_count: int
    bytes_count: Number


@dataclass(frozen=True)
class ComponentStats:
    """Per-component counts, broken down by dtype in first-seen order."""

    dtypes: Dict[str, DtypeStats] = field(default_factory=dict)
    param_count: int = 0
    bytes_count: Number = 0


@dataclass(frozen=True)
class AggregateResult:
    """Per-component and total counts for a whole model."""

    components: Dict[str, ComponentStats] = field(default_factory=dict)
    param_count: int = 0
    bytes_count: Number = 0


@dataclass
class ModelReport:
    """Result of analyzing one model revision."""

    model_id: str
    revision: str
    layout: str
    stats: AggregateResult
    files: List[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def param_count(self) -> int:
        return self.stats.param_count

    @property
    def bytes_count(self) -> Number:
        return self.stats.bytes_count

    def to_export_dict(self) -> Dict[str, Any]:
        """The persisted JSON shape: identity, components and totals."""
        return {
            "model_id": self.model_id,
            "revision": self.revision,
            "components": to_dict(self.stats.components),
            "param_count": self.stats.param_count,
            "bytes_count": self.stats.bytes_count,
        }
