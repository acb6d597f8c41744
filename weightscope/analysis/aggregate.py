# weightscope/analysis/aggregate.py
"""
Fold per-component tensor descriptors into parameter and byte counts.
"""

from __future__ import annotations

from fractions import Fraction
from typing import Any, Dict, List, Mapping, Tuple

from weightscope.analysis.base import AggregateResult, ComponentStats, DtypeStats, Number
from weightscope.formats.dtypes import byte_width
from weightscope.formats.safetensors import TensorDescriptor, iter_tensor_entries

# component name -> tensor name -> descriptor (or its raw header JSON)
ComponentDescriptorMap = Mapping[str, Mapping[str, Any]]


def _as_number(value: Fraction) -> Number:
    return value.numerator if value.denominator == 1 else float(value)


class _Bucket:
    __slots__ = ("params", "nbytes")

    def __init__(self) -> None:
        self.params = 0
        self.nbytes = Fraction(0)

    def add(self, params: int, nbytes: Fraction) -> None:
        self.params += params
        self.nbytes += nbytes


def _aggregate_component(tensors: Mapping[str, Any]) -> Tuple[ComponentStats, Fraction]:
    descriptors: List[TensorDescriptor] = [
        TensorDescriptor.from_json(name, meta) for name, meta in iter_tensor_entries(tensors)
    ]
    buckets: Dict[str, _Bucket] = {}
    total = _Bucket()
    for desc in descriptors:
        n = desc.n_elements
        nbytes = n * byte_width(desc.dtype)
        buckets.setdefault(desc.dtype, _Bucket()).add(n, nbytes)
        total.add(n, nbytes)
    stats = ComponentStats(
        dtypes={
            dtype: DtypeStats(param_count=b.params, bytes_count=_as_number(b.nbytes))
            for dtype, b in buckets.items()
        },
        param_count=total.params,
        bytes_count=_as_number(total.nbytes),
    )
    return stats, total.nbytes


def aggregate(component_map: ComponentDescriptorMap) -> AggregateResult:
    """Compute per-dtype, per-component and total counts.

    Component and dtype keys keep first-seen order. A component without
    tensors still appears with zero counts.

    Raises:
        UnknownDtype: a tensor declares a dtype outside the table; no partial
            result is produced.
    """
    components: Dict[str, ComponentStats] = {}
    params = 0
    nbytes = Fraction(0)
    for name, tensors in component_map.items():
        stats, component_bytes = _aggregate_component(tensors)
        components[name] = stats
        params += stats.param_count
        nbytes += component_bytes
    return AggregateResult(components=components, param_count=params, bytes_count=_as_number(nbytes))
