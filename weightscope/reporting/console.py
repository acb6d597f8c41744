# weightscope/reporting/console.py
"""
Console reporting functions for model statistics.
"""
from __future__ import annotations

from typing import Optional, Union

from rich import box
from rich.console import Console
from rich.table import Table

from weightscope.analysis.base import ComponentStats, ModelReport

console = Console()

_PARAM_UNITS = ((10**12, "T"), (10**9, "B"), (10**6, "M"), (10**3, "K"))
_BYTE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB")


def human_params(n: Union[int, float]) -> str:
    """Short parameter count, e.g. ``1.23B``."""
    for scale, suffix in _PARAM_UNITS:
        if n >= scale:
            return f"{n / scale:.2f}{suffix}"
    return str(n)


def human_bytes(n: Union[int, float]) -> str:
    """Binary-unit byte size, e.g. ``2.50 GiB``."""
    value = float(n)
    for unit in _BYTE_UNITS[:-1]:
        if value < 1024:
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} {_BYTE_UNITS[-1]}"


def _percent(part: Union[int, float], whole: Union[int, float]) -> str:
    return f"{100.0 * part / whole:.1f}%" if whole else "-"


def render_summary(rep: ModelReport, out: Optional[Console] = None) -> None:
    """Render a high-level summary table."""
    t = Table(title="Model Summary", box=box.SIMPLE_HEAVY)
    t.add_column("Field", style="bold")
    t.add_column("Value")
    t.add_row("Model", rep.model_id)
    t.add_row("Revision", rep.revision)
    t.add_row("Layout", rep.layout)
    t.add_row("Headers read", str(len(rep.files)))
    t.add_row("Parameters", f"{human_params(rep.param_count)} ({rep.param_count:,})")
    t.add_row("Size", f"{human_bytes(rep.bytes_count)} ({rep.bytes_count:,} bytes)")
    t.add_row("Elapsed", f"{rep.duration_ms:.0f} ms")
    (out or console).print(t)


def render_components(rep: ModelReport, out: Optional[Console] = None) -> None:
    """One row per component with its share of the total."""
    table = Table(title="Components", box=box.ROUNDED, show_lines=False, title_style="bold magenta")
    table.add_column("Component", style="cyan", no_wrap=True)
    table.add_column("Dtypes", style="yellow")
    table.add_column("Parameters", justify="right", style="white")
    table.add_column("Size", justify="right", style="white")
    table.add_column("Share", justify="right", style="green")

    for name, comp in rep.stats.components.items():
        table.add_row(
            name,
            ", ".join(comp.dtypes) or "-",
            human_params(comp.param_count),
            human_bytes(comp.bytes_count),
            _percent(comp.bytes_count, rep.bytes_count),
        )
    (out or console).print(table)


def _render_dtype_table(name: str, comp: ComponentStats, out: Console) -> None:
    table = Table(
        title=f"{name} by dtype", box=box.ROUNDED, show_lines=False, title_style="bold magenta"
    )
    table.add_column("Dtype", style="yellow")
    table.add_column("Parameters", justify="right", style="white")
    table.add_column("Bytes", justify="right", style="white")
    table.add_column("Size", justify="right", style="white")
    for dtype, stats in comp.dtypes.items():
        table.add_row(
            dtype, f"{stats.param_count:,}", f"{stats.bytes_count:,}", human_bytes(stats.bytes_count)
        )
    out.print(table)


def render_dtypes(
    rep: ModelReport, out: Optional[Console] = None, *, component: Optional[str] = None
) -> None:
    """Per-dtype breakdown, for every component or only ``component``."""
    for name, comp in rep.stats.components.items():
        if component is not None and name != component:
            continue
        if comp.dtypes:
            _render_dtype_table(name, comp, out or console)


def render_report(rep: ModelReport, out: Optional[Console] = None) -> None:
    """Renders the full console report on ``out`` (stdout by default)."""
    render_summary(rep, out)
    render_components(rep, out)
    render_dtypes(rep, out)
