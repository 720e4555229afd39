"""
Cell Excitation View
====================

Orders and stacks per-cell excitation breakdowns for the excitation plot.

A breakdown maps excitation components to values. Proximal components are
themselves keyed by input source:

    {"proximal-unstable": {"input": 3.0}, "proximal-stable": {}, "boost": 0.5,
     "temporal-pooling": 0.0, "distal": 2.0, "total": 5.5}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

EXCITATION_ORDER = (
    "proximal-unstable",
    "proximal-stable",
    "boost",
    "temporal-pooling",
    "distal",
)

# component -> series colour key used by the renderer
EXCITATION_COLORS = {
    "proximal-unstable": "active",
    "proximal-stable": "active-predicted",
    "boost": "highlight",
    "temporal-pooling": "temporal-pooling",
    "distal": "predicted",
}


def source_shades(sources: Sequence[Hashable]) -> Dict[Hashable, float]:
    """Spread shade offsets evenly over [-0.3, 0.3] in source order."""
    if not sources:
        return {}
    step = 1.0 / len(sources)
    return {src: -0.3 + i * step for i, src in enumerate(sources)}


def order_breakdowns(breakdowns: Mapping[Any, Mapping[str, Any]]) -> List[Tuple[Any, Mapping[str, Any]]]:
    """Cells by descending total excitation, ties broken by cell id."""
    by_id = sorted(breakdowns.items(), key=lambda kv: kv[0])
    return sorted(by_id, key=lambda kv: kv[1].get("total", 0.0), reverse=True)


def stack_series(
    breakdown: Mapping[str, Any],
    shades: Mapping[Hashable, float],
) -> List[Tuple[str, Optional[Hashable], float]]:
    """
    Segments of one cell's stacked bar, bottom to top.

    Returns:
        List of (component, source or None, value); only positive values.
    """
    series = []
    for k in EXCITATION_ORDER:
        v = breakdown.get(k)
        if isinstance(v, Mapping):
            parts = sorted(v.items(), key=lambda kv: shades.get(kv[0], 0.0))
        else:
            parts = [(None, v)]
        for src, x in parts:
            if x and x > 0:
                series.append((k, src, x))
    return series


def _merge_sum(a: Any, b: Any) -> Any:
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        out = dict(a)
        for k, v in b.items():
            out[k] = _merge_sum(out[k], v) if k in out else v
        return out
    return (a or 0.0) + (b or 0.0)


def _map_values(bd: Mapping[str, Any], f) -> Dict[str, Any]:
    out = {}
    for k, v in bd.items():
        if k == "total":
            continue
        out[k] = {src: f(x) for src, x in v.items()} if isinstance(v, Mapping) else f(v)
    out["total"] = sum(
        sum(v.values()) if isinstance(v, Mapping) else v
        for k, v in out.items() if k != "total"
    )
    return out


def legend_breakdown(breakdowns: Iterable[Mapping[str, Any]], y_max: float) -> Dict[str, Any]:
    """
    Key bar: every component present anywhere gets an equal share of ``y_max``.
    """
    merged: Dict[str, Any] = {}
    for bd in breakdowns:
        merged = _merge_sum(merged, bd)
    if not merged:
        return {"total": 0.0}

    unit = _map_values(merged, lambda x: 1.0 if x and x > 0 else 0.0)
    if unit["total"] <= 0:
        return unit
    scale = y_max / unit["total"]
    return _map_values(unit, lambda x: x * scale)


@dataclass(frozen=True)
class ExcitationView:
    """Render-ready excitation data for one region/layer."""
    cells: List[Tuple[Any, Mapping[str, Any]]]
    legend: Dict[str, Any]
    shades: Dict[Hashable, float]
    y_max: float
    selected_column: Optional[int] = None


def excitation_view(
    breakdowns: Mapping[Any, Mapping[str, Any]],
    sources: Sequence[Hashable] = (),
    selected_column: Optional[int] = None,
) -> ExcitationView:
    """Build the excitation view; ``y_max`` leaves 10% headroom over the largest total."""
    totals = [bd.get("total", 0.0) for bd in breakdowns.values()]
    y_max = 1.1 * max(totals) if totals else 0.0
    return ExcitationView(
        cells=order_breakdowns(breakdowns),
        legend=legend_breakdown(breakdowns.values(), y_max),
        shades=source_shades(sources),
        y_max=y_max,
        selected_column=selected_column,
    )
