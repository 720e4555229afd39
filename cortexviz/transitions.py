"""
SDR Transitions and Growth
==========================

Transition graph between SDR labels matched on consecutive time steps,
per-update growth of label sizes, and the consolidated snapshot handed to the
renderer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .frequencies import SdrLabel

if TYPE_CHECKING:
    from .clustering import CellSdrsState


@dataclass(frozen=True)
class TransitionGraph:
    """Append-only mapping of SDR label -> labels seen on the following step."""
    edges_by_source: Mapping[SdrLabel, FrozenSet[SdrLabel]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: Mapping[Any, Iterable[Any]]) -> "TransitionGraph":
        return cls({int(k): frozenset(int(v) for v in vs) for k, vs in d.items()})

    def record(self, from_sdrs: Iterable[SdrLabel], to_sdrs: Iterable[SdrLabel]) -> "TransitionGraph":
        """Add an edge for every (from, to) pair."""
        to_sdrs = frozenset(to_sdrs)
        if not to_sdrs:
            return self
        edges = dict(self.edges_by_source)
        for sdr in from_sdrs:
            edges[sdr] = edges.get(sdr, frozenset()) | to_sdrs
        return TransitionGraph(edges)

    def merge(self, other: "TransitionGraph") -> "TransitionGraph":
        edges = dict(self.edges_by_source)
        for sdr, dests in other.edges_by_source.items():
            edges[sdr] = edges.get(sdr, frozenset()) | dests
        return TransitionGraph(edges)

    def successors(self, sdr: SdrLabel) -> FrozenSet[SdrLabel]:
        return self.edges_by_source.get(sdr, frozenset())

    def edges(self) -> List[Tuple[SdrLabel, SdrLabel]]:
        return sorted((a, b) for a, dests in self.edges_by_source.items() for b in dests)

    def restricted_to(self, sdrs: Iterable[SdrLabel]) -> "TransitionGraph":
        """Keep only edges whose endpoints are both in ``sdrs``."""
        keep = frozenset(sdrs)
        edges = {}
        for sdr, dests in self.edges_by_source.items():
            if sdr not in keep:
                continue
            kept = dests & keep
            if kept:
                edges[sdr] = kept
        return TransitionGraph(edges)

    def __contains__(self, edge: Tuple[SdrLabel, SdrLabel]) -> bool:
        a, b = edge
        return b in self.successors(a)

    def __len__(self) -> int:
        return sum(len(dests) for dests in self.edges_by_source.values())

    def to_dict(self) -> Dict[SdrLabel, List[SdrLabel]]:
        return {sdr: sorted(dests) for sdr, dests in sorted(self.edges_by_source.items())}


def compute_growth(
    sizes_before: Mapping[SdrLabel, float],
    sizes_after: Mapping[SdrLabel, float],
    sdrs: Iterable[SdrLabel],
) -> Dict[SdrLabel, float]:
    """Size delta of each of ``sdrs``; a label with no prior size grows by its full size."""
    return {
        sdr: sizes_after.get(sdr, 0.0) - sizes_before.get(sdr, 0.0)
        for sdr in sdrs
    }


def total_count(label_counts: Mapping[Any, float]) -> float:
    return sum(label_counts.values())


@dataclass(frozen=True)
class SdrSnapshot:
    """Consolidated, render-ready view of one region/layer."""
    region: str
    layer: str
    labels: Tuple[SdrLabel, ...]
    sizes: Mapping[SdrLabel, float]
    growth: Mapping[SdrLabel, float]
    transitions: TransitionGraph
    matching_sets: Mapping[str, Mapping[SdrLabel, float]]
    label_counts: Mapping[SdrLabel, Mapping[Any, float]]
    threshold: float
    step: int = 0
    stale: bool = False

    @property
    def title(self) -> str:
        return f"{self.region} {self.layer}"

    @classmethod
    def empty(cls, region: str = "", layer: str = "") -> "SdrSnapshot":
        return cls(
            region=region,
            layer=layer,
            labels=(),
            sizes={},
            growth={},
            transitions=TransitionGraph(),
            matching_sets={"learn": {}, "active": {}, "pred": {}},
            label_counts={},
            threshold=0.0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "region": self.region,
            "layer": self.layer,
            "title": self.title,
            "step": self.step,
            "stale": self.stale,
            "threshold": self.threshold,
            "labels": list(self.labels),
            "sizes": {sdr: round(v, 4) for sdr, v in self.sizes.items()},
            "growth": {sdr: round(v, 4) for sdr, v in self.growth.items()},
            "transitions": self.transitions.to_dict(),
            "matching_sets": {
                k: {sdr: round(v, 4) for sdr, v in votes.items()}
                for k, votes in self.matching_sets.items()
            },
            "label_counts": {
                sdr: {str(label): round(n, 4) for label, n in counts.items()}
                for sdr, counts in self.label_counts.items()
            },
        }


def build_snapshot(
    state: "CellSdrsState",
    region: str,
    layer: str,
    hide_below_count: float = 1,
    seed: Optional[TransitionGraph] = None,
    stale: bool = False,
) -> SdrSnapshot:
    """
    Derive the snapshot for one region/layer from its stored state.

    When ``hide_below_count`` is above 1, labels whose total attributed count
    falls below it are left out, except labels present in the current
    learning-cell vote tally. Transitions are restricted to shown labels.

    Args:
        state: Post-update state of the region/layer
        region: Region key
        layer: Layer key
        hide_below_count: Visibility threshold on total attributed count
        seed: Precomputed transitions supplied by the journal, if any
        stale: Whether the last update for this layer was skipped

    Returns:
        SdrSnapshot
    """
    learn_votes = state.matching.learn
    label_counts = dict(state.label_counts)
    if hide_below_count > 1:
        label_counts = {
            sdr: counts for sdr, counts in label_counts.items()
            if sdr in learn_votes or total_count(counts) >= hide_below_count
        }

    transitions = state.transitions
    if seed is not None:
        transitions = transitions.merge(seed)

    labels = tuple(sorted(label_counts))
    return SdrSnapshot(
        region=region,
        layer=layer,
        labels=labels,
        sizes={sdr: state.sizes.get(sdr, 0.0) for sdr in labels},
        growth={sdr: g for sdr, g in state.growth.items() if sdr in label_counts},
        transitions=transitions.restricted_to(labels),
        matching_sets=state.matching.to_dict(),
        label_counts=label_counts,
        threshold=state.threshold,
        step=state.steps,
        stale=stale,
    )
