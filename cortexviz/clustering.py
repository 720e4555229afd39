"""
SDR Clustering
==============

Online discovery of recurring activity patterns (SDRs) in one region/layer.

Each time step, the learning-cell set votes for known SDR labels with the
cells' specificity fractions. Labels whose vote reaches the threshold are
matched and reinforced; when none reach it a new label is discovered. The
update is a pure function from the previous state to the next one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .frequencies import CellId, FrequencyTable, SdrLabel
from .schemas import CellsByState
from .transitions import TransitionGraph, compute_growth

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchingSdrs:
    """Vote tallies per label for the learning, active and predicted cell sets."""
    learn: Mapping[SdrLabel, float] = field(default_factory=dict)
    active: Mapping[SdrLabel, float] = field(default_factory=dict)
    pred: Mapping[SdrLabel, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Mapping[SdrLabel, float]]:
        return {"learn": self.learn, "active": self.active, "pred": self.pred}


@dataclass(frozen=True)
class CellSdrsState:
    """
    Clustering state of one region/layer after some number of updates.

    Attributes:
        table: Cell -> label occurrence counts
        label_counts: Label -> {step label: attributed credit}
        sizes: Label sizes computed from ``table``
        growth: Size delta of the labels matched in the last update
        matching: Vote tallies of the last update
        learn_sdrs: Labels matched (or discovered) in the last update
        new_sdr: Label discovered in the last update, if any
        transitions: Observed label -> next-label edges
        threshold: Threshold used in the last update
        steps: Number of updates applied
    """
    table: FrequencyTable = field(default_factory=FrequencyTable)
    label_counts: Mapping[SdrLabel, Mapping[Any, float]] = field(default_factory=dict)
    sizes: Mapping[SdrLabel, float] = field(default_factory=dict)
    growth: Mapping[SdrLabel, float] = field(default_factory=dict)
    matching: MatchingSdrs = field(default_factory=MatchingSdrs)
    learn_sdrs: Tuple[SdrLabel, ...] = ()
    new_sdr: Optional[SdrLabel] = None
    transitions: TransitionGraph = field(default_factory=TransitionGraph)
    threshold: float = 0.0
    steps: int = 0

    @property
    def labels(self) -> Tuple[SdrLabel, ...]:
        return tuple(sorted(self.label_counts))

    @property
    def next_label(self) -> SdrLabel:
        return len(self.label_counts)


EMPTY_STATE = CellSdrsState()


def match_sdrs(
    votes: Mapping[SdrLabel, float],
    known: Iterable[SdrLabel],
    threshold: float,
) -> Tuple[SdrLabel, ...]:
    """Known labels whose vote (0 when absent) reaches ``threshold``."""
    return tuple(sdr for sdr in sorted(known) if votes.get(sdr, 0.0) >= threshold)


def attribute_label(
    label_counts: Mapping[SdrLabel, Mapping[Any, float]],
    sdrs: Tuple[SdrLabel, ...],
    step_label: Any,
) -> Dict[SdrLabel, Dict[Any, float]]:
    """Split one unit of credit for ``step_label`` evenly across ``sdrs``."""
    credit = 1.0 / len(sdrs)
    out = dict(label_counts)
    for sdr in sdrs:
        counts = dict(out.get(sdr, {}))
        counts[step_label] = counts.get(step_label, 0.0) + credit
        out[sdr] = counts
    return out


class SdrClusterer:
    """
    Applies one time step of cell states to a region/layer's state.

    Args:
        check_invariants: Verify per-cell fractions after every update
        tolerance: Absolute tolerance of the fraction-sum check
    """

    def __init__(self, check_invariants: bool = True, tolerance: float = 1e-6):
        self.check_invariants = check_invariants
        self.tolerance = tolerance

    def update(
        self,
        state: CellSdrsState,
        learning_cells: Iterable[CellId],
        active_cells: Iterable[CellId],
        predicted_cells: Iterable[CellId],
        threshold: float,
        step_label: Any = None,
    ) -> CellSdrsState:
        """
        Return the state after one time step.

        Args:
            state: State after the previous step (EMPTY_STATE initially)
            learning_cells: Cells learning on this step
            active_cells: Cells active on this step
            predicted_cells: Cells predicted on this step
            threshold: Learn-vote threshold; non-positive matches every known label
            step_label: External label of the step's input, if any

        Returns:
            New CellSdrsState; ``state`` is not modified.
        """
        learning_cells = list(learning_cells)
        table = state.table

        lc_votes = table.votes(learning_cells)
        ac_votes = table.votes(active_cells)
        pc_votes = table.votes(predicted_cells)

        learn_sdrs = match_sdrs(lc_votes, state.label_counts, threshold)
        new_sdr = None
        if not learn_sdrs:
            new_sdr = state.next_label
            learn_sdrs = (new_sdr,)
            logger.debug(
                f"Discovered SDR {new_sdr} from {len(learning_cells)} learning cells "
                f"(best vote {max(lc_votes.values(), default=0.0):.2f} < {threshold})"
            )

        new_table = table.increment(learning_cells, learn_sdrs)
        if self.check_invariants:
            new_table.check_invariants(self.tolerance)

        sizes_before = state.sizes
        sizes_after = new_table.sizes()
        growth = compute_growth(sizes_before, sizes_after, learn_sdrs)

        if new_sdr is not None:
            # the new label's match is exactly what it just grew
            lc_votes = dict(lc_votes)
            lc_votes[new_sdr] = growth[new_sdr]

        transitions = state.transitions
        if state.learn_sdrs:
            transitions = transitions.record(state.learn_sdrs, learn_sdrs)

        return CellSdrsState(
            table=new_table,
            label_counts=attribute_label(state.label_counts, learn_sdrs, step_label),
            sizes=sizes_after,
            growth=growth,
            matching=MatchingSdrs(learn=lc_votes, active=ac_votes, pred=pc_votes),
            learn_sdrs=learn_sdrs,
            new_sdr=new_sdr,
            transitions=transitions,
            threshold=threshold,
            steps=state.steps + 1,
        )

    def update_from(self, state: CellSdrsState, cells: CellsByState, threshold: float) -> CellSdrsState:
        """Apply a journal response."""
        return self.update(
            state,
            cells.learning_cells,
            cells.active_cells,
            cells.predicted_cells,
            threshold,
            step_label=cells.step_label,
        )
