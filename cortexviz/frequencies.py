"""
Per-Cell SDR Frequency Table
============================

Maps each cell to a histogram of SDR label -> occurrence count. A cell's
specificity to a label is its count for that label over its total count.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, Hashable, Iterable, Mapping

import numpy as np

from .errors import InvariantViolation

CellId = Hashable
SdrLabel = int


def freqs_to_fracs(freqs: Mapping[SdrLabel, float]) -> Dict[SdrLabel, float]:
    """Normalize one cell's label counts to fractions."""
    total = sum(freqs.values())
    if total <= 0:
        return {}
    return {sdr: n / total for sdr, n in freqs.items()}


def sdr_votes(
    cells: Iterable[CellId],
    cell_sdr_fracs: Mapping[CellId, Mapping[SdrLabel, float]],
) -> Dict[SdrLabel, float]:
    """Sum specificity fractions over ``cells``. Unseen cells cast no vote."""
    votes: Dict[SdrLabel, float] = {}
    for cell in cells:
        fracs = cell_sdr_fracs.get(cell)
        if not fracs:
            continue
        for sdr, frac in fracs.items():
            votes[sdr] = votes.get(sdr, 0.0) + frac
    return votes


def calc_sdr_sizes(cell_sdr_fracs: Mapping[CellId, Mapping[SdrLabel, float]]) -> Dict[SdrLabel, float]:
    """Expected number of cells specific to each label."""
    sizes: Dict[SdrLabel, float] = {}
    for fracs in cell_sdr_fracs.values():
        for sdr, frac in fracs.items():
            sizes[sdr] = sizes.get(sdr, 0.0) + frac
    return sizes


@dataclass(frozen=True)
class FrequencyTable:
    """
    Immutable cell -> {label: count} table for one region/layer.

    ``increment`` returns a new table; untouched per-cell histograms are
    shared with the old one.
    """
    counts: Mapping[CellId, Mapping[SdrLabel, int]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.counts)

    def __contains__(self, cell: CellId) -> bool:
        return cell in self.counts

    @cached_property
    def fractions(self) -> Dict[CellId, Dict[SdrLabel, float]]:
        """Per-cell specificity fractions."""
        return {cell: freqs_to_fracs(freqs) for cell, freqs in self.counts.items()}

    def votes(self, cells: Iterable[CellId]) -> Dict[SdrLabel, float]:
        return sdr_votes(cells, self.fractions)

    def sizes(self) -> Dict[SdrLabel, float]:
        return calc_sdr_sizes(self.fractions)

    def increment(self, cells: Iterable[CellId], labels: Iterable[SdrLabel]) -> "FrequencyTable":
        """Add 1 to every (cell, label) pair."""
        labels = list(labels)
        counts = dict(self.counts)
        for cell in cells:
            freqs = dict(counts.get(cell, {}))
            for sdr in labels:
                freqs[sdr] = freqs.get(sdr, 0) + 1
            counts[cell] = freqs
        return FrequencyTable(counts)

    def check_invariants(self, tolerance: float = 1e-6) -> None:
        """
        Fractions of every cell with history must sum to 1.

        Raises:
            InvariantViolation: On the first cell that does not.
        """
        for cell, fracs in self.fractions.items():
            if not fracs:
                continue
            total = sum(fracs.values())
            if not np.isclose(total, 1.0, rtol=0.0, atol=tolerance):
                raise InvariantViolation(
                    f"Specificity fractions of cell {cell!r} sum to {total}, not 1"
                )
            if any(n < 0 for n in self.counts[cell].values()):
                raise InvariantViolation(f"Negative occurrence count for cell {cell!r}")
