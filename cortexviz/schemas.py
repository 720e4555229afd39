"""Wire schemas for journal responses.

Pydantic models validating per-step cell state as it comes back from a
journal or a recording.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Hashable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _hashable(cell: Any) -> Hashable:
    # JSON encodes [column, cell-index] ids as lists
    if isinstance(cell, list):
        return tuple(_hashable(c) for c in cell)
    return cell


class CellsByState(BaseModel):
    """Cell sets of one region/layer at one time step."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    learning_cells: FrozenSet[Any] = Field(default_factory=frozenset)
    active_cells: FrozenSet[Any] = Field(default_factory=frozenset)
    predicted_cells: FrozenSet[Any] = Field(default_factory=frozenset)
    step_label: Optional[Union[str, int]] = None    # e.g. input classification
    col_state_freqs: Optional[Dict[str, float]] = None  # {"active": n, "predicted": n, ...}

    @field_validator("learning_cells", "active_cells", "predicted_cells", mode="before")
    @classmethod
    def _normalize_cells(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        return frozenset(_hashable(c) for c in v)


class JournalRecord(CellsByState):
    """One line of a recorded journal (JSONL)."""

    model_id: int
    region: str
    layer: str

    @property
    def layer_key(self) -> tuple:
        return (self.region, self.layer)

    def cells(self) -> CellsByState:
        return CellsByState(
            learning_cells=self.learning_cells,
            active_cells=self.active_cells,
            predicted_cells=self.predicted_cells,
            step_label=self.step_label,
            col_state_freqs=self.col_state_freqs,
        )
