"""
Journal Interface
=================

The journal is the external service holding per-step model state. Every
query is one request and one awaited response; transports raise JournalError
when a request cannot be answered.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from .errors import JournalError
from .frequencies import FrequencyTable
from .schemas import CellsByState, JournalRecord
from .transitions import TransitionGraph

logger = logging.getLogger(__name__)

LayerKey = Tuple[str, str]


class Journal(ABC):
    """Query side of the journal, as seen by this package."""

    @abstractmethod
    async def fetch_cell_state(self, model_id: int, region: str, layer: str) -> CellsByState:
        """Learning, active and predicted cells of a region/layer at a step."""

    async def fetch_transition_seed(
        self,
        model_id: int,
        region: str,
        layer: str,
        table: FrequencyTable,
    ) -> Optional[TransitionGraph]:
        """Precomputed transitions, if the journal can supply them."""
        return None

    async def fetch_excitation_data(
        self,
        model_id: int,
        region: str,
        layer: str,
        bit: Optional[int],
    ) -> Dict[Any, Dict[str, Any]]:
        """Per-cell excitation breakdowns around the selected column."""
        return {}


class RecordedJournal(Journal):
    """
    Journal replaying a recording held in memory.

    Records are keyed by (model_id, region, layer). Steps are the distinct
    model ids in recording order.
    """

    def __init__(self, records: Iterable[JournalRecord] = ()):
        self._records: Dict[Tuple[int, str, str], JournalRecord] = {}
        self._steps: "OrderedDict[int, None]" = OrderedDict()
        self._layers: "OrderedDict[LayerKey, None]" = OrderedDict()
        self._excitation: Dict[Tuple[int, str, str], Dict[Any, Dict[str, Any]]] = {}
        for record in records:
            self.add(record)

    def add(self, record: JournalRecord) -> None:
        self._records[(record.model_id, record.region, record.layer)] = record
        self._steps[record.model_id] = None
        self._layers[record.layer_key] = None

    def add_excitation(self, model_id: int, region: str, layer: str,
                       breakdowns: Mapping[Any, Dict[str, Any]]) -> None:
        self._excitation[(model_id, region, layer)] = dict(breakdowns)

    @property
    def steps(self) -> List[int]:
        return list(self._steps)

    @property
    def layers(self) -> List[LayerKey]:
        return list(self._layers)

    def __len__(self) -> int:
        return len(self._records)

    async def fetch_cell_state(self, model_id: int, region: str, layer: str) -> CellsByState:
        record = self._records.get((model_id, region, layer))
        if record is None:
            raise JournalError(
                f"No recorded state for model {model_id} at {region}/{layer}",
                region=region,
                layer=layer,
            )
        return record.cells()

    async def fetch_excitation_data(self, model_id, region, layer, bit):
        return self._excitation.get((model_id, region, layer), {})

    @classmethod
    def from_jsonl(cls, path: Union[str, Path]) -> "RecordedJournal":
        """
        Load a recording, one JSON object per line.

        Raises:
            JournalError: If a line is not valid JSON or not a valid record.
        """
        path = Path(path)
        journal = cls()
        with open(path, "r") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    journal.add(JournalRecord.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as e:
                    raise JournalError(f"{path}:{lineno}: invalid record: {e}") from e

        logger.info(f"Loaded {len(journal)} records ({len(journal.steps)} steps) from {path}")
        return journal
