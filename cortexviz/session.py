"""
SDR Session
===========

Drives the per-layer SDR clustering from a journal, one time step at a time,
and publishes render-ready snapshots of the selected region/layer.

For each step, every configured region/layer is fetched concurrently. Each
layer's update waits for that layer's previous update before applying, so
updates to one layer always apply in step order. The snapshot for a step is
published only once every layer's update for the step has resolved.

Usage:
    session = CellSdrsSession(journal, layers=[("rgn-0", "layer-3")])
    session.subscribe(lambda snap: render(snap))
    await session.ingest_step(model_id)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from tqdm import tqdm

from .clustering import EMPTY_STATE, CellSdrsState, SdrClusterer
from .compressor import BucketedSequence, empty_col_state_freqs_log
from .config import CortexVizConfig
from .errors import JournalError
from .excitation import ExcitationView, excitation_view
from .journal import Journal, LayerKey
from .schemas import CellsByState
from .transitions import SdrSnapshot, TransitionGraph, build_snapshot

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[SdrSnapshot], None]


class CellSdrsSession:
    """
    Visualization-session state for SDR tracking.

    Owns one CellSdrsState per region/layer, replaced wholesale on each
    update, plus a capped column-state frequency log per layer.
    """

    def __init__(
        self,
        journal: Journal,
        layers: Sequence[LayerKey],
        config: Optional[CortexVizConfig] = None,
        clusterer: Optional[SdrClusterer] = None,
    ):
        self.journal = journal
        self.layers: List[LayerKey] = [tuple(k) for k in layers]
        self.config = config or CortexVizConfig()
        self.clusterer = clusterer or SdrClusterer(
            check_invariants=self.config.clustering.check_invariants or self.config.debug,
            tolerance=self.config.clustering.tolerance,
        )

        # Per-layer state
        self._states: Dict[LayerKey, CellSdrsState] = {}
        self._stale: Dict[LayerKey, bool] = {}
        self._seeds: Dict[LayerKey, TransitionGraph] = {}
        self._freqs_logs: Dict[LayerKey, BucketedSequence] = {}
        self._pending: Dict[LayerKey, asyncio.Future] = {}

        # Publication
        self._selection: Optional[LayerKey] = self.layers[0] if self.layers else None
        self._snapshot: Optional[SdrSnapshot] = None
        self._subscribers: List[SnapshotCallback] = []

        self.last_model_id: Optional[int] = None

    # -------------------------------------------------------------------------
    # State access
    # -------------------------------------------------------------------------

    def state(self, region: str, layer: str) -> CellSdrsState:
        return self._states.get((region, layer), EMPTY_STATE)

    def is_stale(self, region: str, layer: str) -> bool:
        return self._stale.get((region, layer), False)

    def freqs_log(self, region: str, layer: str) -> BucketedSequence:
        """Column-state frequency log of a layer (empty until data arrives)."""
        key = (region, layer)
        if key not in self._freqs_logs:
            return empty_col_state_freqs_log(self.config.compressor.max_bucket_count)
        return self._freqs_logs[key]

    @property
    def selection(self) -> Optional[LayerKey]:
        return self._selection

    @property
    def snapshot(self) -> Optional[SdrSnapshot]:
        """Most recently published snapshot."""
        return self._snapshot

    def read_sdr_snapshot(self, region: str, layer: str) -> SdrSnapshot:
        key = (region, layer)
        return build_snapshot(
            self.state(region, layer),
            region,
            layer,
            hide_below_count=self.config.display.hide_below_count,
            seed=self._seeds.get(key),
            stale=self._stale.get(key, False),
        )

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, callback: SnapshotCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: SnapshotCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _publish(self) -> Optional[SdrSnapshot]:
        if self._selection is None:
            return None

        snapshot = self.read_sdr_snapshot(*self._selection)
        self._snapshot = snapshot
        logger.debug(
            f"Published {snapshot.title} at step {snapshot.step}: "
            f"{len(snapshot.labels)} SDRs, {len(snapshot.transitions)} transitions"
        )

        for cb in list(self._subscribers):
            try:
                cb(snapshot)
            except Exception as e:
                logger.exception(f"Snapshot subscriber error: {e}")
        return snapshot

    def select(self, region: str, layer: str) -> SdrSnapshot:
        """Change the selected region/layer and publish its snapshot."""
        self._selection = (region, layer)
        return self._publish()

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    async def _fetch(self, model_id: int, key: LayerKey) -> Optional[CellsByState]:
        region, layer = key
        timeout = self.config.journal.fetch_timeout_sec
        try:
            request = self.journal.fetch_cell_state(model_id, region, layer)
            if timeout is None:
                return await request
            return await asyncio.wait_for(request, timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Skipping {region}/{layer} at model {model_id}: "
                f"no journal response within {timeout}s"
            )
        except (JournalError, OSError) as e:
            logger.warning(f"Skipping {region}/{layer} at model {model_id}: {e!r}")
        return None

    async def _update_layer(
        self,
        key: LayerKey,
        model_id: int,
        previous: Optional[asyncio.Future],
    ) -> bool:
        try:
            cells = await self._fetch(model_id, key)
        finally:
            # the previous step's post-state is this step's input. Its outcome
            # (and any error) belongs to the step that issued it.
            if previous is not None:
                await asyncio.wait([previous])

        if cells is None:
            self._stale[key] = True
            return False

        try:
            state = self._states.get(key, EMPTY_STATE)
            threshold = self.config.clustering.threshold_for(*key)
            new_state = self.clusterer.update_from(state, cells, threshold)
        except Exception:
            self._stale[key] = True
            raise
        self._states[key] = new_state
        self._stale[key] = False

        if new_state.new_sdr is not None:
            logger.info(
                f"{key[0]}/{key[1]}: new SDR {new_state.new_sdr} at model {model_id} "
                f"(size {new_state.sizes.get(new_state.new_sdr, 0.0):.1f})"
            )

        if cells.col_state_freqs is not None:
            log = self.freqs_log(*key)
            self._freqs_logs[key] = log.push(dict(cells.col_state_freqs))

        return True

    async def ingest_step(self, model_id: int, publish: bool = True) -> Dict[LayerKey, bool]:
        """
        Fetch and apply one time step for every layer.

        Updates already issued run to completion even if the caller is
        cancelled.

        Returns:
            Mapping of layer -> whether its update was applied (False = stale)
        """
        tasks = {}
        for key in self.layers:
            previous = self._pending.get(key)
            task = asyncio.ensure_future(self._update_layer(key, model_id, previous))
            self._pending[key] = task
            tasks[key] = task

        results = await asyncio.shield(asyncio.gather(*tasks.values()))
        self.last_model_id = model_id

        if publish:
            self._publish()
        return dict(zip(tasks, results))

    async def ingest_history(self, model_ids: Iterable[int], progress: bool = False) -> int:
        """
        Replay a backlog of steps in order, then publish once.

        Returns:
            Number of steps ingested
        """
        model_ids = list(model_ids)
        steps = tqdm(model_ids, desc="Ingesting steps", unit="step") if progress else model_ids

        n = 0
        for model_id in steps:
            await self.ingest_step(model_id, publish=False)
            n += 1

        logger.info(f"Ingested {n} steps across {len(self.layers)} layers")
        self._publish()
        return n

    async def refresh_transition_seed(self, region: str, layer: str) -> Optional[TransitionGraph]:
        """Ask the journal for precomputed transitions of a layer."""
        key = (region, layer)
        if self.last_model_id is None:
            return None

        try:
            seed = await self.journal.fetch_transition_seed(
                self.last_model_id, region, layer, self.state(region, layer).table
            )
        except JournalError as e:
            logger.warning(f"No transition seed for {region}/{layer}: {e}")
            return None

        if seed is not None:
            self._seeds[key] = seed
            if self._selection == key:
                self._publish()
        return seed

    async def excitation(
        self,
        model_id: int,
        region: str,
        layer: str,
        bit: Optional[int] = None,
        sources: Sequence[str] = (),
    ) -> ExcitationView:
        """Fetch and prepare cell excitation breakdowns of a layer."""
        try:
            breakdowns = await self.journal.fetch_excitation_data(model_id, region, layer, bit)
        except JournalError as e:
            logger.warning(f"No excitation data for {region}/{layer}: {e}")
            breakdowns = {}
        return excitation_view(breakdowns, sources=sources, selected_column=bit)

    # -------------------------------------------------------------------------
    # Model rebuilds
    # -------------------------------------------------------------------------

    def reset_layer(self, region: str, layer: str) -> None:
        """Forget the SDR state of one layer (its model was rebuilt)."""
        key = (region, layer)
        self._states.pop(key, None)
        self._stale.pop(key, None)
        self._seeds.pop(key, None)
        logger.info(f"Reset SDR state of {region}/{layer}")
        if self._selection == key:
            self._publish()

    def reset(self) -> None:
        for region, layer in list(self._states):
            self.reset_layer(region, layer)
