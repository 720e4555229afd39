"""
cortexviz
=========

Bounded-memory summaries of a cortical model's per-step state, for display:

    Compressors  - fold an unbounded stream into at most N buckets
    Clustering   - discover recurring SDRs from learning/active/predicted cells
    Transitions  - SDR -> SDR transitions, growth, render-ready snapshots
    Session      - drive per-layer updates from a journal and publish snapshots

Usage:
    from cortexviz import sequence_compressor, combine_mean, read_buckets

    log = sequence_compressor(combine_mean, max_bucket_count=200)
    log = log.push(0.42)
    width, buckets = read_buckets(log)
"""

from .errors import CortexVizError, CombinerError, JournalError, InvariantViolation

from .compressor import (
    BucketedSequence,
    SequenceCompressor,
    CappedSequenceCompressor,
    sequence_compressor,
    empty_col_state_freqs_log,
    validate_combiner,
    mean,
    combine_mean,
    aggregate_by,
    push,
    read_buckets,
)

from .frequencies import FrequencyTable, freqs_to_fracs, sdr_votes, calc_sdr_sizes

from .clustering import CellSdrsState, MatchingSdrs, SdrClusterer, EMPTY_STATE

from .transitions import TransitionGraph, SdrSnapshot, build_snapshot, compute_growth

from .schemas import CellsByState, JournalRecord

from .journal import Journal, RecordedJournal

from .session import CellSdrsSession

from .config import CortexVizConfig

__all__ = [
    # Errors
    "CortexVizError", "CombinerError", "JournalError", "InvariantViolation",
    # Compressors
    "BucketedSequence", "SequenceCompressor", "CappedSequenceCompressor",
    "sequence_compressor", "empty_col_state_freqs_log", "validate_combiner",
    "mean", "combine_mean", "aggregate_by", "push", "read_buckets",
    # SDR tracking
    "FrequencyTable", "freqs_to_fracs", "sdr_votes", "calc_sdr_sizes",
    "CellSdrsState", "MatchingSdrs", "SdrClusterer", "EMPTY_STATE",
    "TransitionGraph", "SdrSnapshot", "build_snapshot", "compute_growth",
    # Journal
    "CellsByState", "JournalRecord", "Journal", "RecordedJournal",
    "CellSdrsSession",
    "CortexVizConfig",
]

__version__ = "0.1.0"
