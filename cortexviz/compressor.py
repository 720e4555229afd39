"""
Sequence Compressors
====================

Bounded-memory summaries of an unbounded stream of per-step values.

A compressor folds runs of ``bucket_size`` raw values into one summary value
with a caller-supplied combining function. The combining function takes any
number of values and returns a value of the same format, so summaries can be
combined again when the sequence is recompressed:

    log = sequence_compressor(combine_mean, max_bucket_count=3)
    for x in range(1, 10):
        log = log.push(x)
    width, buckets = read_buckets(log)

Compressors are immutable. ``push`` and ``compress`` return new compressors
and leave the receiver untouched.
"""

from __future__ import annotations

import logging
import numbers
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import CombinerError, InvariantViolation

logger = logging.getLogger(__name__)

Combiner = Callable[..., Any]


# =============================================================================
# Combining functions
# =============================================================================

def mean(xs: Sequence[float]) -> float:
    """Arithmetic mean of a non-empty sequence."""
    return float(np.mean(xs))


def combine_mean(*xs: float) -> float:
    """Variadic mean, usable directly as a combining function."""
    return mean(xs)


def aggregate_by(f: Callable[[List[Any]], Any], maps: Sequence[Mapping[str, Any]]) -> dict:
    """Aggregate a sequence of dicts key-wise using the keys of the first one."""
    if not maps:
        return {}
    return {k: f([m.get(k) for m in maps]) for k in maps[0]}


def _same_kind(a: Any, b: Any) -> bool:
    if isinstance(a, numbers.Number) and isinstance(b, numbers.Number):
        return True
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return set(a) == set(b)
    return type(a) is type(b)


def validate_combiner(fcompress: Combiner, sample: Any) -> None:
    """
    Check that ``fcompress`` can re-combine its own output.

    Combines ``sample`` with itself, then combines that result with itself.
    Both results must be of the same kind as ``sample``.

    Raises:
        CombinerError: If the combining function fails or changes format.
    """
    try:
        once = fcompress(sample, sample)
        twice = fcompress(once, once)
    except Exception as e:
        raise CombinerError(f"Combining function failed on probe value {sample!r}: {e}") from e

    if not (_same_kind(sample, once) and _same_kind(once, twice)):
        raise CombinerError(
            f"Combining function is not closed over its output: "
            f"{type(sample).__name__} -> {type(once).__name__} -> {type(twice).__name__}"
        )


# =============================================================================
# Compressors
# =============================================================================

class BucketedSequence(ABC):
    """A sequence of summary values, each covering ``bucket_size`` raw values."""

    @property
    @abstractmethod
    def bucket_size(self) -> int:
        """Current bucket width, in raw values per completed bucket."""

    @property
    def max_count(self) -> Optional[int]:
        """Maximum number of completed buckets, or None when uncapped."""
        return None

    @abstractmethod
    def buckets(self) -> List[Any]:
        """Completed summary values, oldest first."""

    @abstractmethod
    def push(self, value: Any) -> "BucketedSequence":
        """Return a new sequence with ``value`` appended."""

    @abstractmethod
    def compress(self, factor: int) -> "BucketedSequence":
        """Return a new sequence with every ``factor`` buckets merged into one."""

    def count(self) -> int:
        return len(self)

    def extend(self, values: Iterable[Any]) -> "BucketedSequence":
        seq = self
        for value in values:
            seq = seq.push(value)
        return seq

    def __len__(self) -> int:
        return len(self.buckets())

    def __iter__(self) -> Iterator[Any]:
        return iter(self.buckets())


class SequenceCompressor(BucketedSequence):
    """
    Uncapped compressor.

    Attributes:
        fcompress: Combining function
        bucket_size: Raw values per completed bucket
        unfilled_bucket: Pending raw values (never counted as a bucket)
    """

    __slots__ = ("_fcompress", "_bucket_size", "_xs", "_unfilled")

    def __init__(
        self,
        fcompress: Combiner,
        bucket_size: int = 1,
        xs: Tuple[Any, ...] = (),
        unfilled: Tuple[Any, ...] = (),
    ):
        if bucket_size < 1:
            raise ValueError(f"bucket_size must be >= 1, got {bucket_size}")
        self._fcompress = fcompress
        self._bucket_size = bucket_size
        self._xs = tuple(xs)
        self._unfilled = tuple(unfilled)

    @property
    def fcompress(self) -> Combiner:
        return self._fcompress

    @property
    def bucket_size(self) -> int:
        return self._bucket_size

    @property
    def unfilled_bucket(self) -> Tuple[Any, ...]:
        return self._unfilled

    def buckets(self) -> List[Any]:
        return list(self._xs)

    def __len__(self) -> int:
        return len(self._xs)

    def _combine(self, values: Sequence[Any]) -> Any:
        try:
            return self._fcompress(*values)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            raise CombinerError(f"Combining function failed on {len(values)} values: {e}") from e

    def push(self, value: Any) -> "SequenceCompressor":
        bucket = self._unfilled + (value,)
        if len(bucket) < self._bucket_size:
            return SequenceCompressor(self._fcompress, self._bucket_size, self._xs, bucket)
        return SequenceCompressor(
            self._fcompress,
            self._bucket_size,
            self._xs + (self._combine(bucket),),
            (),
        )

    def compress(self, factor: int) -> "SequenceCompressor":
        if isinstance(factor, bool) or not isinstance(factor, numbers.Integral) or factor < 1:
            raise ValueError(f"Compression factor must be a positive integer, got {factor!r}")
        factor = int(factor)

        n_groups = len(self._xs) // factor
        merged = tuple(
            self._combine(self._xs[i * factor:(i + 1) * factor])
            for i in range(n_groups)
        )
        return SequenceCompressor(
            self._fcompress,
            self._bucket_size * factor,
            merged,
            self._unfilled,
        )

    def __repr__(self) -> str:
        return (f"SequenceCompressor(bucket_size={self._bucket_size}, "
                f"buckets={len(self._xs)}, unfilled={len(self._unfilled)})")


class CappedSequenceCompressor(BucketedSequence):
    """
    Compressor holding at most ``max_bucket_count`` completed buckets.

    Recompresses by a factor of 2 whenever a push brings the completed-bucket
    count to the cap on an even count. With an odd cap that happens one push
    past the cap, so pairs always merge without leaving an orphan bucket.
    """

    __slots__ = ("_max_bucket_count", "_inner")

    def __init__(self, max_bucket_count: int, inner: SequenceCompressor):
        if max_bucket_count < 1:
            raise ValueError(f"max_bucket_count must be >= 1, got {max_bucket_count}")
        self._max_bucket_count = max_bucket_count
        self._inner = inner

    @property
    def max_count(self) -> int:
        return self._max_bucket_count

    @property
    def fcompress(self) -> Combiner:
        return self._inner.fcompress

    @property
    def bucket_size(self) -> int:
        return self._inner.bucket_size

    @property
    def unfilled_bucket(self) -> Tuple[Any, ...]:
        return self._inner.unfilled_bucket

    @property
    def inner(self) -> SequenceCompressor:
        return self._inner

    def buckets(self) -> List[Any]:
        return self._inner.buckets()

    def __len__(self) -> int:
        return len(self._inner)

    def push(self, value: Any) -> "CappedSequenceCompressor":
        r = CappedSequenceCompressor(self._max_bucket_count, self._inner.push(value))
        n = len(r)
        if n >= self._max_bucket_count and n % 2 == 0:
            r = r.compress(2)
            logger.debug(
                f"Recompressed {n} buckets to {len(r)} (bucket size {r.bucket_size})"
            )
        if len(r) > self._max_bucket_count:
            raise InvariantViolation(
                f"Completed bucket count {len(r)} exceeds cap {self._max_bucket_count}"
            )
        return r

    def compress(self, factor: int) -> "CappedSequenceCompressor":
        return CappedSequenceCompressor(self._max_bucket_count, self._inner.compress(factor))

    def __repr__(self) -> str:
        return (f"CappedSequenceCompressor(max_bucket_count={self._max_bucket_count}, "
                f"bucket_size={self.bucket_size}, buckets={len(self)})")


# =============================================================================
# Factories and API
# =============================================================================

def sequence_compressor(
    fcompress: Combiner,
    max_bucket_count: Optional[int] = None,
    sample: Any = None,
) -> BucketedSequence:
    """
    Create an empty compressor with bucket size 1.

    Args:
        fcompress: Variadic combining function, closed over its output type
        max_bucket_count: Cap on completed buckets, or None for uncapped
        sample: Optional probe value used to validate ``fcompress`` up front

    Returns:
        SequenceCompressor, or CappedSequenceCompressor when capped
    """
    if sample is not None:
        validate_combiner(fcompress, sample)

    inner = SequenceCompressor(fcompress)
    if max_bucket_count is None:
        return inner
    return CappedSequenceCompressor(max_bucket_count, inner)


def _combine_col_state_freqs(*col_state_freqs: Mapping[str, float]) -> dict:
    return aggregate_by(mean, col_state_freqs)


def empty_col_state_freqs_log(max_bucket_count: int = 200) -> CappedSequenceCompressor:
    """Capped log of per-step column-state frequency dicts, averaged key-wise."""
    return sequence_compressor(_combine_col_state_freqs, max_bucket_count)


def push(compressor: BucketedSequence, value: Any) -> BucketedSequence:
    """Append ``value``; returns the new compressor state."""
    return compressor.push(value)


def read_buckets(compressor: BucketedSequence) -> Tuple[int, List[Any]]:
    """Return ``(bucket_width, buckets)`` for a renderer."""
    return compressor.bucket_size, compressor.buckets()
