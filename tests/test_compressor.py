"""
Tests for Sequence Compressors
"""

import random

import numpy as np
import pytest

from cortexviz.compressor import (
    SequenceCompressor,
    CappedSequenceCompressor,
    sequence_compressor,
    empty_col_state_freqs_log,
    validate_combiner,
    aggregate_by,
    combine_mean,
    mean,
    push,
    read_buckets,
)
from cortexviz.errors import CombinerError


def combine_sum(*xs):
    return sum(xs)


class TestSequenceCompressor:
    """Uncapped compressor."""

    def test_empty(self):
        c = sequence_compressor(combine_mean)
        assert isinstance(c, SequenceCompressor)
        assert c.bucket_size == 1
        assert c.buckets() == []
        assert len(c) == 0
        assert c.max_count is None

    def test_push_is_pure(self):
        c0 = sequence_compressor(combine_mean)
        c1 = c0.push(5)
        assert c0.buckets() == []
        assert c1.buckets() == [5.0]

    @pytest.mark.parametrize("b,k", [(1, 5), (2, 3), (3, 4), (5, 1)])
    def test_push_bucket_size_times_k(self, b, k):
        """b*k pushes give exactly k buckets and nothing pending."""
        c = SequenceCompressor(combine_sum, bucket_size=b)
        c = c.extend(range(b * k))
        assert len(c) == k
        assert c.unfilled_bucket == ()
        assert c.count() == k

    def test_unfilled_bucket_not_counted(self):
        c = SequenceCompressor(combine_sum, bucket_size=3).extend([1, 2, 3, 4, 5])
        assert c.buckets() == [6]
        assert c.unfilled_bucket == (4, 5)

    def test_compress_merges_groups_and_drops_trailing(self):
        c = sequence_compressor(combine_sum).extend(range(7))
        c2 = c.compress(3)
        assert c2.bucket_size == 3
        assert c2.buckets() == [0 + 1 + 2, 3 + 4 + 5]
        # old state still valid
        assert c.buckets() == list(range(7))
        assert c.bucket_size == 1

    def test_compress_keeps_unfilled_bucket(self):
        c = SequenceCompressor(combine_sum, bucket_size=2).extend([1, 2, 3, 4, 5])
        c2 = c.compress(2)
        assert c2.unfilled_bucket == (5,)
        assert c2.bucket_size == 4
        assert c2.buckets() == [10]

    def test_compress_composes(self):
        """compress(a).compress(b) == compress(a*b) for an associative combiner."""
        for n in (0, 5, 12, 37):
            c = sequence_compressor(combine_sum).extend(range(n))
            for a, b in [(2, 2), (2, 3), (3, 2), (4, 1)]:
                twice = c.compress(a).compress(b)
                once = c.compress(a * b)
                assert twice.buckets() == once.buckets()
                assert twice.bucket_size == once.bucket_size

    def test_compress_rejects_bad_factor(self):
        c = sequence_compressor(combine_sum)
        with pytest.raises(ValueError):
            c.compress(0)
        with pytest.raises(ValueError):
            c.compress(1.5)
        with pytest.raises(ValueError):
            c.compress(True)

    def test_compress_accepts_numpy_factor(self):
        c = sequence_compressor(combine_sum).extend(range(4)).compress(np.int64(2))
        assert c.bucket_size == 2
        assert type(c.bucket_size) is int
        assert c.buckets() == [1, 5]

    def test_recompressed_values_recombine(self):
        """Merged summaries are valid combiner inputs."""
        c = sequence_compressor(combine_mean).extend([1, 3, 5, 7])
        assert c.compress(2).compress(2).buckets() == [4.0]

    def test_module_api(self):
        c = push(sequence_compressor(combine_mean), 2.0)
        width, buckets = read_buckets(c)
        assert width == 1
        assert buckets == [2.0]


class TestCappedCompressor:
    """Capped compressor."""

    def test_mean_scenario_cap_3(self):
        log = sequence_compressor(combine_mean, max_bucket_count=3)
        for x in [1, 2, 3]:
            log = log.push(x)
        assert log.buckets() == [1.0, 2.0, 3.0]
        assert log.bucket_size == 1

        log = log.push(4)
        assert log.buckets() == [1.5, 3.5]
        assert log.bucket_size == 2

        for x in [5, 6, 7, 8, 9]:
            log = log.push(x)
        width, buckets = read_buckets(log)
        assert width == 4
        assert buckets == [2.5, 6.5]
        assert log.unfilled_bucket == (9,)
        # every input is accounted for
        assert width * len(buckets) + len(log.unfilled_bucket) == 9

    @pytest.mark.parametrize("cap", [1, 2, 3, 4, 7, 10])
    def test_count_never_exceeds_cap(self, cap):
        rng = random.Random(cap)
        log = sequence_compressor(combine_mean, max_bucket_count=cap)
        for _ in range(500):
            log = log.push(rng.random())
            assert len(log) <= cap

    @pytest.mark.parametrize("cap", [1, 2, 3, 4, 7, 10])
    def test_no_samples_lost(self, cap):
        log = sequence_compressor(combine_sum, max_bucket_count=cap).extend([1] * 300)
        covered = sum(log.buckets()) + sum(log.unfilled_bucket)
        assert covered == 300

    def test_cap_one_keeps_single_bucket(self):
        log = sequence_compressor(combine_mean, max_bucket_count=1)
        for i, x in enumerate([1, 2, 3, 4], 1):
            log = log.push(x)
            assert len(log) <= 1
        assert log.buckets() == [2.5]
        assert log.bucket_size == 4

    def test_bucket_size_only_doubles(self):
        log = sequence_compressor(combine_mean, max_bucket_count=5)
        sizes = []
        for x in range(200):
            log = log.push(x)
            sizes.append(log.bucket_size)
        assert sizes == sorted(sizes)
        assert all(s & (s - 1) == 0 for s in sizes)

    def test_compress_preserves_cap(self):
        log = sequence_compressor(combine_sum, max_bucket_count=4).extend(range(3))
        compressed = log.compress(2)
        assert isinstance(compressed, CappedSequenceCompressor)
        assert compressed.max_count == 4
        assert compressed.bucket_size == 2

    def test_rejects_bad_cap(self):
        with pytest.raises(ValueError):
            sequence_compressor(combine_mean, max_bucket_count=0)


class TestCombiners:
    """Combining functions and their validation."""

    def test_mean(self):
        assert mean([1, 2]) == 1.5
        assert combine_mean(1, 2, 3) == 2.0

    def test_aggregate_by(self):
        maps = [{"active": 2, "predicted": 4}, {"active": 4, "predicted": 0}]
        assert aggregate_by(mean, maps) == {"active": 3.0, "predicted": 2.0}
        assert aggregate_by(mean, []) == {}

    def test_col_state_freqs_log(self):
        log = empty_col_state_freqs_log(max_bucket_count=2)
        log = log.push({"active": 2, "predicted": 4})
        log = log.push({"active": 4, "predicted": 0})
        assert log.bucket_size == 2
        assert log.buckets() == [{"active": 3.0, "predicted": 2.0}]

    def test_validate_accepts_closed_combiner(self):
        validate_combiner(combine_mean, 1.0)
        validate_combiner(lambda *ms: aggregate_by(mean, ms), {"a": 1.0})

    def test_validate_rejects_open_combiner(self):
        with pytest.raises(CombinerError):
            validate_combiner(lambda *xs: list(xs), 1)
        with pytest.raises(CombinerError):
            sequence_compressor(lambda *xs: str(sum(xs)), max_bucket_count=3, sample=1)

    def test_failing_combiner_surfaces(self):
        c = sequence_compressor(lambda *xs: xs[0] + "x")
        with pytest.raises(CombinerError):
            c.push(1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
