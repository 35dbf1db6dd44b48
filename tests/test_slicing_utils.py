from __future__ import annotations

import numpy as np
import pytest

from jax_data_provider.core.domain.entities.base import Batch, StreamSpec
from jax_data_provider.core.domain.errors.provider import PartitionMismatchError
from jax_data_provider.core.domain.utils.slicing import allocate_slice_targets, shard_sample_count, split_ranges


def test_split_ranges_balances_and_partitions() -> None:
    assert split_ranges(10, 3) == [range(0, 4), range(4, 7), range(7, 10)]
    assert split_ranges(4, 2) == [range(0, 2), range(2, 4)]
    assert split_ranges(5, 1) == [range(0, 5)]

    for b, n in [(7, 7), (33, 4), (128, 3)]:
        ranges = split_ranges(b, n)
        assert len(ranges) == n
        assert sum(len(r) for r in ranges) == b
        assert all(ranges[i].stop == ranges[i + 1].start for i in range(n - 1))


def test_split_ranges_rejects_impossible_splits() -> None:
    with pytest.raises(PartitionMismatchError):
        split_ranges(3, 4)
    with pytest.raises(PartitionMismatchError):
        split_ranges(3, 0)


def test_allocated_targets_round_trip_through_load_data() -> None:
    x = np.arange(30, dtype=np.float32).reshape(3, 10)
    batch = Batch(sample_count=8, data=(x,), data_names=("data",))
    ranges = split_ranges(10, 3)

    targets = allocate_slice_targets([StreamSpec("data", (3,))], ranges)
    batch.load_data(targets)

    assert [t.target.shape for t in targets[0]] == [(3, 4), (3, 3), (3, 3)]
    np.testing.assert_array_equal(np.concatenate([t.target for t in targets[0]], axis=-1), x)


def test_allocate_slice_targets_checks_dtypes() -> None:
    targets = allocate_slice_targets([StreamSpec("y", ())], [range(0, 2)], dtypes=[np.int32])
    assert targets[0][0].target.dtype == np.int32
    with pytest.raises(PartitionMismatchError):
        allocate_slice_targets([StreamSpec("y", ())], [range(0, 2)], dtypes=[])


def test_shard_sample_count_excludes_padding() -> None:
    ranges = split_ranges(8, 4)
    assert [shard_sample_count(5, r) for r in ranges] == [2, 2, 1, 0]
