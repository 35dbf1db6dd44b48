from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import numpy as np

from jax_data_provider.core.domain.entities.base import SliceDescriptor, StreamSpec
from jax_data_provider.core.domain.errors.provider import PartitionMismatchError


def split_ranges(batch_size: int, n_split: int) -> list[range]:
    """Split `[0, batch_size)` into `n_split` contiguous, balanced ranges.

    The first `batch_size % n_split` ranges get one extra sample, e.g.
    `split_ranges(10, 3) == [range(0, 4), range(4, 7), range(7, 10)]`.
    """

    if n_split < 1:
        raise PartitionMismatchError(f"n_split must be >= 1, got {n_split}")
    if n_split > batch_size:
        raise PartitionMismatchError(f"cannot split a batch of {batch_size} samples across {n_split} devices")

    base, extra = divmod(batch_size, n_split)
    ranges: list[range] = []
    start = 0
    for i in range(n_split):
        stop = start + base + (1 if i < extra else 0)
        ranges.append(range(start, stop))
        start = stop
    return ranges


def allocate_slice_targets(
    streams: Sequence[StreamSpec],
    ranges: Sequence[range],
    *,
    dtypes: Sequence[Any] | None = None,
) -> list[list[SliceDescriptor]]:
    """Allocate one zero-filled host buffer per (stream, range).

    `dtypes` gives one dtype per stream (float32 when omitted).

    The result is laid out the way `Batch.load_data` / `Batch.load_label` expect:
    outer list follows `streams`, inner list follows `ranges`.
    """

    if dtypes is None:
        dtypes = [np.float32] * len(streams)
    if len(dtypes) != len(streams):
        raise PartitionMismatchError(f"got {len(dtypes)} dtypes for {len(streams)} streams")

    return [
        [SliceDescriptor.from_range(r, np.zeros((*s.shape, len(r)), dtype=dt)) for r in ranges]
        for s, dt in zip(streams, dtypes)
    ]


def shard_sample_count(sample_count: int, sample_range: range) -> int:
    """How many real (non-padding) samples fall inside `sample_range`."""

    return max(0, min(sample_range.stop, sample_count) - sample_range.start)
