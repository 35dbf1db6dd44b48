from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import jax.numpy as jnp

from jax_data_provider.core.ports.batch_consumer import BatchConsumerPort, DeviceShard


class SummaryBatchConsumer(BatchConsumerPort):
    """Records what reached each device instead of running a model.

    Used by the `inspect` CLI command and handy in tests of feeding loops.
    """

    def __init__(self, *, keep_shards: bool = False) -> None:
        self._keep = keep_shards
        self.records: list[dict[str, Any]] = []
        self.shards: list[list[DeviceShard]] = []

    def consume(self, *, step: int, shards: Sequence[DeviceShard]) -> None:
        self.records.append(
            {
                "step": step,
                "sample_counts": [s.sample_count for s in shards],
                "ranges": [(s.sample_range.start, s.sample_range.stop) for s in shards],
                "data_shapes": {name: tuple(a.shape) for name, a in shards[0].data.items()} if shards else {},
                # Sum over the real samples only, so padding cannot leak into the check value.
                "data_sum": float(
                    sum(
                        jnp.sum(a[..., : s.sample_count])
                        for s in shards
                        for a in s.data.values()
                    )
                ),
            }
        )
        if self._keep:
            self.shards.append(list(shards))

    @property
    def total_samples(self) -> int:
        return sum(sum(r["sample_counts"]) for r in self.records)
