from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import jax


@dataclass(frozen=True)
class DeviceShard:
    """The part of one mini-batch placed on a single device."""

    device: Any
    sample_range: range
    # Real samples in this shard; the rest is padding.
    sample_count: int
    data: dict[str, jax.Array]
    label: dict[str, jax.Array]


class BatchConsumerPort(Protocol):
    """Port for the compute engine that receives device-placed shards.

    Adapters implement this (a training step, a prediction loop, a recorder).
    """

    def consume(self, *, step: int, shards: Sequence[DeviceShard]) -> None: ...
