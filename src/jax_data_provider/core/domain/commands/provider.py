from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PaddingPolicy = Literal["scalar", "rollover"]


@dataclass(frozen=True)
class ArrayProviderConfig:
    """Settings for `ArrayDataProvider`."""

    # 0 means the whole dataset is a single batch.
    batch_size: int = 0
    shuffle: bool = False
    seed: int = 0

    # How the short final batch of an epoch is filled:
    # - "scalar": fill with data_padding / label_padding
    # - "rollover": wrap around and reuse samples from the start of the epoch
    padding: PaddingPolicy = "scalar"
    data_padding: float = 0.0
    label_padding: float = 0.0

    def __post_init__(self) -> None:
        if self.batch_size < 0:
            raise ValueError(f"batch_size must be >= 0, got {self.batch_size}")
        if self.padding not in ("scalar", "rollover"):
            raise ValueError(f"padding must be 'scalar' or 'rollover', got {self.padding!r}")


@dataclass(frozen=True)
class NativeIteratorConfig:
    """Parameters every native iterator declares.

    Format-specific iterators extend this with their own fields (paths,
    dataset names, augmentation switches).
    """

    batch_size: int = 128
    shuffle: bool = False
    seed: int = 0

    # Sharding for distributed reading: this reader sees part `part_index` of `num_parts`.
    part_index: int = 0
    num_parts: int = 1

    # Number of batches the native side may prepare ahead of the consumer.
    prefetch_buffer: int = 4

    # Pad the last short batch by wrapping around instead of dropping it.
    round_batch: bool = True

    data_name: str = "data"
    label_name: str = "softmax_label"

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.num_parts < 1:
            raise ValueError(f"num_parts must be >= 1, got {self.num_parts}")
        if not (0 <= self.part_index < self.num_parts):
            raise ValueError(f"part_index must be in [0, {self.num_parts}), got {self.part_index}")
        if self.prefetch_buffer < 0:
            raise ValueError(f"prefetch_buffer must be >= 0, got {self.prefetch_buffer}")
