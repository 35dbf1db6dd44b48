from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FeedCommand:
    """Intent to stream a provider's batches onto compute devices."""

    epochs: int = 1

    # 0 uses every visible JAX device.
    num_devices: int = 0

    # Logging
    log_every_steps: int = 100

    def __post_init__(self) -> None:
        if self.epochs < 1:
            raise ValueError(f"epochs must be >= 1, got {self.epochs}")
        if self.num_devices < 0:
            raise ValueError(f"num_devices must be >= 0, got {self.num_devices}")
        if self.log_every_steps < 1:
            raise ValueError(f"log_every_steps must be >= 1, got {self.log_every_steps}")
