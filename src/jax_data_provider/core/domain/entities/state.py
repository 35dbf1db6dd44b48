from __future__ import annotations

from dataclasses import dataclass

import numpy as np

__all__ = ["ArrayProviderState", "NativeProviderState", "ProviderState"]


@dataclass(frozen=True)
class ProviderState:
    """Opaque iteration cursor handed out by `start()` and advanced by `next()`.

    `generation` identifies the `start()` call that created the state; a state
    from an earlier epoch is rejected by the provider.
    """

    generation: int


@dataclass(frozen=True, eq=False)
class ArrayProviderState(ProviderState):
    cursor: int = 0
    # Sample order for the epoch; None means identity order.
    permutation: np.ndarray | None = None


@dataclass(frozen=True)
class NativeProviderState(ProviderState):
    step: int = 0
