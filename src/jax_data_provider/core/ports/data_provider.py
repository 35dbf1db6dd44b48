from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from jax_data_provider.core.domain.entities.base import Batch, StreamSpec
from jax_data_provider.core.domain.entities.state import ProviderState


class DataProviderPort(Protocol):
    """Port for feeding mini-batches to a training or prediction loop.

    Iteration is an explicit state machine rather than a Python iterator:

        state = provider.start()
        while not provider.done(state):
            batch, state = provider.next(state)

    `start()` begins (or restarts) an epoch. `done()` must be called once before
    every `next()`, and `next()` only after `done()` returned False. A provider
    and its state must not be driven by two loops at once; that is undefined
    and not checked.
    """

    def get_batch_size(self) -> int: ...

    def provide_data(self) -> Sequence[StreamSpec]: ...

    def provide_label(self) -> Sequence[StreamSpec]: ...

    def start(self) -> ProviderState: ...

    def done(self, state: ProviderState) -> bool: ...

    def next(self, state: ProviderState) -> tuple[Batch, ProviderState]: ...
