from __future__ import annotations

from collections.abc import Iterator

from jax_data_provider.core.domain.entities.base import Batch
from jax_data_provider.core.ports.data_provider import DataProviderPort


def each_batch(provider: DataProviderPort) -> Iterator[Batch]:
    """Run one epoch: start(), then done()/next() until the provider is exhausted.

    Abandoning the generator early is safe; the provider is simply not advanced again.
    """

    state = provider.start()
    while not provider.done(state):
        batch, state = provider.next(state)
        yield batch
