from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import numpy as np

from jax_data_provider.core.domain.entities.base import StreamSpec


class NativeIteratorPort(Protocol):
    """Port for externally implemented batch iterators (record readers, TFDS, ...).

    Their contract differs from `DataProviderPort`: `iter_next()` advances and
    reports in one call, and the current batch is then read through getters.
    Tensors are batch-last NumPy arrays. Implementations may reuse their
    buffers, so getter results are only valid until the next `iter_next()`.
    """

    @property
    def batch_size(self) -> int: ...

    def provide_data(self) -> Sequence[StreamSpec]: ...

    def provide_label(self) -> Sequence[StreamSpec]: ...

    def before_first(self) -> None:
        """Rewind to the beginning of the data (reshuffling if configured)."""
        ...

    def iter_next(self) -> bool:
        """Advance to the next batch; False when the data is exhausted."""
        ...

    def get_data(self) -> Sequence[np.ndarray]: ...

    def get_label(self) -> Sequence[np.ndarray]: ...

    def get_pad(self) -> int:
        """Number of padding samples at the tail of the current batch."""
        ...
