from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from jax_data_provider.core.domain.entities.base import Batch, StreamSpec
from jax_data_provider.core.domain.entities.dataset import ProviderInfo
from jax_data_provider.core.domain.entities.state import NativeProviderState, ProviderState
from jax_data_provider.core.domain.errors.provider import ProtocolViolationError, ShapeMismatchError
from jax_data_provider.core.ports.data_provider import DataProviderPort
from jax_data_provider.core.ports.native_iterator import NativeIteratorPort

logger = logging.getLogger(__name__)


class NativeIteratorDataProvider(DataProviderPort):
    """Adapts a `NativeIteratorPort` to the start/done/next protocol.

    The native side advances and reports availability in a single
    `iter_next()` call. `done()` performs that call at most once per step and
    remembers the answer; `next()` then only reads the buffered batch. Calling
    `done()` repeatedly for the same step does not skip data.

    With `copy_batches=True` (default) every batch owns read-only copies of
    the native tensors. With `copy_batches=False` the batch aliases the native
    iterator's buffers and is only valid until the next `done()` call.
    """

    def __init__(self, iterator: NativeIteratorPort, *, copy_batches: bool = True) -> None:
        self._it = iterator
        self._copy = bool(copy_batches)
        self._batch_size = int(iterator.batch_size)
        self._data_specs = tuple(iterator.provide_data())
        self._label_specs = tuple(iterator.provide_label())

        if self._batch_size < 1:
            raise ShapeMismatchError(f"native iterator reports batch_size={self._batch_size}")
        if not self._data_specs:
            raise ShapeMismatchError("native iterator declares no data streams")

        self._generation = 0
        self._step = 0
        # Result of iter_next() for the current step; None until done() asked.
        self._pending: bool | None = None

    @property
    def iterator(self) -> NativeIteratorPort:
        return self._it

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo.from_provider(self)

    def get_batch_size(self) -> int:
        return self._batch_size

    def provide_data(self) -> tuple[StreamSpec, ...]:
        return self._data_specs

    def provide_label(self) -> tuple[StreamSpec, ...]:
        return self._label_specs

    def start(self) -> NativeProviderState:
        self._generation += 1
        self._step = 0
        self._pending = None
        self._it.before_first()
        logger.debug("native provider epoch %d started", self._generation)
        return NativeProviderState(generation=self._generation, step=0)

    def done(self, state: ProviderState) -> bool:
        self._check_state(state)
        if self._pending is None:
            self._pending = bool(self._it.iter_next())
        return not self._pending

    def next(self, state: ProviderState) -> tuple[Batch, NativeProviderState]:
        st = self._check_state(state)
        if self._pending is None:
            raise ProtocolViolationError("next() called without a preceding done()")
        if not self._pending:
            raise ProtocolViolationError("next() called after done() returned True; call start() first")

        pad = int(self._it.get_pad())
        if not (0 <= pad < self._batch_size):
            raise ShapeMismatchError(f"native iterator reports pad={pad} for batch_size={self._batch_size}")

        batch = Batch(
            sample_count=self._batch_size - pad,
            data=self._collect(self._it.get_data(), self._data_specs, kind="data"),
            label=self._collect(self._it.get_label(), self._label_specs, kind="label"),
            data_names=tuple(s.name for s in self._data_specs),
            label_names=tuple(s.name for s in self._label_specs),
        )

        self._step += 1
        self._pending = None
        return batch, NativeProviderState(generation=st.generation, step=self._step)

    def _collect(
        self, tensors: Sequence[np.ndarray], specs: tuple[StreamSpec, ...], *, kind: str
    ) -> tuple[np.ndarray, ...]:
        tensors = list(tensors)
        if len(tensors) != len(specs):
            raise ShapeMismatchError(f"native iterator returned {len(tensors)} {kind} tensors, declared {len(specs)}")

        out = []
        for spec, t in zip(specs, tensors):
            arr = np.array(t, copy=True) if self._copy else np.asarray(t)
            expected = spec.batch_shape(self._batch_size)
            if arr.shape != expected:
                raise ShapeMismatchError(f"{kind} tensor {spec.name!r} has shape {arr.shape}, declared {expected}")
            if self._copy:
                arr.flags.writeable = False
            out.append(arr)
        return tuple(out)

    def _check_state(self, state: ProviderState) -> NativeProviderState:
        if self._generation == 0:
            raise ProtocolViolationError("start() must be called before done()/next()")
        if not isinstance(state, NativeProviderState):
            raise ProtocolViolationError(f"expected a NativeProviderState, got {type(state).__name__}")
        if state.generation != self._generation or state.step != self._step:
            raise ProtocolViolationError(
                f"stale state (epoch {state.generation}, step {state.step}); "
                f"provider is at epoch {self._generation}, step {self._step}"
            )
        return state
