from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import Union

import numpy as np

from jax_data_provider.core.domain.commands.provider import ArrayProviderConfig
from jax_data_provider.core.domain.entities.base import Batch, StreamSpec
from jax_data_provider.core.domain.entities.dataset import ProviderInfo
from jax_data_provider.core.domain.entities.state import ArrayProviderState, ProviderState
from jax_data_provider.core.domain.errors.provider import ProtocolViolationError, ShapeMismatchError
from jax_data_provider.core.domain.utils.jax_rng import epoch_permutation
from jax_data_provider.core.ports.data_provider import DataProviderPort

logger = logging.getLogger(__name__)

# A single array, a name -> array mapping, or a sequence of (name, array) pairs.
NamedArrays = Union[np.ndarray, Mapping[str, np.ndarray], Sequence[tuple[str, np.ndarray]]]


def _named_arrays(arrays: NamedArrays | None, *, default_name: str) -> list[tuple[str, np.ndarray]]:
    if arrays is None:
        return []
    if isinstance(arrays, Mapping):
        items = list(arrays.items())
    elif hasattr(arrays, "shape"):
        items = [(default_name, arrays)]
    else:
        items = list(arrays)
    return [(str(name), np.asarray(a)) for name, a in items]


def _check_fill(name: str, a: np.ndarray, fill: float) -> None:
    """Reject a padding value that `a.dtype` would silently change."""

    kind = a.dtype.kind
    if kind == "b":
        ok = fill in (0, 1)
    elif kind in "iu":
        info = np.iinfo(a.dtype)
        ok = float(fill).is_integer() and info.min <= fill <= info.max
    else:
        ok = kind in "fc"
    if not ok:
        raise ValueError(f"padding value {fill!r} cannot be represented in {a.dtype} array {name!r}")


class ArrayDataProvider(DataProviderPort):
    """Mini-batches over in-memory arrays.

    Samples run along the LAST axis of every array, so a data array of shape
    `(28, 28, 60000)` declares a stream of shape `(28, 28)` with 60000 samples.
    A bare array is named `data` (or `softmax_label` for labels).

    Each `next()` allocates fresh read-only buffers; a returned batch is never
    overwritten by later steps.
    """

    def __init__(
        self,
        data: NamedArrays,
        label: NamedArrays | None = None,
        *,
        config: ArrayProviderConfig | None = None,
    ) -> None:
        self._config = config or ArrayProviderConfig()
        self._data = _named_arrays(data, default_name="data")
        self._label = _named_arrays(label, default_name="softmax_label")

        if not self._data:
            raise ShapeMismatchError("ArrayDataProvider needs at least one data array")

        names = [n for n, _ in self._data + self._label]
        if len(set(names)) != len(names):
            raise ShapeMismatchError(f"array names must be unique, got {names}")

        for name, a in self._data + self._label:
            if a.ndim < 1:
                raise ShapeMismatchError(f"array {name!r} is a scalar; samples must run along its last axis")

        if self._config.padding == "scalar":
            for name, a in self._data:
                _check_fill(name, a, self._config.data_padding)
            for name, a in self._label:
                _check_fill(name, a, self._config.label_padding)

        counts = {name: int(a.shape[-1]) for name, a in self._data + self._label}
        if len(set(counts.values())) != 1:
            raise ShapeMismatchError(f"all arrays must hold the same number of samples, got {counts}")
        self._num_samples = next(iter(counts.values()))

        if self._config.batch_size == 0:
            if self._num_samples == 0:
                raise ValueError("batch_size=0 (whole dataset) needs a non-empty dataset")
            self._batch_size = self._num_samples
        else:
            self._batch_size = self._config.batch_size

        self._data_specs = tuple(StreamSpec(name, a.shape[:-1]) for name, a in self._data)
        self._label_specs = tuple(StreamSpec(name, a.shape[:-1]) for name, a in self._label)

        # Bumped by every start(); also serves as the shuffle epoch index.
        self._generation = 0

    @property
    def config(self) -> ArrayProviderConfig:
        return self._config

    @property
    def num_samples(self) -> int:
        return self._num_samples

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo.from_provider(self)

    def get_batch_size(self) -> int:
        return self._batch_size

    def provide_data(self) -> tuple[StreamSpec, ...]:
        return self._data_specs

    def provide_label(self) -> tuple[StreamSpec, ...]:
        return self._label_specs

    def start(self) -> ArrayProviderState:
        self._generation += 1
        permutation = None
        if self._config.shuffle and self._num_samples > 0:
            permutation = epoch_permutation(
                seed=self._config.seed, epoch=self._generation, num_samples=self._num_samples
            )
        logger.debug(
            "array provider epoch %d: %d samples, batch_size=%d, shuffle=%s",
            self._generation,
            self._num_samples,
            self._batch_size,
            self._config.shuffle,
        )
        return ArrayProviderState(generation=self._generation, cursor=0, permutation=permutation)

    def done(self, state: ProviderState) -> bool:
        st = self._check_state(state)
        return st.cursor >= self._num_samples

    def next(self, state: ProviderState) -> tuple[Batch, ArrayProviderState]:
        st = self._check_state(state)
        if st.cursor >= self._num_samples:
            raise ProtocolViolationError("next() called on an exhausted epoch; check done() first")

        stop = min(st.cursor + self._batch_size, self._num_samples)
        count = stop - st.cursor
        order = st.permutation if st.permutation is not None else np.arange(self._num_samples)
        idx = order[st.cursor : stop]

        if count < self._batch_size and self._config.padding == "rollover":
            wrap = np.arange(self._batch_size - count) % self._num_samples
            idx = np.concatenate([idx, order[wrap]])

        batch = Batch(
            sample_count=count,
            data=tuple(self._gather(a, idx, fill=self._config.data_padding) for _, a in self._data),
            label=tuple(self._gather(a, idx, fill=self._config.label_padding) for _, a in self._label),
            data_names=tuple(s.name for s in self._data_specs),
            label_names=tuple(s.name for s in self._label_specs),
        )
        return batch, replace(st, cursor=stop)

    def _gather(self, a: np.ndarray, idx: np.ndarray, *, fill: float) -> np.ndarray:
        out = np.full((*a.shape[:-1], self._batch_size), fill, dtype=a.dtype)
        out[..., : len(idx)] = np.take(a, idx, axis=-1)
        out.flags.writeable = False
        return out

    def _check_state(self, state: ProviderState) -> ArrayProviderState:
        if self._generation == 0:
            raise ProtocolViolationError("start() must be called before done()/next()")
        if not isinstance(state, ArrayProviderState):
            raise ProtocolViolationError(f"expected an ArrayProviderState, got {type(state).__name__}")
        if state.generation != self._generation:
            raise ProtocolViolationError(
                f"state belongs to epoch {state.generation} but the provider was restarted (epoch {self._generation})"
            )
        return state
