from __future__ import annotations

import numpy as np
import pytest

from jax_data_provider.adapters.right.data_providers.native_provider import NativeIteratorDataProvider
from jax_data_provider.core.domain.entities.base import StreamSpec
from jax_data_provider.core.domain.errors.provider import ProtocolViolationError, ShapeMismatchError
from jax_data_provider.core.domain.utils.iteration import each_batch
from jax_data_provider.core.ports.native_iterator import NativeIteratorPort


class _ListNativeIterator(NativeIteratorPort):
    """Serves samples 0..n-1 (one feature row) in batches, padding the tail with zeros.

    Reuses a single buffer for every batch, like record readers do.
    """

    def __init__(self, *, n: int, batch_size: int) -> None:
        self._n = n
        self._b = batch_size
        self._cursor = 0
        self._buf = np.zeros((1, batch_size), dtype=np.float32)
        self._lbuf = np.zeros((batch_size,), dtype=np.int32)
        self._pad = 0
        self.advance_calls = 0
        self.rewinds = 0

    @property
    def batch_size(self) -> int:
        return self._b

    def provide_data(self):
        return [StreamSpec("data", (1,))]

    def provide_label(self):
        return [StreamSpec("softmax_label", ())]

    def before_first(self) -> None:
        self._cursor = 0
        self.rewinds += 1

    def iter_next(self) -> bool:
        self.advance_calls += 1
        if self._cursor >= self._n:
            return False
        stop = min(self._cursor + self._b, self._n)
        count = stop - self._cursor
        self._buf[...] = 0
        self._lbuf[...] = 0
        self._buf[0, :count] = np.arange(self._cursor, stop)
        self._lbuf[:count] = np.arange(self._cursor, stop) % 2
        self._pad = self._b - count
        self._cursor = stop
        return True

    def get_data(self):
        return [self._buf]

    def get_label(self):
        return [self._lbuf]

    def get_pad(self) -> int:
        return self._pad


def test_adapter_surfaces_declarations_unchanged() -> None:
    provider = NativeIteratorDataProvider(_ListNativeIterator(n=10, batch_size=4))
    assert provider.get_batch_size() == 4
    assert provider.provide_data() == (StreamSpec("data", (1,)),)
    assert provider.provide_label() == (StreamSpec("softmax_label", ()),)


def test_adapter_translates_pad_into_sample_count() -> None:
    provider = NativeIteratorDataProvider(_ListNativeIterator(n=10, batch_size=4))

    batches = list(each_batch(provider))

    assert [b.sample_count for b in batches] == [4, 4, 2]
    assert sum(b.sample_count for b in batches) == 10
    values = np.concatenate([b.get("data")[0, : b.sample_count] for b in batches])
    assert values.tolist() == list(range(10))


def test_repeated_done_advances_the_native_iterator_once() -> None:
    native = _ListNativeIterator(n=8, batch_size=4)
    provider = NativeIteratorDataProvider(native)

    state = provider.start()
    assert provider.done(state) is False
    assert provider.done(state) is False
    assert native.advance_calls == 1

    batch, state = provider.next(state)
    assert batch.get("data")[0].tolist() == [0, 1, 2, 3]

    assert provider.done(state) is False
    assert native.advance_calls == 2


def test_copied_batches_survive_the_next_step() -> None:
    provider = NativeIteratorDataProvider(_ListNativeIterator(n=8, batch_size=4))
    first, second = list(each_batch(provider))
    assert first.get("data")[0].tolist() == [0, 1, 2, 3]
    assert second.get("data")[0].tolist() == [4, 5, 6, 7]


def test_aliased_batches_share_the_native_buffer() -> None:
    native = _ListNativeIterator(n=8, batch_size=4)
    provider = NativeIteratorDataProvider(native, copy_batches=False)
    first, _ = list(each_batch(provider))
    assert np.shares_memory(first.get("data"), native.get_data()[0])


def test_start_rewinds_the_native_iterator() -> None:
    native = _ListNativeIterator(n=5, batch_size=5)
    provider = NativeIteratorDataProvider(native)

    assert len(list(each_batch(provider))) == 1
    assert len(list(each_batch(provider))) == 1
    assert native.rewinds == 2


def test_next_requires_a_preceding_done() -> None:
    provider = NativeIteratorDataProvider(_ListNativeIterator(n=8, batch_size=4))
    state = provider.start()
    with pytest.raises(ProtocolViolationError):
        provider.next(state)


def test_next_after_exhaustion_is_rejected() -> None:
    provider = NativeIteratorDataProvider(_ListNativeIterator(n=4, batch_size=4))
    state = provider.start()
    assert not provider.done(state)
    _, state = provider.next(state)
    assert provider.done(state)
    with pytest.raises(ProtocolViolationError):
        provider.next(state)


def test_stale_state_is_rejected() -> None:
    provider = NativeIteratorDataProvider(_ListNativeIterator(n=8, batch_size=4))
    old = provider.start()
    assert not provider.done(old)
    _, new = provider.next(old)
    with pytest.raises(ProtocolViolationError):
        provider.done(old)

    provider.start()
    with pytest.raises(ProtocolViolationError):
        provider.done(new)


class _BrokenShapeIterator(_ListNativeIterator):
    def get_data(self):
        return [np.zeros((2, self.batch_size), dtype=np.float32)]


class _BadPadIterator(_ListNativeIterator):
    def get_pad(self) -> int:
        return self.batch_size


def test_delivered_shapes_are_checked_against_declarations() -> None:
    provider = NativeIteratorDataProvider(_BrokenShapeIterator(n=4, batch_size=4))
    state = provider.start()
    assert not provider.done(state)
    with pytest.raises(ShapeMismatchError):
        provider.next(state)


def test_a_batch_made_only_of_padding_is_rejected() -> None:
    provider = NativeIteratorDataProvider(_BadPadIterator(n=4, batch_size=4))
    state = provider.start()
    assert not provider.done(state)
    with pytest.raises(ShapeMismatchError):
        provider.next(state)
