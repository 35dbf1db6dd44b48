from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from jax_data_provider.core.domain.errors.provider import (
    NameNotFoundError,
    PartitionMismatchError,
    ShapeMismatchError,
)

__all__ = ["Batch", "SliceDescriptor", "SliceTargets", "StreamSpec"]


@dataclass(frozen=True)
class StreamSpec:
    """A named data or label stream.

    `shape` excludes the batch axis; the tensors a provider hands out for this
    stream have shape `(*shape, batch_size)`.
    """

    name: str
    shape: tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "shape", tuple(int(d) for d in self.shape))

    def batch_shape(self, batch_size: int) -> tuple[int, ...]:
        return (*self.shape, int(batch_size))


@dataclass(frozen=True, eq=False)
class SliceDescriptor:
    """Copy samples `[start, stop)` of a batch tensor into `target`.

    The samples land at `target[..., 0:stop - start]`. `target` is usually a
    device-local host buffer allocated by `allocate_slice_targets`.
    """

    start: int
    stop: int
    target: np.ndarray

    @classmethod
    def from_range(cls, sample_range: range, target: np.ndarray) -> SliceDescriptor:
        if sample_range.step != 1:
            raise ShapeMismatchError(f"slice ranges must be contiguous, got {sample_range}")
        return cls(start=sample_range.start, stop=sample_range.stop, target=target)

    @property
    def size(self) -> int:
        return self.stop - self.start


# One list of descriptors per tensor, in provide_data()/provide_label() order.
SliceTargets = Sequence[Sequence[SliceDescriptor]]


@dataclass(frozen=True, eq=False)
class Batch:
    """One mini-batch.

    Every tensor carries the batch on its last axis, and that axis is always
    the provider's batch size, even for the short final batch of an epoch.
    `sample_count` says how many leading samples are real; the tail is padding.
    """

    sample_count: int
    data: tuple[np.ndarray, ...]
    label: tuple[np.ndarray, ...] = ()
    data_names: tuple[str, ...] = ("data",)
    label_names: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", tuple(self.data))
        object.__setattr__(self, "label", tuple(self.label))
        object.__setattr__(self, "data_names", tuple(self.data_names))
        object.__setattr__(self, "label_names", tuple(self.label_names))

        if not self.data:
            raise ShapeMismatchError("a batch needs at least one data tensor")
        if len(self.data_names) != len(self.data):
            raise ShapeMismatchError(f"{len(self.data)} data tensors but {len(self.data_names)} data names")
        if len(self.label_names) != len(self.label):
            raise ShapeMismatchError(f"{len(self.label)} label tensors but {len(self.label_names)} label names")

        names = self.data_names + self.label_names
        if len(set(names)) != len(names):
            raise ShapeMismatchError(f"stream names must be unique, got {list(names)}")

        batch_size = self.batch_size
        for name, t in zip(names, self.data + self.label):
            if t.ndim < 1 or t.shape[-1] != batch_size:
                raise ShapeMismatchError(
                    f"tensor {name!r} has shape {t.shape}; its last axis must be the batch size {batch_size}"
                )

        if not (1 <= self.sample_count <= batch_size):
            raise ShapeMismatchError(f"sample_count must be in [1, {batch_size}], got {self.sample_count}")

    @property
    def batch_size(self) -> int:
        return int(self.data[0].shape[-1])

    @property
    def num_padding(self) -> int:
        return self.batch_size - self.sample_count

    def get_data(self) -> tuple[np.ndarray, ...]:
        return self.data

    def get_label(self) -> tuple[np.ndarray, ...]:
        return self.label

    def get(self, name: str) -> np.ndarray:
        """Look a tensor up by stream name across data and label streams."""

        for n, t in zip(self.data_names, self.data):
            if n == name:
                return t
        for n, t in zip(self.label_names, self.label):
            if n == name:
                return t
        raise NameNotFoundError(name, self.data_names + self.label_names)

    def load_data(self, targets: SliceTargets) -> None:
        """Scatter data tensors into per-device buffers (one descriptor list per tensor)."""

        _load_general(self.data, self.data_names, targets, kind="data")

    def load_label(self, targets: SliceTargets) -> None:
        _load_general(self.label, self.label_names, targets, kind="label")


def _check_slices(src: np.ndarray, name: str, slices: Sequence[SliceDescriptor]) -> None:
    batch_size = src.shape[-1]
    covered = np.zeros(batch_size, dtype=bool)

    for sl in slices:
        if not (0 <= sl.start < sl.stop <= batch_size):
            raise ShapeMismatchError(
                f"slice [{sl.start}, {sl.stop}) for {name!r} is empty or outside [0, {batch_size})"
            )
        if covered[sl.start : sl.stop].any():
            raise PartitionMismatchError(f"slices for {name!r} overlap at [{sl.start}, {sl.stop})")
        covered[sl.start : sl.stop] = True

        dst = sl.target
        if dst.ndim != src.ndim or dst.shape[:-1] != src.shape[:-1] or dst.shape[-1] < sl.size:
            raise ShapeMismatchError(
                f"target of shape {dst.shape} cannot hold samples [{sl.start}, {sl.stop}) "
                f"of {name!r} with shape {src.shape}"
            )


def _load_general(
    tensors: tuple[np.ndarray, ...],
    names: tuple[str, ...],
    targets: SliceTargets,
    *,
    kind: str,
) -> None:
    if len(targets) != len(tensors):
        raise PartitionMismatchError(f"expected {len(tensors)} {kind} target lists, got {len(targets)}")

    # Validate every tensor first so a bad descriptor leaves all targets untouched.
    for src, name, slices in zip(tensors, names, targets):
        _check_slices(src, name, slices)
    for src, slices in zip(tensors, targets):
        for sl in slices:
            sl.target[..., : sl.size] = src[..., sl.start : sl.stop]
