from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import tensorflow as tf
import tensorflow_datasets as tfds

from jax_data_provider.core.domain.commands.provider import NativeIteratorConfig
from jax_data_provider.core.domain.entities.base import StreamSpec
from jax_data_provider.core.ports.native_iterator import NativeIteratorPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TfdsIteratorConfig(NativeIteratorConfig):
    name: str = "mnist"
    split: str = "train"
    data_dir: str = "/tmp/tfds"
    image_normalize_0_1: bool = True
    shuffle_buffer: int = 10_000


class TfdsNativeIterator(NativeIteratorPort):
    """TFDS-backed native iterator.

    Uses TFDS + tf.data for decoding, sharding, shuffling, batching and
    prefetching, then hands out batch-last NumPy arrays. The arrays are
    replaced (not overwritten) on every `iter_next()`.
    """

    def __init__(self, config: TfdsIteratorConfig) -> None:
        self._cfg = config
        ds, info = tfds.load(
            name=config.name,
            split=config.split,
            data_dir=config.data_dir,
            as_supervised=True,
            with_info=True,
        )
        if config.num_parts > 1:
            ds = ds.shard(num_shards=config.num_parts, index=config.part_index)
        self._tf_ds = ds

        # input shape from features; for images, it's (H, W, C)
        image_shape = tuple(int(d) for d in info.features["image"].shape)
        self._data_specs = (StreamSpec(config.data_name, image_shape),)
        self._label_specs = (StreamSpec(config.label_name, ()),)

        self._epoch = 0
        self._it = None
        self._head: tuple[np.ndarray, np.ndarray] | None = None
        self._data: np.ndarray | None = None
        self._label: np.ndarray | None = None
        self._pad = 0

    @property
    def batch_size(self) -> int:
        return self._cfg.batch_size

    def provide_data(self) -> tuple[StreamSpec, ...]:
        return self._data_specs

    def provide_label(self) -> tuple[StreamSpec, ...]:
        return self._label_specs

    def _preprocess(self, image, label):
        if self._cfg.image_normalize_0_1:
            image = tf.cast(image, tf.float32) / 255.0
        return image, label

    def _pipeline(self) -> tf.data.Dataset:
        ds = self._tf_ds.map(self._preprocess, num_parallel_calls=tf.data.AUTOTUNE)
        if self._cfg.shuffle:
            ds = ds.shuffle(self._cfg.shuffle_buffer, seed=self._cfg.seed + self._epoch)
        ds = ds.batch(self._cfg.batch_size)
        if self._cfg.prefetch_buffer > 0:
            ds = ds.prefetch(self._cfg.prefetch_buffer)
        return ds

    def before_first(self) -> None:
        self._epoch += 1
        self._it = iter(tfds.as_numpy(self._pipeline()))
        self._head = None
        self._data = self._label = None
        self._pad = 0
        logger.debug("tfds iterator %s[%s] rewound (epoch %d)", self._cfg.name, self._cfg.split, self._epoch)

    def iter_next(self) -> bool:
        if self._it is None:
            self.before_first()
        try:
            x, y = next(self._it)
        except StopIteration:
            self._data = self._label = None
            return False

        x, y = np.asarray(x), np.asarray(y)
        if self._head is None:
            self._head = (x, y)

        self._pad = self._cfg.batch_size - x.shape[0]
        x, y = self._fill(x, self._head[0]), self._fill(y, self._head[1])
        # tf.data batches are batch-major; move the batch axis last.
        self._data = np.moveaxis(x, 0, -1)
        self._label = np.moveaxis(y, 0, -1)
        return True

    def _fill(self, arr: np.ndarray, head: np.ndarray) -> np.ndarray:
        missing = self._cfg.batch_size - arr.shape[0]
        if missing == 0:
            return arr
        if self._cfg.round_batch:
            filler = head[np.arange(missing) % head.shape[0]]
        else:
            filler = np.zeros((missing, *arr.shape[1:]), dtype=arr.dtype)
        return np.concatenate([arr, filler.astype(arr.dtype)], axis=0)

    def get_data(self) -> list[np.ndarray]:
        if self._data is None:
            raise RuntimeError("no current batch; call iter_next() first")
        return [self._data]

    def get_label(self) -> list[np.ndarray]:
        if self._label is None:
            raise RuntimeError("no current batch; call iter_next() first")
        return [self._label]

    def get_pad(self) -> int:
        return self._pad
