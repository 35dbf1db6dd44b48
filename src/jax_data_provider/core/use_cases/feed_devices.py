from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import jax

from jax_data_provider.core.domain.commands.feed import FeedCommand
from jax_data_provider.core.domain.entities.base import Batch
from jax_data_provider.core.domain.entities.dataset import ProviderInfo
from jax_data_provider.core.domain.errors.provider import DataProviderError
from jax_data_provider.core.domain.utils.iteration import each_batch
from jax_data_provider.core.domain.utils.slicing import allocate_slice_targets, shard_sample_count, split_ranges
from jax_data_provider.core.ports.batch_consumer import BatchConsumerPort, DeviceShard
from jax_data_provider.core.ports.data_provider import DataProviderPort
from jax_data_provider.core.ports.metrics_sink import MetricsSinkPort


@dataclass(frozen=True)
class FeedResult:
    history: list[dict[str, Any]]
    global_step: int


class DataParallelFeedUseCase:
    """Stream every batch of a provider onto a set of JAX devices.

    Each batch is split into contiguous sample ranges (one per device),
    copied into per-device host buffers with `Batch.load_data` /
    `Batch.load_label`, placed with `jax.device_put` and handed to the
    batch consumer.
    """

    def __init__(
        self,
        *,
        data_provider: DataProviderPort,
        batch_consumer: BatchConsumerPort,
        metrics_sink: MetricsSinkPort | None = None,
        devices: Sequence[Any] | None = None,
    ) -> None:
        self._provider = data_provider
        self._consumer = batch_consumer
        self._metrics = metrics_sink
        self._devices = list(devices) if devices is not None else None

    def _select_devices(self, command: FeedCommand) -> list[Any]:
        devices = self._devices if self._devices is not None else list(jax.devices())
        if command.num_devices:
            if command.num_devices > len(devices):
                raise DataProviderError(f"requested {command.num_devices} devices but only {len(devices)} are available")
            devices = devices[: command.num_devices]
        if not devices:
            raise DataProviderError("no devices to feed")
        return devices

    def run(self, command: FeedCommand) -> FeedResult:
        info = ProviderInfo.from_provider(self._provider)
        devices = self._select_devices(command)
        ranges = split_ranges(info.batch_size, len(devices))

        history: list[dict[str, Any]] = []
        global_step = 0

        for epoch in range(1, command.epochs + 1):
            n_batches = 0
            n_samples = 0
            n_padded = 0

            for batch in each_batch(self._provider):
                shards = self._scatter(batch, info, ranges, devices)
                self._consumer.consume(step=global_step, shards=shards)

                global_step += 1
                n_batches += 1
                n_samples += batch.sample_count
                n_padded += batch.num_padding

                if self._metrics and (global_step % command.log_every_steps == 0):
                    self._metrics.log(
                        step=global_step,
                        metrics={"feed/batches": n_batches, "feed/samples": n_samples},
                    )

            if info.num_samples is not None and n_samples != info.num_samples:
                raise DataProviderError(
                    f"epoch {epoch} produced {n_samples} samples, provider declares {info.num_samples}"
                )

            epoch_summary = {
                "epoch": epoch,
                "batches": n_batches,
                "samples": n_samples,
                "padded_samples": n_padded,
                "devices": len(devices),
                "global_step": global_step,
            }
            history.append(epoch_summary)
            if self._metrics:
                self._metrics.log(step=global_step, metrics=epoch_summary)

        return FeedResult(history=history, global_step=global_step)

    def _scatter(
        self,
        batch: Batch,
        info: ProviderInfo,
        ranges: list[range],
        devices: list[Any],
    ) -> list[DeviceShard]:
        data_targets = allocate_slice_targets(info.data, ranges, dtypes=[t.dtype for t in batch.get_data()])
        batch.load_data(data_targets)

        label_targets = allocate_slice_targets(info.label, ranges, dtypes=[t.dtype for t in batch.get_label()])
        if label_targets:
            batch.load_label(label_targets)

        shards = []
        for i, (device, r) in enumerate(zip(devices, ranges)):
            shards.append(
                DeviceShard(
                    device=device,
                    sample_range=r,
                    sample_count=shard_sample_count(batch.sample_count, r),
                    data={s.name: jax.device_put(t[i].target, device) for s, t in zip(info.data, data_targets)},
                    label={s.name: jax.device_put(t[i].target, device) for s, t in zip(info.label, label_targets)},
                )
            )
        return shards
