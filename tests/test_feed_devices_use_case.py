from __future__ import annotations

import os

# Ensure tests run on CPU-only machines even if JAX is installed with CUDA extras.
os.environ.setdefault("JAX_PLATFORMS", "cpu")

from typing import Any

import jax
import numpy as np
import pytest

from jax_data_provider.adapters.right.batch_consumers import SummaryBatchConsumer
from jax_data_provider.adapters.right.data_providers.array_provider import ArrayDataProvider
from jax_data_provider.core.domain.commands.feed import FeedCommand
from jax_data_provider.core.domain.commands.provider import ArrayProviderConfig
from jax_data_provider.core.domain.errors.provider import DataProviderError
from jax_data_provider.core.use_cases.feed_devices import DataParallelFeedUseCase


class _ListMetricsSink:
    def __init__(self) -> None:
        self.records: list[tuple[int, dict[str, Any]]] = []

    def log(self, *, step: int, metrics: dict[str, Any]) -> None:
        self.records.append((step, dict(metrics)))


def _cpu_devices(n: int) -> list[Any]:
    # A single CPU device listed twice is enough to exercise the split.
    return [jax.devices("cpu")[0]] * n


def test_feed_splits_each_batch_across_devices() -> None:
    x = np.arange(3 * 17, dtype=np.float32).reshape(3, 17)
    y = np.arange(17, dtype=np.int32)
    provider = ArrayDataProvider(x, y, config=ArrayProviderConfig(batch_size=5))
    consumer = SummaryBatchConsumer(keep_shards=True)
    metrics = _ListMetricsSink()

    use_case = DataParallelFeedUseCase(
        data_provider=provider,
        batch_consumer=consumer,
        metrics_sink=metrics,
        devices=_cpu_devices(2),
    )
    result = use_case.run(FeedCommand(epochs=2, log_every_steps=3))

    assert result.global_step == 8
    assert [h["samples"] for h in result.history] == [17, 17]
    assert [h["batches"] for h in result.history] == [4, 4]
    assert [h["padded_samples"] for h in result.history] == [3, 3]

    first_step = consumer.shards[0]
    assert [s.sample_range for s in first_step] == [range(0, 3), range(3, 5)]
    assert first_step[0].data["data"].shape == (3, 3)
    assert first_step[1].data["data"].shape == (3, 2)
    assert first_step[1].label["softmax_label"].dtype == np.int32
    np.testing.assert_array_equal(np.asarray(first_step[1].data["data"]), x[:, 3:5])

    # Last batch of an epoch holds samples 15 and 16 only.
    last_step = consumer.shards[3]
    assert [s.sample_count for s in last_step] == [2, 0]

    assert consumer.total_samples == 34
    assert consumer.records[0]["data_sum"] == pytest.approx(float(x[:, :5].sum()))

    epoch_logs = [m for _, m in metrics.records if "epoch" in m]
    assert [m["epoch"] for m in epoch_logs] == [1, 2]
    assert any("feed/samples" in m for _, m in metrics.records)


def test_feed_without_labels() -> None:
    provider = ArrayDataProvider(np.ones((2, 6), dtype=np.float32), config=ArrayProviderConfig(batch_size=3))
    consumer = SummaryBatchConsumer(keep_shards=True)
    result = DataParallelFeedUseCase(
        data_provider=provider, batch_consumer=consumer, devices=_cpu_devices(1)
    ).run(FeedCommand())

    assert result.history[-1]["samples"] == 6
    assert all(shard.label == {} for step in consumer.shards for shard in step)


def test_feed_rejects_more_devices_than_available() -> None:
    provider = ArrayDataProvider(np.ones((1, 4)), config=ArrayProviderConfig(batch_size=2))
    use_case = DataParallelFeedUseCase(
        data_provider=provider, batch_consumer=SummaryBatchConsumer(), devices=_cpu_devices(1)
    )
    with pytest.raises(DataProviderError):
        use_case.run(FeedCommand(num_devices=2))
