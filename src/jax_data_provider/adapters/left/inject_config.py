from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Optional

import inject

from jax_data_provider.core.ports.batch_consumer import BatchConsumerPort
from jax_data_provider.core.ports.data_provider import DataProviderPort
from jax_data_provider.core.ports.metrics_sink import MetricsSinkPort
from jax_data_provider.core.use_cases.feed_devices import DataParallelFeedUseCase


# pylint: disable=invalid-name
def get_dependencies_injection_config(
    *,
    data_provider: DataProviderPort,
    batch_consumer: BatchConsumerPort,
    metrics_sink: Optional[MetricsSinkPort] = None,
    devices: Optional[Sequence[Any]] = None,
):
    """Return an inject binder function for the feeding runtime."""

    def configure_dependencies_injection(binder: inject.Binder) -> None:
        binder.bind(DataProviderPort, data_provider)
        binder.bind(BatchConsumerPort, batch_consumer)
        if metrics_sink is not None:
            binder.bind(MetricsSinkPort, metrics_sink)

        # Bind the use case as a fully-wired object.
        binder.bind(
            DataParallelFeedUseCase,
            DataParallelFeedUseCase(
                data_provider=data_provider,
                batch_consumer=batch_consumer,
                metrics_sink=metrics_sink,
                devices=devices,
            ),
        )

    return configure_dependencies_injection


def configure_injections(
    *,
    data_provider: DataProviderPort,
    batch_consumer: BatchConsumerPort,
    metrics_sink: Optional[MetricsSinkPort] = None,
    devices: Optional[Sequence[Any]] = None,
) -> None:
    """Configure inject with this app's runtime bindings.

    Safe to call multiple times (clears previous bindings).
    """

    config = get_dependencies_injection_config(
        data_provider=data_provider,
        batch_consumer=batch_consumer,
        metrics_sink=metrics_sink,
        devices=devices,
    )

    if inject.is_configured():
        inject.clear_and_configure(config)
    else:
        inject.configure(config)
