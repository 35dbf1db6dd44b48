from __future__ import annotations

import logging
import os
from typing import Optional

import inject
import typer

# Default to CPU unless explicitly overridden by the user.
# This avoids noisy CUDA plugin initialization errors on machines without CUDA libraries.
os.environ.setdefault("JAX_PLATFORMS", "cpu")

from jax_data_provider.adapters.left.inject_config import configure_injections
from jax_data_provider.adapters.right.batch_consumers import SummaryBatchConsumer
from jax_data_provider.adapters.right.data_providers.array_files import array_provider_from_file
from jax_data_provider.adapters.right.data_providers.native_provider import NativeIteratorDataProvider
from jax_data_provider.adapters.right.metrics_sinks import CompositeMetricsSink, JsonlFileMetricsSink, StdoutMetricsSink
from jax_data_provider.core.domain.commands.feed import FeedCommand
from jax_data_provider.core.domain.commands.provider import ArrayProviderConfig
from jax_data_provider.core.domain.entities.dataset import ProviderInfo
from jax_data_provider.core.domain.errors.provider import DataProviderError
from jax_data_provider.core.ports.data_provider import DataProviderPort
from jax_data_provider.core.use_cases.feed_devices import DataParallelFeedUseCase

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _build_provider(
    *,
    source: str,
    path: str,
    data_names: Optional[list[str]],
    label_names: Optional[list[str]],
    batch_size: int,
    shuffle: bool,
    seed: int,
    padding: str,
    data_padding: float,
    label_padding: float,
    tfds_name: str,
    tfds_split: str,
    tfds_data_dir: str,
    part_index: int,
    num_parts: int,
) -> DataProviderPort:
    source = source.lower().strip()

    if source in {"npz", "safetensors"}:
        if not path:
            raise typer.BadParameter("--path is required when source is npz or safetensors")
        try:
            config = ArrayProviderConfig(
                batch_size=batch_size,
                shuffle=shuffle,
                seed=seed,
                padding=padding,
                data_padding=data_padding,
                label_padding=label_padding,
            )
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
        try:
            return array_provider_from_file(
                path,
                data_names=data_names or ["data"],
                label_names=label_names or [],
                config=config,
            )
        except (DataProviderError, ValueError) as exc:
            raise typer.BadParameter(str(exc)) from exc

    if source == "tfds":
        try:
            from jax_data_provider.adapters.right.native_iterators.tfds_iterator import (
                TfdsIteratorConfig,
                TfdsNativeIterator,
            )
        except ImportError as exc:  # pragma: no cover - optional extra
            raise typer.BadParameter(
                "TFDS support is not installed. Install with `pip install jax-data-provider[tfds]`."
            ) from exc

        if batch_size < 1:
            raise typer.BadParameter("--batch-size must be >= 1 for tfds")
        try:
            config = TfdsIteratorConfig(
                name=tfds_name,
                split=tfds_split,
                data_dir=tfds_data_dir,
                batch_size=batch_size,
                shuffle=shuffle,
                seed=seed,
                part_index=part_index,
                num_parts=num_parts,
            )
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
        return NativeIteratorDataProvider(TfdsNativeIterator(config))

    raise typer.BadParameter("source must be one of: npz, safetensors, tfds")


@app.command()
def describe(
    source: str = typer.Option("npz", help="Data source: npz | safetensors | tfds"),
    path: str = typer.Option("", help="Array file (when source is npz or safetensors)"),
    data_name: Optional[list[str]] = typer.Option(None, help="Repeatable data array names: --data-name x --data-name mask"),
    label_name: Optional[list[str]] = typer.Option(None, help="Repeatable label array names (omit for inference data)"),
    batch_size: int = typer.Option(32, min=0, help="0 = the whole dataset is one batch (array sources)"),
    tfds_name: str = typer.Option("mnist", help="TFDS dataset name (when source=tfds)"),
    tfds_split: str = typer.Option("train", help="TFDS split (when source=tfds)"),
    tfds_data_dir: str = typer.Option("/tmp/tfds", help="TFDS cache directory (when source=tfds)"),
) -> None:
    """Print the batch size and the data/label streams a source declares."""

    provider = _build_provider(
        source=source,
        path=path,
        data_names=data_name,
        label_names=label_name,
        batch_size=batch_size,
        shuffle=False,
        seed=0,
        padding="scalar",
        data_padding=0.0,
        label_padding=0.0,
        tfds_name=tfds_name,
        tfds_split=tfds_split,
        tfds_data_dir=tfds_data_dir,
        part_index=0,
        num_parts=1,
    )
    info = ProviderInfo.from_provider(provider)
    typer.echo(f"batch_size: {info.batch_size}")
    if info.num_samples is not None:
        typer.echo(f"num_samples: {info.num_samples}")
    for s in info.data:
        typer.echo(f"data  {s.name}: {s.shape}")
    for s in info.label:
        typer.echo(f"label {s.name}: {s.shape}")


@app.command()
def inspect(
    source: str = typer.Option("npz", help="Data source: npz | safetensors | tfds"),
    path: str = typer.Option("", help="Array file (when source is npz or safetensors)"),
    data_name: Optional[list[str]] = typer.Option(None, help="Repeatable data array names: --data-name x --data-name mask"),
    label_name: Optional[list[str]] = typer.Option(None, help="Repeatable label array names (omit for inference data)"),
    batch_size: int = typer.Option(32, min=0, help="0 = the whole dataset is one batch (array sources)"),
    shuffle: bool = typer.Option(False, "--shuffle/--no-shuffle"),
    seed: int = typer.Option(0),
    padding: str = typer.Option("scalar", help="Final-batch padding for array sources: scalar | rollover"),
    data_padding: float = typer.Option(0.0, help="Fill value for scalar padding of data"),
    label_padding: float = typer.Option(0.0, help="Fill value for scalar padding of labels"),
    tfds_name: str = typer.Option("mnist", help="TFDS dataset name (when source=tfds)"),
    tfds_split: str = typer.Option("train", help="TFDS split (when source=tfds)"),
    tfds_data_dir: str = typer.Option("/tmp/tfds", help="TFDS cache directory (when source=tfds)"),
    part_index: int = typer.Option(0, min=0, help="Shard to read (when source=tfds)"),
    num_parts: int = typer.Option(1, min=1, help="Number of shards (when source=tfds)"),
    epochs: int = typer.Option(1, min=1),
    num_devices: int = typer.Option(0, min=0, help="Devices to split each batch across (0 = all visible)"),
    log_every_steps: int = typer.Option(100, min=1),
    log_path: str = typer.Option(
        "",
        help="If set, append metrics/events as JSONL to this path (e.g. logs/feed.jsonl)",
    ),
    verbose: bool = typer.Option(False, "--verbose/--quiet", help="Enable debug logging"),
) -> None:
    """Iterate a source for some epochs, splitting each batch across devices."""

    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)

    provider = _build_provider(
        source=source,
        path=path,
        data_names=data_name,
        label_names=label_name,
        batch_size=batch_size,
        shuffle=shuffle,
        seed=seed,
        padding=padding,
        data_padding=data_padding,
        label_padding=label_padding,
        tfds_name=tfds_name,
        tfds_split=tfds_split,
        tfds_data_dir=tfds_data_dir,
        part_index=part_index,
        num_parts=num_parts,
    )

    stdout_metrics = StdoutMetricsSink()
    metrics = (
        CompositeMetricsSink(stdout_metrics, JsonlFileMetricsSink(path=log_path))
        if log_path
        else stdout_metrics
    )
    consumer = SummaryBatchConsumer()

    configure_injections(data_provider=provider, batch_consumer=consumer, metrics_sink=metrics)
    use_case = inject.instance(DataParallelFeedUseCase)

    metrics.log(
        step=0,
        metrics={
            "event": "run_start",
            "command": "inspect",
            "source": source,
            "batch_size": provider.get_batch_size(),
            "shuffle": shuffle,
            "padding": padding,
            "epochs": epochs,
        },
    )

    try:
        result = use_case.run(
            FeedCommand(epochs=epochs, num_devices=num_devices, log_every_steps=log_every_steps)
        )
    except DataProviderError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo("Feeding complete")
    typer.echo(f"Final epoch summary: {result.history[-1] if result.history else {}}")
    typer.echo(f"Samples consumed: {consumer.total_samples}")
