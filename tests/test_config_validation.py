from __future__ import annotations

import pytest

from jax_data_provider.core.domain.commands.feed import FeedCommand
from jax_data_provider.core.domain.commands.provider import ArrayProviderConfig, NativeIteratorConfig


def test_array_provider_config_defaults() -> None:
    cfg = ArrayProviderConfig()
    assert cfg.batch_size == 0
    assert cfg.shuffle is False
    assert cfg.padding == "scalar"
    assert cfg.data_padding == 0.0 and cfg.label_padding == 0.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"batch_size": -1},
        {"padding": "wrap"},
    ],
)
def test_array_provider_config_rejects_bad_values(kwargs) -> None:
    with pytest.raises(ValueError):
        ArrayProviderConfig(**kwargs)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"batch_size": 0},
        {"num_parts": 0},
        {"num_parts": 2, "part_index": 2},
        {"part_index": -1},
        {"prefetch_buffer": -1},
    ],
)
def test_native_iterator_config_rejects_bad_values(kwargs) -> None:
    with pytest.raises(ValueError):
        NativeIteratorConfig(**kwargs)


def test_native_iterator_config_names() -> None:
    cfg = NativeIteratorConfig(num_parts=4, part_index=3)
    assert cfg.data_name == "data"
    assert cfg.label_name == "softmax_label"


def test_feed_command_rejects_bad_values() -> None:
    with pytest.raises(ValueError):
        FeedCommand(epochs=0)
    with pytest.raises(ValueError):
        FeedCommand(num_devices=-1)
    with pytest.raises(ValueError):
        FeedCommand(log_every_steps=0)
