from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import numpy as np
from safetensors.numpy import load_file

from jax_data_provider.adapters.right.data_providers.array_provider import ArrayDataProvider
from jax_data_provider.core.domain.commands.provider import ArrayProviderConfig
from jax_data_provider.core.domain.errors.provider import NameNotFoundError


def load_named_arrays(path: str | Path) -> dict[str, np.ndarray]:
    """Read every array stored in a `.npz` or `.safetensors` file.

    Convert raw data to one of these formats once, then iterate it in memory.
    """

    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".npz":
        with np.load(p) as data:
            return {k: np.asarray(data[k]) for k in data.files}
    if suffix == ".safetensors":
        return dict(load_file(str(p)))
    raise ValueError(f"unsupported array file {p.name!r}: expected .npz or .safetensors")


def array_provider_from_file(
    path: str | Path,
    *,
    data_names: Sequence[str],
    label_names: Sequence[str] = (),
    config: ArrayProviderConfig | None = None,
) -> ArrayDataProvider:
    """Build an `ArrayDataProvider` over selected arrays of a file (samples on the last axis)."""

    arrays = load_named_arrays(path)

    def pick(names: Sequence[str]) -> list[tuple[str, np.ndarray]]:
        out = []
        for name in names:
            if name not in arrays:
                raise NameNotFoundError(name, tuple(arrays))
            out.append((name, arrays[name]))
        return out

    label = pick(label_names)
    return ArrayDataProvider(pick(data_names), label or None, config=config)
