from __future__ import annotations

import jax
import numpy as np


def fold_in_step(key: jax.Array, step: int) -> jax.Array:
    """Derive a deterministic per-step key."""

    return jax.random.fold_in(key, step)


def epoch_permutation(*, seed: int, epoch: int, num_samples: int) -> np.ndarray:
    """Random sample order for one epoch, reproducible from (seed, epoch)."""

    key = fold_in_step(jax.random.PRNGKey(seed), epoch)
    return np.asarray(jax.random.permutation(key, num_samples), dtype=np.int64)
