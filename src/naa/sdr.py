"""Helpers for sparse distributed representations given as active indices."""

from typing import Iterable, Sequence

import numpy as np


def create_random_sdr(
    num_cells: int,
    sparsity: float,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """Return `int(num_cells * sparsity)` distinct random indices, sorted ascending."""
    if num_cells <= 0:
        raise ValueError("num_cells must be positive.")
    if not 0.0 <= sparsity <= 1.0:
        raise ValueError("sparsity must be within [0, 1].")
    rng = rng if rng is not None else np.random.default_rng()
    num_active = int(num_cells * sparsity)
    return np.sort(rng.choice(num_cells, size=num_active, replace=False)).astype(np.int64)


def indexes_with_non_zeros(vector: Sequence[int] | np.ndarray) -> np.ndarray:
    """Converts a dense activity vector to an activation list."""
    return np.flatnonzero(np.asarray(vector))


def calc_array_similarity(first: Iterable[int], second: Iterable[int]) -> float:
    """Return the overlap of two index sets in percent of the larger set."""
    a = set(int(i) for i in first)
    b = set(int(i) for i in second)
    denominator = max(len(a), len(b))
    if denominator == 0:
        return 0.0
    return len(a & b) / denominator * 100.0


def stringify_vector(vector: Iterable) -> str:
    return ", ".join(str(v) for v in vector)
