import numpy as np
import pytest

from naa.sdr import (
    calc_array_similarity,
    create_random_sdr,
    indexes_with_non_zeros,
    stringify_vector,
)


@pytest.mark.parametrize(
    "num_cells, sparsity",
    [(1024, 0.02), (2048, 0.02), (10000, 0.03), (10000, 0.05)],
)
def test_create_random_sdr_size(num_cells, sparsity):
    sdr = create_random_sdr(num_cells, sparsity, np.random.default_rng(42))

    assert len(sdr) == int(num_cells * sparsity)
    assert len(set(sdr.tolist())) == len(sdr)
    assert list(sdr) == sorted(sdr)
    assert sdr.min() >= 0
    assert sdr.max() < num_cells


def test_create_random_sdr_reproducible_with_seed():
    first = create_random_sdr(1024, 0.02, np.random.default_rng(5))
    second = create_random_sdr(1024, 0.02, np.random.default_rng(5))
    assert np.array_equal(first, second)


def test_create_random_sdr_rejects_invalid_arguments():
    with pytest.raises(ValueError):
        create_random_sdr(0, 0.1)
    with pytest.raises(ValueError):
        create_random_sdr(100, 1.5)


@pytest.mark.parametrize(
    "first, second, expected",
    [
        ([0, 0, 0, 0, 1, 1, 1, 1, 0, 0, 0, 0, 0], [0, 0, 0, 0, 1, 1, 1, 1, 0, 0, 0, 0, 0], 100.0),
        ([0, 0, 0, 0, 1, 1, 1, 1, 0, 0], [0, 0, 0, 0, 0, 1, 1, 1, 0, 0], 75.0),
        ([0, 0, 0, 0, 1, 1, 1, 1, 0, 0], [0, 0, 0, 0, 0, 1, 1, 1, 1, 0], 75.0),
        ([0, 0, 0, 0, 1, 1, 1, 1, 0, 0], [0, 0, 0, 0, 0, 0, 0, 1, 1, 0], 25.0),
        ([0, 0, 0, 0, 1, 1, 1, 1, 0, 0], [0, 0, 0, 0, 0, 0, 0, 1, 0, 0], 25.0),
        ([0, 0, 0, 0, 1, 1, 1, 1, 0, 0], [0, 0, 0, 0, 0, 0, 0, 0, 1, 0], 0.0),
    ],
)
def test_scalar_similarities(first, second, expected):
    similarity = calc_array_similarity(indexes_with_non_zeros(first), indexes_with_non_zeros(second))
    assert similarity == expected


def test_similarity_of_empty_sets_is_zero():
    assert calc_array_similarity([], []) == 0.0


def test_indexes_with_non_zeros_and_stringify():
    indices = indexes_with_non_zeros(np.array([0, 3, 0, 1]))
    assert indices.tolist() == [1, 3]
    assert stringify_vector(indices) == "1, 3"
