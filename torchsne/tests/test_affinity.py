"""
Tests for affinity matrices.
"""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import numpy as np
import pytest
import torch
from torch.testing import assert_close

from torchsne import UnsupportedConfigurationError
from torchsne.affinity import (
    EntropicAffinity,
    KNNEntropicAffinity,
    ThresholdEntropicAffinity,
)
from torchsne.distance import LIST_METRICS_TORCH, pairwise_distances
from torchsne.tests.utils import toy_dataset
from torchsne.utils import (
    CSRMatrix,
    binary_search_precision,
    check_nonnegativity,
    check_shape,
    check_symmetry,
    check_total_sum,
)

lst_types = ["float32", "float64"]
DEVICE = "cpu"


@pytest.mark.parametrize("dtype", lst_types)
def test_entropic_affinity(dtype):
    n = 50
    X, _ = toy_dataset(n, dtype)

    affinity = EntropicAffinity(perplexity=10, device=DEVICE)
    P = affinity(X)

    assert isinstance(P, torch.Tensor)
    assert P.dtype == getattr(torch, dtype)
    check_shape(P, (n, n))
    check_nonnegativity(P)
    check_symmetry(P)
    check_total_sum(P, 1)
    check_shape(affinity.beta_, (n,))


@pytest.mark.parametrize("metric", LIST_METRICS_TORCH)
def test_entropic_affinity_metrics(metric):
    n = 40
    X = torch.from_numpy(toy_dataset(n, "float64")[0])
    p = 1 if metric == "manhattan" else 2
    C = torch.cdist(X, X, p=p, compute_mode="donot_use_mm_for_euclid_dist")
    if metric == "sqeuclidean":
        C = C**2

    assert_close(pairwise_distances(X, metric=metric), C, rtol=1e-6, atol=1e-6)

    P = EntropicAffinity(perplexity=10, metric=metric, device=DEVICE)(X)

    P_cond, _ = binary_search_precision(C, 10, self_indices=torch.arange(n))
    expected = P_cond + P_cond.T
    expected /= expected.sum()
    assert_close(P, expected, rtol=1e-3, atol=1e-6)


def test_entropic_affinity_unsupported_metric():
    with pytest.raises(ValueError):
        EntropicAffinity(perplexity=5, metric="cosine")(toy_dataset(20, "float64")[0])


@pytest.mark.parametrize("dtype", lst_types)
def test_knn_entropic_affinity(dtype):
    n = 100
    X, _ = toy_dataset(n, dtype)

    affinity = KNNEntropicAffinity(perplexity=5, device=DEVICE)
    P = affinity(X)

    assert isinstance(P, CSRMatrix)
    assert P.dtype == getattr(torch, dtype)
    assert affinity.n_neighbors_ == 15
    assert n * 15 <= P.nnz <= 2 * n * 15
    check_nonnegativity(P.values)
    check_symmetry(P)
    check_total_sum(P, 1)
    # no self loops
    assert not torch.any(P.row_indices() == P.col_indices)


def test_knn_neighbor_count_is_clipped():
    n = 12
    X, _ = toy_dataset(n, "float64")

    affinity = KNNEntropicAffinity(perplexity=5)
    P = affinity(X)

    assert affinity.n_neighbors_ == n - 1
    assert P.nnz == n * (n - 1)


def test_knn_affinity_with_all_neighbors_matches_dense():
    n = 40
    X, _ = toy_dataset(n, "float64")

    P_dense = EntropicAffinity(perplexity=8)(X)
    P_sparse = KNNEntropicAffinity(perplexity=8, n_neighbors=n - 1)(X)

    P_dense.fill_diagonal_(0)
    assert_close(P_sparse.to_dense(), P_dense, rtol=1e-6, atol=1e-10)


def test_threshold_zero_matches_dense():
    n = 40
    X, _ = toy_dataset(n, "float64")

    P_dense = EntropicAffinity(perplexity=8)(X)
    P_sparse = ThresholdEntropicAffinity(perplexity=8, threshold=0.0, chunk_size=7)(X)

    P_dense.fill_diagonal_(0)
    assert_close(P_sparse.to_dense(), P_dense, rtol=1e-6, atol=1e-10)


@pytest.mark.parametrize("chunk_size", [16, 1000])
def test_threshold_entropic_affinity(chunk_size):
    n = 100
    X, _ = toy_dataset(n, "float64")

    affinity = ThresholdEntropicAffinity(
        perplexity=10, threshold=1.0, chunk_size=chunk_size
    )
    P = affinity(X)

    assert 0 < P.nnz < n * (n - 1)
    check_symmetry(P)
    check_total_sum(P, 1)
    check_shape(affinity.beta_, (n,))


def test_threshold_chunking_does_not_change_result():
    X, _ = toy_dataset(60, "float64")

    P_small = ThresholdEntropicAffinity(perplexity=10, chunk_size=7)(X)
    P_large = ThresholdEntropicAffinity(perplexity=10, chunk_size=100)(X)

    assert torch.equal(P_small.crow_indices, P_large.crow_indices)
    assert torch.equal(P_small.col_indices, P_large.col_indices)
    assert_close(P_small.values, P_large.values)


def test_threshold_too_high():
    X, _ = toy_dataset(30, "float64")
    with pytest.raises(ValueError, match="threshold"):
        ThresholdEntropicAffinity(perplexity=5, threshold=1e6)(X)
    with pytest.raises(ValueError):
        ThresholdEntropicAffinity(threshold=-1)


def test_perplexity_larger_than_neighborhood_warns():
    X, _ = toy_dataset(20, "float64")

    with pytest.warns(UserWarning, match="perplexity"):
        P = KNNEntropicAffinity(perplexity=5, n_neighbors=4)(X)
    check_total_sum(P, 1)

    with pytest.warns(UserWarning, match="perplexity"):
        EntropicAffinity(perplexity=30)(X)


def test_single_sample_raises():
    with pytest.raises(ValueError):
        EntropicAffinity(perplexity=5)(np.zeros((1, 2)))


def test_knn_unsupported_metric():
    with pytest.raises(UnsupportedConfigurationError):
        KNNEntropicAffinity(metric="cosine")


@pytest.mark.parametrize("metric", ["manhattan", "chebyshev"])
def test_knn_other_metrics(metric):
    n = 60
    X, _ = toy_dataset(n, "float64")

    P = KNNEntropicAffinity(perplexity=5, metric=metric)(X)

    check_symmetry(P)
    check_total_sum(P, 1)
