"""
Tests for the t-SNE estimator.
"""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import logging

import numpy as np
import pytest
import torch
from sklearn.metrics import silhouette_score
from torch.testing import assert_close

from torchsne import (
    TSNE,
    CancelledError,
    CSRMatrix,
    UnsupportedConfigurationError,
)
from torchsne.affinity import (
    EntropicAffinity,
    KNNEntropicAffinity,
    ThresholdEntropicAffinity,
)
from torchsne.tests.utils import blobs_dataset, toy_dataset

DEVICE = "cpu"


class RecordingTSNE(TSNE):
    """Records quantities along the optimization."""

    def on_training_step_start(self):
        super().on_training_step_start()
        self.masses_ = getattr(self, "masses_", [])
        self.masses_.append(float(self.affinity_in_.sum()))

    def on_training_step_end(self):
        super().on_training_step_end()
        self.means_ = getattr(self, "means_", [])
        self.means_.append(self.embedding_.detach().mean(dim=0).clone())
        self.momenta_ = getattr(self, "momenta_", [])
        self.momenta_.append(self.optimizer_.param_groups[0]["momentum"])


def test_two_clusters_exact():
    X = np.array([[0.0, 0.0], [0.1, 0.0], [10.0, 10.0], [10.1, 10.0]])

    model = TSNE(
        perplexity=2, theta=0, max_iter=100, random_state=0, device=DEVICE
    )
    Y = model.fit_transform(X)

    assert isinstance(Y, np.ndarray)
    assert Y.shape == (4, 2)
    within = max(np.linalg.norm(Y[0] - Y[1]), np.linalg.norm(Y[2] - Y[3]))
    across = min(np.linalg.norm(Y[i] - Y[j]) for i in (0, 1) for j in (2, 3))
    assert within < across


@pytest.mark.parametrize("theta", [0.0, 0.5])
def test_embedding_stays_centered(theta):
    X, _ = toy_dataset(60, "float64")

    model = RecordingTSNE(
        perplexity=10, theta=theta, max_iter=30, random_state=0, device=DEVICE
    )
    model.fit_transform(X)

    assert len(model.means_) == 30
    for mean in model.means_:
        assert_close(mean, torch.zeros(2, dtype=torch.float64), atol=1e-9, rtol=0)


@pytest.mark.parametrize("theta", [0.0, 0.5])
def test_early_exaggeration_and_momentum_schedule(theta):
    X, _ = toy_dataset(50, "float64")

    model = RecordingTSNE(
        perplexity=10,
        theta=theta,
        max_iter=12,
        early_exaggeration_iter=5,
        momentum_switch_iter=5,
        random_state=0,
        device=DEVICE,
    )
    model.fit_transform(X)

    # the affinity is divided back after the update of iteration 5
    assert model.masses_[:6] == pytest.approx([12.0] * 6, rel=1e-5)
    assert model.masses_[6:] == pytest.approx([1.0] * 6, rel=1e-5)
    assert model.momenta_[:5] == [0.5] * 5
    assert model.momenta_[5:] == [0.8] * 7


def test_barnes_hut_separates_clusters():
    X, y = blobs_dataset(150, n_features=5, dtype="float64")

    model = TSNE(
        perplexity=10,
        theta=0.5,
        max_iter=200,
        early_exaggeration_iter=100,
        momentum_switch_iter=100,
        random_state=0,
        device=DEVICE,
    )
    Y = model.fit_transform(X)

    assert np.isfinite(Y).all()
    assert silhouette_score(Y, y) > 0.2
    assert isinstance(model.affinity_in, KNNEntropicAffinity)


@pytest.mark.parametrize("dtype", ["float32", "float64"])
def test_backend_and_dtype_are_kept(dtype):
    X, _ = toy_dataset(40, dtype)

    Y = TSNE(perplexity=5, theta=0, max_iter=10, device=DEVICE).fit_transform(X)
    assert isinstance(Y, np.ndarray)
    assert Y.dtype == np.dtype(dtype)

    Y = TSNE(perplexity=5, max_iter=10, device=DEVICE).fit_transform(
        torch.from_numpy(X)
    )
    assert isinstance(Y, torch.Tensor)
    assert Y.dtype == getattr(torch, dtype)
    assert not Y.requires_grad


def test_output_buffer():
    X, _ = toy_dataset(40, "float64")

    out = np.zeros((40, 2))
    Y = TSNE(perplexity=5, max_iter=20, random_state=0).fit_transform(X, out=out)
    np.testing.assert_array_equal(out, Y)
    assert np.abs(out).sum() > 0

    out = torch.zeros(40, 2, dtype=torch.float64)
    Y = TSNE(perplexity=5, max_iter=20, random_state=0).fit_transform(
        torch.from_numpy(X), out=out
    )
    assert_close(out, Y)

    with pytest.raises(ValueError):
        TSNE(perplexity=5, max_iter=20).fit_transform(X, out=np.zeros((40, 3)))


def test_cancel():
    X, _ = toy_dataset(30, "float64")
    calls = []

    def cancel():
        calls.append(1)
        return True

    model = TSNE(perplexity=5, max_iter=20, cancel=cancel)
    with pytest.raises(CancelledError):
        model.fit_transform(X)
    assert len(calls) == 1
    assert not model.is_fitted_

    Y = TSNE(perplexity=5, max_iter=20, cancel=lambda: False).fit_transform(X)
    assert Y.shape == (30, 2)


def test_invalid_configurations():
    with pytest.raises(UnsupportedConfigurationError):
        TSNE(theta=0, metric="manhattan")
    with pytest.raises(UnsupportedConfigurationError):
        TSNE(threshold=1.0, metric="chebyshev")
    with pytest.raises(UnsupportedConfigurationError):
        TSNE(metric="cosine")
    with pytest.raises(ValueError):
        TSNE(theta=-0.1)
    with pytest.raises(ValueError, match="check_interval"):
        TSNE(check_interval=0)
    with pytest.raises(ValueError, match="check_interval"):
        TSNE(theta=0, check_interval=-5)
    with pytest.raises(ValueError):
        TSNE(init="pca").fit_transform(toy_dataset(20, "float64")[0])
    with pytest.raises(ValueError):
        TSNE(init=np.zeros((5, 2))).fit_transform(toy_dataset(20, "float64")[0])


def test_logging(caplog):
    X, _ = toy_dataset(30, "float64")
    logger = logging.getLogger("test_tsne_logging")
    logger.setLevel(logging.INFO)

    model = TSNE(
        perplexity=5, theta=0, max_iter=100, check_interval=50, logger=logger
    )
    with caplog.at_level(logging.INFO, logger="test_tsne_logging"):
        model.fit_transform(X)

    assert "Input similarities computation took" in caplog.text
    assert "Main t-SNE loop took" in caplog.text
    assert "Iteration 50: error is" in caplog.text
    assert "Iteration 99: error is" in caplog.text
    assert "Iteration 0:" not in caplog.text
    assert [step for step, _ in model.history_] == [50, 99]
    assert model.kl_divergence_ == model.history_[-1][1]
    assert model.n_iter_ == 100
    assert model.affinity_in.logger is logger


def test_modes():
    assert isinstance(TSNE(theta=0).affinity_in, EntropicAffinity)
    assert isinstance(TSNE(threshold=1.0).affinity_in, ThresholdEntropicAffinity)
    assert isinstance(TSNE().affinity_in, KNNEntropicAffinity)
    assert TSNE(theta=0).exact
    assert not TSNE().exact


def test_threshold_mode():
    X, _ = toy_dataset(60, "float64")

    model = RecordingTSNE(perplexity=10, threshold=1.0, max_iter=20, random_state=0)
    Y = model.fit_transform(X)

    assert Y.shape == (60, 2)
    assert np.isfinite(Y).all()
    assert model.masses_[0] == pytest.approx(12.0, rel=1e-5)


def test_three_dimensional_embedding():
    X, _ = toy_dataset(50, "float64")

    Y = TSNE(perplexity=5, n_components=3, max_iter=20).fit_transform(X)

    assert Y.shape == (50, 3)
    assert np.isfinite(Y).all()


def test_reproducibility():
    X, _ = toy_dataset(40, "float64")

    Y1 = TSNE(perplexity=5, max_iter=30, random_state=3).fit_transform(X)
    Y2 = TSNE(perplexity=5, max_iter=30, random_state=3).fit_transform(X)

    np.testing.assert_allclose(Y1, Y2)


def test_init_is_returned_without_iterations():
    X, _ = toy_dataset(20, "float64")
    init = np.random.randn(20, 2)

    Y = TSNE(perplexity=5, max_iter=0, init=init).fit_transform(X)

    np.testing.assert_allclose(Y, init)


def test_memory_is_released():
    X, _ = toy_dataset(30, "float64")

    model = TSNE(perplexity=5, max_iter=10)
    model.fit(X)

    assert not hasattr(model, "affinity_in_")
    assert not hasattr(model, "optimizer_")
    assert model.transform().shape == (30, 2)
    with pytest.raises(NotImplementedError):
        model.transform(X)


def test_sparse_affinity_is_kept_in_csr_format():
    X, _ = toy_dataset(40, "float64")

    class Inspect(TSNE):
        def on_affinity_computation_end(self):
            self.affinity_type_ = type(self.affinity_in_)
            return super().on_affinity_computation_end()

    model = Inspect(perplexity=5, max_iter=5)
    model.fit_transform(X)
    assert model.affinity_type_ is CSRMatrix


def test_get_params():
    model = TSNE(perplexity=7, theta=0.3, max_iter=10)
    params = model.get_params()

    assert params["perplexity"] == 7
    assert params["theta"] == 0.3
    assert params["max_iter"] == 10
    assert params["n_components"] == 2
