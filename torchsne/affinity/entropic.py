"""Affinity matrices with entropic constraints."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#         Titouan Vayer <titouan.vayer@inria.fr>
#         Rémi Flamary <remi.flamary@polytechnique.edu>
#
# License: BSD 3-Clause License

import warnings
from typing import Callable, Optional, Union

import torch

from torchsne.affinity.base import Affinity, SparseAffinity
from torchsne.exceptions import UnsupportedConfigurationError
from torchsne.spatial import VPTREE_METRICS, VPTree
from torchsne.utils import CSRMatrix, binary_search_precision


def check_perplexity(perplexity, n_neighbors):
    r"""Check the perplexity parameter against the size of the neighborhoods.

    A perplexity that is not smaller than the number of candidate neighbors
    cannot be reached. This is only reported, the calibration then returns
    the flattest kernel it can find.

    Parameters
    ----------
    perplexity : float
        Target perplexity.
    n_neighbors : int
        Number of candidate neighbors of each point.
    """
    if n_neighbors < 1:
        raise ValueError(
            "[TorchSNE] ERROR Affinity: Input has less than two samples : "
            f"n_neighbors = {n_neighbors}."
        )
    if perplexity <= 0:
        raise ValueError(
            "[TorchSNE] ERROR Affinity: The perplexity parameter must be "
            f"positive. Got perplexity = {perplexity}."
        )
    if perplexity >= n_neighbors:
        warnings.warn(
            "[TorchSNE] WARNING Affinity: The perplexity parameter must be "
            "smaller than the number of candidate neighbors "
            f"(here {n_neighbors}). Got perplexity = {perplexity}. "
            "The calibrated kernels will have a lower perplexity."
        )
    return perplexity


class EntropicAffinity(Affinity):
    r"""Dense joint affinity of t-SNE :cite:`van2008visualizing`.

    For each point :math:`i`, the precision :math:`\beta_i` of the Gaussian
    kernel is calibrated so that the row

    .. math::
        P_{j|i} = \frac{\exp(- \beta_i C_{ij})}{\sum_{\ell \neq i} \exp(- \beta_i C_{i\ell})}

    has perplexity :math:`\xi`, i.e. Shannon entropy :math:`\log \xi`.
    The conditional affinity is then symmetrized as
    :math:`\mathbf{P} + \mathbf{P}^\top` and normalized to sum to 1.

    The cost :math:`\mathbf{C}` is the full matrix of squared Euclidean
    distances, so memory grows quadratically with the number of samples.

    Parameters
    ----------
    perplexity : float, optional
        Perplexity parameter, related to the number of 'effective' nearest
        neighbors. Default is 30.
    tol : float, optional
        Tolerance on the entropy for the bisection. Default is 1e-5.
    max_iter : int, optional
        Maximum number of bisection steps. Default is 200.
    metric : str, optional
        Metric to use for computing distances (default "sqeuclidean").
    device : str, optional
        Device to use for computation.
    verbose : bool, optional
        Verbosity. Default is False.
    """  # noqa: E501

    def __init__(
        self,
        perplexity: float = 30,
        tol: float = 1e-5,
        max_iter: int = 200,
        metric: str = "sqeuclidean",
        device: str = "auto",
        verbose: bool = False,
        _pre_processed: bool = False,
    ):
        self.perplexity = perplexity
        self.tol = tol
        self.max_iter = max_iter

        super().__init__(
            metric=metric,
            device=device,
            verbose=verbose,
            _pre_processed=_pre_processed,
        )

    def _compute_affinity(self, X: torch.Tensor) -> torch.Tensor:
        n_samples_in = X.shape[0]
        check_perplexity(self.perplexity, n_samples_in - 1)
        self.logger.info(f"Computing dense input similarities of {n_samples_in} points.")

        C = self._distance_matrix(X)
        self_indices = torch.arange(n_samples_in, device=C.device)
        P, beta = binary_search_precision(
            C,
            self.perplexity,
            self_indices=self_indices,
            tol=self.tol,
            max_iter=self.max_iter,
            verbose=self.verbose,
        )
        self.register_buffer("beta_", beta, persistent=False)
        del C

        P = P + P.T
        P /= P.sum()
        return P


class KNNEntropicAffinity(SparseAffinity):
    r"""Sparse joint affinity of Barnes-Hut t-SNE :cite:`van2014accelerating`.

    The :math:`K` nearest neighbors of every point are found with a
    vantage-point tree. The Gaussian precision of each point is calibrated
    on the squared distances to its neighbors only, which gives a
    fixed-degree row-stochastic matrix. It is then symmetrized as
    :math:`(\mathbf{P} + \mathbf{P}^\top) / 2` and normalized to sum to 1.

    Parameters
    ----------
    perplexity : float, optional
        Perplexity parameter. Default is 30.
    n_neighbors : int, optional
        Number of neighbors :math:`K`. Defaults to ``int(3 * perplexity)``,
        in any case clipped to ``n_samples - 1``.
    tol : float, optional
        Tolerance on the entropy for the bisection. Default is 1e-5.
    max_iter : int, optional
        Maximum number of bisection steps. Default is 200.
    metric : {"euclidean", "manhattan", "chebyshev"} or callable, optional
        Metric of the vantage-point tree. The returned distances are squared
        before calibration. Default is "euclidean".
    device : str, optional
        Device to use for computation.
    verbose : bool, optional
        Verbosity. Default is False.
    """

    def __init__(
        self,
        perplexity: float = 30,
        n_neighbors: Optional[int] = None,
        tol: float = 1e-5,
        max_iter: int = 200,
        metric: Union[str, Callable] = "euclidean",
        device: str = "auto",
        verbose: bool = False,
        _pre_processed: bool = False,
    ):
        if isinstance(metric, str) and metric not in VPTREE_METRICS:
            raise UnsupportedConfigurationError(
                f"[TorchSNE] ERROR : KNNEntropicAffinity does not support the "
                f"'{metric}' metric. Supported metrics are {list(VPTREE_METRICS)} "
                "or a callable."
            )
        self.perplexity = perplexity
        self.n_neighbors = n_neighbors
        self.tol = tol
        self.max_iter = max_iter

        super().__init__(
            metric=metric,
            device=device,
            verbose=verbose,
            _pre_processed=_pre_processed,
        )

    def _compute_sparse_affinity(self, X: torch.Tensor) -> CSRMatrix:
        n_samples_in = X.shape[0]
        k = self.n_neighbors
        if k is None:
            k = int(3 * self.perplexity)
        k = min(k, n_samples_in - 1)
        check_perplexity(self.perplexity, k)
        self.n_neighbors_ = k

        self.logger.info(
            f"Building vantage-point tree on {n_samples_in} points "
            f"and searching {k} nearest neighbors."
        )
        tree = VPTree(X, metric=self.metric)
        distances, indices = tree.kneighbors(k, exclude_self=True)
        del tree

        device = self._get_compute_device(X)
        D = (distances**2).to(device=device, dtype=X.dtype)
        P, beta = binary_search_precision(
            D,
            self.perplexity,
            tol=self.tol,
            max_iter=self.max_iter,
            verbose=self.verbose,
        )
        self.register_buffer("beta_", beta, persistent=False)

        return CSRMatrix.from_rowwise(P, indices.to(device))


class ThresholdEntropicAffinity(SparseAffinity):
    r"""Sparse joint affinity keeping the entries above a threshold.

    The precision of each point is calibrated on its squared distances to
    all other points, and only the conditional affinities larger than
    ``threshold / n_samples`` are kept. Distances are computed by chunks of
    rows in two passes: the first one counts the kept entries so that the
    sparse arrays are allocated once, the second one recomputes the rows and
    fills them. The result is symmetrized as
    :math:`(\mathbf{P} + \mathbf{P}^\top) / 2` and normalized to sum to 1.

    Parameters
    ----------
    perplexity : float, optional
        Perplexity parameter. Default is 30.
    threshold : float, optional
        Entries of row i are kept when larger than ``threshold / n_samples``.
        Default is 1.
    chunk_size : int, optional
        Number of rows processed at once. Default is 1024.
    tol : float, optional
        Tolerance on the entropy for the bisection. Default is 1e-5.
    max_iter : int, optional
        Maximum number of bisection steps. Default is 200.
    metric : str, optional
        Metric to use for computing distances (default "sqeuclidean").
    device : str, optional
        Device to use for computation.
    verbose : bool, optional
        Verbosity. Default is False.
    """

    def __init__(
        self,
        perplexity: float = 30,
        threshold: float = 1.0,
        chunk_size: int = 1024,
        tol: float = 1e-5,
        max_iter: int = 200,
        metric: str = "sqeuclidean",
        device: str = "auto",
        verbose: bool = False,
        _pre_processed: bool = False,
    ):
        if threshold < 0:
            raise ValueError(
                f"[TorchSNE] ERROR : threshold must be non-negative, got {threshold}."
            )
        self.perplexity = perplexity
        self.threshold = threshold
        self.chunk_size = chunk_size
        self.tol = tol
        self.max_iter = max_iter

        super().__init__(
            metric=metric,
            device=device,
            verbose=verbose,
            _pre_processed=_pre_processed,
        )

    def _calibrated_rows(self, X: torch.Tensor, start: int, stop: int):
        C = self._distance_matrix(X[start:stop], X)
        self_indices = torch.arange(start, stop, device=C.device)
        P, beta = binary_search_precision(
            C,
            self.perplexity,
            self_indices=self_indices,
            tol=self.tol,
            max_iter=self.max_iter,
        )
        keep = P > self.threshold / X.shape[0]
        keep[torch.arange(stop - start, device=C.device), self_indices] = False
        return P, beta, keep

    def _compute_sparse_affinity(self, X: torch.Tensor) -> CSRMatrix:
        n_samples_in = X.shape[0]
        check_perplexity(self.perplexity, n_samples_in - 1)
        device = self._get_compute_device(X)
        chunks = [
            (start, min(start + self.chunk_size, n_samples_in))
            for start in range(0, n_samples_in, self.chunk_size)
        ]

        counts = torch.zeros(n_samples_in, dtype=torch.long, device=device)
        for start, stop in chunks:
            _, _, keep = self._calibrated_rows(X, start, stop)
            counts[start:stop] = keep.sum(dim=1)

        crow_indices = torch.zeros(n_samples_in + 1, dtype=torch.long, device=device)
        crow_indices[1:] = torch.cumsum(counts, dim=0)
        nnz = int(crow_indices[-1])
        if nnz == 0:
            raise ValueError(
                "[TorchSNE] ERROR : No input similarity is above the threshold "
                f"{self.threshold} / {n_samples_in}. Use a smaller threshold."
            )
        self.logger.info(
            f"Keeping {nnz} entries above threshold {self.threshold} / {n_samples_in}."
        )

        col_indices = torch.empty(nnz, dtype=torch.long, device=device)
        values = torch.empty(nnz, dtype=X.dtype, device=device)
        beta = torch.empty(n_samples_in, dtype=X.dtype, device=device)
        for start, stop in chunks:
            P, beta_chunk, keep = self._calibrated_rows(X, start, stop)
            lo, hi = int(crow_indices[start]), int(crow_indices[stop])
            _, cols = keep.nonzero(as_tuple=True)
            col_indices[lo:hi] = cols
            values[lo:hi] = P[keep]
            beta[start:stop] = beta_chunk
        self.register_buffer("beta_", beta, persistent=False)

        return CSRMatrix(crow_indices, col_indices, values)
