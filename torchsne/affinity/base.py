"""Base classes for affinity matrices."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

from abc import ABC
from typing import Union

import numpy as np
import torch
import torch.nn as nn

from torchsne.distance import pairwise_distances
from torchsne.utils import (
    CSRMatrix,
    bool_arg,
    set_logger,
    symmetrize_csr,
    to_torch,
)


class Affinity(nn.Module, ABC):
    r"""Base class for affinity matrices.

    Parameters
    ----------
    metric : str, optional
        The distance metric to use for computing pairwise distances.
    device : str, optional
        The device to use for computation. Typically "cuda" for GPU or "cpu" for CPU.
        If "auto", uses the device of the input data.
    verbose : bool, optional
        Verbosity. Default is False.
    _pre_processed : bool, optional
        If True, assumes inputs are already torch tensors on the correct device
        and skips the `to_torch` conversion. Default is False.
    """

    def __init__(
        self,
        metric: str = "sqeuclidean",
        device: str = "auto",
        verbose: bool = False,
        _pre_processed: bool = False,
    ):
        super().__init__()

        self.metric = metric
        self.device = device
        self.verbose = bool_arg(verbose)
        self._pre_processed = _pre_processed

        self.logger = set_logger(self.__class__.__name__, self.verbose)

    def _get_compute_device(self, X: torch.Tensor):
        """Device on which computations run, the device of X if "auto"."""
        return X.device if self.device == "auto" else self.device

    def __call__(self, X: Union[torch.Tensor, np.ndarray], **kwargs):
        r"""Compute the affinity matrix from the input data.

        Parameters
        ----------
        X : torch.Tensor or np.ndarray of shape (n_samples, n_features)
            Input data.

        Returns
        -------
        affinity_matrix : torch.Tensor or CSRMatrix
            The computed affinity matrix.
        """
        if not self._pre_processed:
            X = to_torch(X, device=self.device)
        return self._compute_affinity(X, **kwargs)

    def _compute_affinity(self, X: torch.Tensor):
        r"""Compute the affinity matrix from the input data.

        This method must be overridden by subclasses.

        Raises
        ------
        NotImplementedError
            If the `_compute_affinity` method is not implemented by the subclass.
        """
        raise NotImplementedError(
            "[TorchSNE] ERROR : `_compute_affinity` method is not implemented."
        )

    def _distance_matrix(self, X: torch.Tensor, Y: torch.Tensor = None):
        r"""Pairwise distances between the rows of X and Y (X if None)."""
        return pairwise_distances(X, Y, metric=self.metric, device=self.device)

    def clear_memory(self):
        """Clear non-persistent buffers to free memory."""
        if hasattr(self, "_non_persistent_buffers_set"):
            for name in list(self._non_persistent_buffers_set):
                if hasattr(self, name):
                    delattr(self, name)

        if torch.cuda.is_available():
            torch.cuda.empty_cache()


class SparseAffinity(Affinity):
    r"""Base class for sparse joint affinities stored as a :class:`CSRMatrix`.

    Subclasses compute a directed affinity, one normalized row per point,
    through ``_compute_sparse_affinity``. It is then symmetrized as
    :math:`(\mathbf{P} + \mathbf{P}^\top) / 2` and normalized so that its
    entries sum to 1.

    Parameters
    ----------
    metric : str, optional
        The distance metric to use for computing pairwise distances.
    device : str, optional
        The device to use for computation. If "auto", uses the device of the
        input data.
    verbose : bool, optional
        Verbosity. Default is False.
    _pre_processed : bool, optional
        If True, skips the `to_torch` conversion. Default is False.
    """

    def _compute_affinity(self, X: torch.Tensor) -> CSRMatrix:
        P = self._compute_sparse_affinity(X)
        P = symmetrize_csr(P)
        P.div_(P.sum())
        self.logger.info(
            f"Joint affinity has {P.nnz} non-zero entries "
            f"({P.nnz / P.n_rows:.1f} per point)."
        )
        return P

    def _compute_sparse_affinity(self, X: torch.Tensor) -> CSRMatrix:
        r"""Compute the directed sparse affinity from the input data.

        This method must be overridden by subclasses.

        Raises
        ------
        NotImplementedError
            If the method is not implemented by the subclass.
        """
        raise NotImplementedError(
            "[TorchSNE] ERROR : `_compute_sparse_affinity` method is not implemented."
        )
