"""Distances based on various backends."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import torch
from typing import Optional

from .torch import pairwise_distances_torch


def pairwise_distances(
    X: torch.Tensor,
    Y: Optional[torch.Tensor] = None,
    metric: str = "sqeuclidean",
    device: str = "auto",
):
    r"""Compute pairwise distances between two tensors.

    Parameters
    ----------
    X : torch.Tensor of shape (n_samples, n_features)
        Input data.
    Y : torch.Tensor of shape (m_samples, n_features), optional
        Input data. If None, Y is set to X.
    metric : str, optional
        Metric to use. Default is "sqeuclidean".
    device : str, default="auto"
        Device to use for computation. If "auto", keeps data on its current device.

    Returns
    -------
    C : torch.Tensor of shape (n_samples, m_samples)
        Pairwise distances.
    """
    return pairwise_distances_torch(X, Y, metric=metric, device=device)
