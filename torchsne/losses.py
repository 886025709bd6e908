# -*- coding: utf-8 -*-
"""
Kullback-Leibler divergences between input and embedding similarities
"""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import torch

from torchsne.distance import pairwise_distances
from torchsne.spatial import QuadTree
from torchsne.utils import CSRMatrix, tiny


def student_kernel(Y: torch.Tensor) -> torch.Tensor:
    r"""Unnormalized Student-t kernel :math:`(1 + \|y_i - y_j\|^2)^{-1}`."""
    return 1 / (1 + pairwise_distances(Y, metric="sqeuclidean"))


def kl_divergence(P: torch.Tensor, Y: torch.Tensor) -> torch.Tensor:
    r"""
    Computes the exact t-SNE cost :math:`\mathrm{KL}(\mathbf{P} \| \mathbf{Q})`.

    The diagonal of the Student kernel is set to the smallest normal number
    and excluded from the normalization
    :math:`Z = \sum_{i \neq j} (1 + \|y_i - y_j\|^2)^{-1}`. Both matrices are
    shifted by 1e-9 inside the logarithm.

    Parameters
    ----------
    P : torch.Tensor of shape (n_samples, n_samples)
        Dense input affinity.
    Y : torch.Tensor of shape (n_samples, n_components)
        Embedding.

    Returns
    -------
    C : torch.Tensor
        Scalar cost.
    """
    _tiny = tiny(Y.dtype)
    Q = student_kernel(Y)
    Q.fill_diagonal_(_tiny)
    Z = _tiny + Q.sum() - Q.diagonal().sum()
    Q /= Z
    return (P * torch.log((P + 1e-9) / (Q + 1e-9))).sum()


def barnes_hut_kl_divergence(
    P: CSRMatrix, Y: torch.Tensor, theta: float = 0.5
) -> torch.Tensor:
    r"""
    Computes an estimate of the t-SNE cost for a sparse input affinity.

    The normalization :math:`Z` comes from one Barnes-Hut pass over a tree
    built on Y, while the terms :math:`P_{ij} \log (P_{ij} / Q_{ij})` are
    evaluated exactly on the stored entries of P. The result mixes an
    approximate global quantity with exact local ones: it is a cheap
    diagnostic of progress, and values obtained with different ``theta`` are
    not comparable.

    Parameters
    ----------
    P : CSRMatrix
        Sparse input affinity.
    Y : torch.Tensor of shape (n_samples, n_components)
        Embedding.
    theta : float, optional
        Barnes-Hut accuracy parameter used for the normalization.

    Returns
    -------
    C : torch.Tensor
        Scalar cost.
    """
    _, sum_Q = QuadTree(Y).compute_all_non_edge_forces(theta)

    rows = P.row_indices()
    diff = Y[rows] - Y[P.col_indices]
    Q = (1 / (1 + (diff**2).sum(dim=-1))) / sum_Q
    floor = tiny(torch.float32)
    return (P.values * torch.log((P.values + floor) / (Q + floor))).sum()
