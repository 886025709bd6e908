"""Gradients of the t-SNE objective with respect to the embedding."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import torch

from torchsne.losses import student_kernel
from torchsne.spatial import QuadTree
from torchsne.utils import CSRMatrix


@torch.no_grad()
def exact_gradient(P: torch.Tensor, Y: torch.Tensor) -> torch.Tensor:
    r"""Exact gradient of :math:`\mathrm{KL}(\mathbf{P} \| \mathbf{Q})`.

    With :math:`q_{ij} = (1 + \|y_i - y_j\|^2)^{-1}` for :math:`i \neq j` and
    :math:`Z = \sum_{i \neq j} q_{ij}`,

    .. math::

        \frac{\partial C}{\partial y_i} = \sum_j \left(P_{ij} - \frac{q_{ij}}{Z}\right) q_{ij} (y_i - y_j) \:.

    The usual constant factor 4 is absorbed in the learning rate.
    Memory and time are quadratic in the number of samples.

    Parameters
    ----------
    P : torch.Tensor of shape (n_samples, n_samples)
        Dense input affinity.
    Y : torch.Tensor of shape (n_samples, n_components)
        Embedding.

    Returns
    -------
    grad : torch.Tensor of shape (n_samples, n_components)
    """  # noqa: E501
    Q = student_kernel(Y)
    Q.fill_diagonal_(0)
    Z = Q.sum()
    W = (P - Q / Z) * Q
    W.fill_diagonal_(0)
    return W.sum(dim=1, keepdim=True) * Y - W @ Y


@torch.no_grad()
def barnes_hut_gradient(
    P: CSRMatrix, Y: torch.Tensor, theta: float = 0.5
) -> torch.Tensor:
    r"""Barnes-Hut approximation of the t-SNE gradient.

    Attractive forces are computed exactly on the stored entries of the
    sparse affinity P. Repulsive forces and their normalization are
    approximated with a :class:`~torchsne.QuadTree` built on the current
    embedding, so that the gradient reads ``pos_f - neg_f / sum_Q``.

    Parameters
    ----------
    P : CSRMatrix
        Sparse symmetric input affinity.
    Y : torch.Tensor of shape (n_samples, n_components)
        Embedding.
    theta : float, optional
        Barnes-Hut accuracy parameter. 0 gives exact repulsive forces.

    Returns
    -------
    grad : torch.Tensor of shape (n_samples, n_components)
    """
    tree = QuadTree(Y)
    pos_f = tree.compute_edge_forces(P)
    neg_f, sum_Q = tree.compute_all_non_edge_forces(theta)
    return pos_f - neg_f / sum_Q
