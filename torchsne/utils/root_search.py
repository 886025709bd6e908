"""Root search algorithms for calibrating Gaussian kernels."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#         Rémi Flamary <remi.flamary@polytechnique.edu>
#
# License: BSD 3-Clause License

import math
from typing import Optional, Tuple

import torch
from tqdm import tqdm

from .utils import tiny


def _gaussian_rows(
    D: torch.Tensor,
    beta: torch.Tensor,
    self_indices: Optional[torch.Tensor] = None,
) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    r"""Evaluate unnormalized Gaussian rows and their entropy.

    Returns the kernel :math:`\exp(-\beta_i D_{ij})`, its row sums and the
    entropy :math:`H_i = \beta_i \sum_j D_{ij} P_{ij} / S_i + \log S_i`.
    """
    _tiny = tiny(D.dtype)
    P = torch.exp(-beta.unsqueeze(-1) * D)
    if self_indices is not None:
        rows = torch.arange(D.shape[0], device=D.device)
        P[rows, self_indices] = _tiny
    sum_P = P.sum(dim=1) + _tiny
    H = beta * (D * P).sum(dim=1) / sum_P + torch.log(sum_P)
    return P, sum_P, H


@torch.compiler.disable
def binary_search_precision(
    D: torch.Tensor,
    perplexity: float,
    self_indices: Optional[torch.Tensor] = None,
    tol: float = 1e-5,
    max_iter: int = 200,
    verbose: bool = False,
) -> Tuple[torch.Tensor, torch.Tensor]:
    r"""Batched bisection on the precision of Gaussian kernels.

    For every row :math:`i` of the squared distance matrix :math:`\mathbf{D}`,
    finds :math:`\beta_i \geq 0` such that the entropy (in nats) of the
    normalized kernel :math:`P_{ij} \propto \exp(-\beta_i D_{ij})` equals
    :math:`\log(\xi)` where :math:`\xi` is the perplexity.

    The search starts at :math:`\beta = 1`. While a bound is still infinite,
    :math:`\beta` is doubled (entropy too high) or halved (entropy too low);
    once both bounds are finite the bracket is bisected. Rows are solved
    jointly, each row being frozen as soon as it reaches the tolerance.
    Rows that do not converge within ``max_iter`` steps are returned with
    their last estimate.

    Parameters
    ----------
    D : torch.Tensor of shape (n, m)
        Squared distances from each point to its candidate neighbors.
    perplexity : float
        Target perplexity :math:`\xi`.
    self_indices : torch.Tensor of shape (n,), optional
        Column holding the point itself in each row. The corresponding kernel
        value is set to the smallest normal number instead of 0.
    tol : float, optional
        Tolerance on the entropy gap, by default 1e-5.
    max_iter : int, optional
        Maximum number of bisection steps, by default 200.
    verbose : bool, optional
        If True, displays a progress bar with the number of unsolved rows.

    Returns
    -------
    P : torch.Tensor of shape (n, m)
        Row-normalized Gaussian kernels.
    beta : torch.Tensor of shape (n,)
        Calibrated precisions.
    """
    n = D.shape[0]
    dtype, device = D.dtype, D.device
    target_entropy = math.log(perplexity)

    beta = torch.ones(n, dtype=dtype, device=device)
    beta_min = torch.full((n,), -math.inf, dtype=dtype, device=device)
    beta_max = torch.full((n,), math.inf, dtype=dtype, device=device)

    pbar = tqdm(range(max_iter), disable=not verbose)
    for _ in pbar:
        _, _, H = _gaussian_rows(D, beta, self_indices)
        H_diff = H - target_entropy
        active = H_diff.abs() >= tol
        if not active.any():
            break

        too_flat = active & (H_diff > 0)
        too_peaked = active & (H_diff <= 0)

        beta_up = torch.where(
            torch.isinf(beta_max), beta * 2.0, (beta + beta_max) * 0.5
        )
        beta_down = torch.where(
            torch.isinf(beta_min), beta * 0.5, (beta + beta_min) * 0.5
        )

        beta_min = torch.where(too_flat, beta, beta_min)
        beta_max = torch.where(too_peaked, beta, beta_max)
        beta = torch.where(too_flat, beta_up, torch.where(too_peaked, beta_down, beta))

        if verbose:
            pbar.set_description(
                f"[TorchSNE] Perplexity search : {int(active.sum())} unsolved rows"
            )

    P, sum_P, _ = _gaussian_rows(D, beta, self_indices)
    return P / sum_P.unsqueeze(-1), beta
