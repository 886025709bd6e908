"""Input validation and testing helpers."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import numpy as np
import torch


def check_NaNs(input, msg=None):
    """Check if a tensor contains NaN values."""
    if isinstance(input, list):
        for tensor in input:
            check_NaNs(tensor, msg)
    elif isinstance(input, torch.Tensor):
        if torch.isnan(input).any():
            raise ValueError(msg or "Tensor contains NaN values.")
    else:
        raise TypeError("Input must be a tensor or a list of tensors.")


def check_array(x, device="cpu", ensure_2d=True, ensure_min_samples=1):
    """Convert an array-like to a torch tensor on ``device`` and validate it."""
    if isinstance(x, torch.Tensor):
        x_ = x.to(device=device)
    else:
        x_ = torch.as_tensor(np.asarray(x), device=device)

    if ensure_2d:
        if x_.ndim == 0:
            raise ValueError(
                "[TorchSNE] ERROR : Expected 2D array, got scalar array instead."
            )
        elif x_.ndim == 1:
            x_ = x_.reshape(-1, 1)
        if x_.ndim != 2:
            raise ValueError(
                f"[TorchSNE] ERROR : Expected 2D array, got {x_.ndim}D array instead."
            )

    if x_.shape[0] < ensure_min_samples:
        raise ValueError(
            f"[TorchSNE] ERROR : Found array with {x_.shape[0]} samples, but a "
            f"minimum of {ensure_min_samples} is required."
        )

    return x_


def relative_similarity(P, P_target):
    """Compute the relative l1 distance between P and a target."""
    return (P - P_target).abs().sum() / P_target.abs().sum()


def check_similarity(P, P_target, tol=1e-5, msg=None):
    """Check if a tensor is close to a target matrix."""
    assert P.shape == P_target.shape, (
        "Matrix and target matrix do not have the same shape."
    )
    assert relative_similarity(P, P_target) < tol, (
        msg or "Matrix is not close to the target matrix."
    )


def check_symmetry(P, tol=1e-5, msg=None):
    """Check if a dense tensor or a CSRMatrix is symmetric."""
    if hasattr(P, "to_dense"):
        P = P.to_dense()
    check_similarity(P, P.T, tol=tol, msg=msg or "Matrix is not symmetric.")


def check_total_sum(P, total_sum, tol=1e-5):
    """Check if a dense tensor or a CSRMatrix has the correct total sum."""
    assert (abs(float(P.sum()) - total_sum) / total_sum) < tol, (
        "Matrix has the wrong total sum."
    )


def check_shape(P, shape):
    """Check if a tensor has the correct shape."""
    assert tuple(P.shape) == tuple(shape), "Input shape is incorrect."


def check_nonnegativity(P):
    """Check if a tensor contains only non-negative values."""
    assert P.min() >= 0, "Input contains negative values."
