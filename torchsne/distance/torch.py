"""Distances based on pure PyTorch backend."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import torch


LIST_METRICS_TORCH = [
    "euclidean",
    "sqeuclidean",
    "manhattan",
]


def pairwise_distances_torch(
    X: torch.Tensor,
    Y: torch.Tensor = None,
    metric: str = "sqeuclidean",
    device: str = "auto",
):
    r"""Compute pairwise distances between points using PyTorch.

    Squared Euclidean distances use the expansion
    :math:`\|x - y\|^2 = \|x\|^2 + \|y\|^2 - 2 \langle x, y \rangle`,
    i.e. a single matrix product.

    Parameters
    ----------
    X : torch.Tensor of shape (n_samples, n_features)
        First dataset.
    Y : torch.Tensor of shape (m_samples, n_features), optional
        Second dataset. If None, Y is set to X.
    metric : str
        Metric to use for computing distances. Supported values are those in
        LIST_METRICS_TORCH.
    device : str, default="auto"
        Device to use for computation. If "auto", keeps data on its current device.

    Returns
    -------
    C : torch.Tensor of shape (n_samples, m_samples)
        Pairwise distance matrix.
    """
    if metric not in LIST_METRICS_TORCH:
        raise ValueError(f"[TorchSNE] ERROR : The '{metric}' distance is not supported.")

    if device != "auto" and str(X.device) != device:
        X = X.to(device)
        if Y is not None and Y is not X:
            Y = Y.to(device)

    if Y is None or Y is X:
        Y = X

    if metric in {"sqeuclidean", "euclidean"}:
        X_norm = (X**2).sum(dim=-1)
        Y_norm = X_norm if Y is X else (Y**2).sum(dim=-1)
        C = X_norm.unsqueeze(-1) + Y_norm.unsqueeze(-2) - 2 * (X @ Y.transpose(-1, -2))
        if metric == "euclidean":
            C = C.clamp(min=0).sqrt()
    else:
        # Note: This will create a large intermediate tensor with shape (n, m, d).
        C = (X.unsqueeze(-2) - Y.unsqueeze(-3)).abs().sum(dim=-1)

    return C
