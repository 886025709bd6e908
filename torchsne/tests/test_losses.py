"""
Tests for the t-SNE cost and its gradients.
"""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import pytest
import torch
from torch.testing import assert_close

from torchsne import (
    CSRMatrix,
    EntropicAffinity,
    barnes_hut_kl_divergence,
    exact_gradient,
    kl_divergence,
)
from torchsne.tests.utils import toy_dataset


def joint_affinity(n, dtype="float64"):
    X, _ = toy_dataset(n, dtype)
    P = EntropicAffinity(perplexity=10)(X)
    P.fill_diagonal_(0)
    return P / P.sum()


def reference_kl(P, Y):
    """t-SNE cost written with autograd-friendly operations."""
    diff = Y.unsqueeze(1) - Y.unsqueeze(0)
    q = 1 / (1 + (diff**2).sum(dim=-1))
    off_diag = ~torch.eye(Y.shape[0], dtype=torch.bool)
    q = q[off_diag]
    p = P[off_diag]
    return (torch.special.xlogy(p, p) - p * torch.log(q)).sum() + torch.log(q.sum())


def test_exact_gradient_matches_autograd():
    n = 40
    P = joint_affinity(n)
    Y = torch.randn(n, 2, dtype=torch.float64, requires_grad=True)

    reference_kl(P, Y).backward()
    grad = exact_gradient(P, Y.detach())

    # the constant factor 4 is absorbed in the learning rate
    assert_close(4 * grad, Y.grad, rtol=1e-6, atol=1e-12)


def test_exact_gradient_ignores_diagonal():
    n = 20
    P = joint_affinity(n)
    Y = torch.randn(n, 3, dtype=torch.float64)

    P_diag = P.clone()
    P_diag.fill_diagonal_(1e-3)

    assert_close(exact_gradient(P_diag, Y), exact_gradient(P, Y))


def test_exact_gradient_sums_to_zero():
    n = 30
    P = joint_affinity(n)
    Y = torch.randn(n, 2, dtype=torch.float64)

    grad = exact_gradient(P, Y)

    assert_close(grad.sum(dim=0), torch.zeros(2, dtype=torch.float64), atol=1e-12, rtol=0)


def test_kl_divergence():
    n = 40
    P = joint_affinity(n)
    Y = torch.randn(n, 2, dtype=torch.float64)

    C = kl_divergence(P, Y)

    assert C.item() > 0
    assert C.item() == pytest.approx(reference_kl(P, Y).item(), rel=1e-4)


def test_barnes_hut_kl_with_theta_zero_matches_exact():
    n = 40
    P = joint_affinity(n)
    Y = torch.randn(n, 2, dtype=torch.float64)

    C_exact = kl_divergence(P, Y)
    C_bh = barnes_hut_kl_divergence(CSRMatrix.from_dense(P), Y, theta=0.0)

    assert C_bh.item() == pytest.approx(C_exact.item(), rel=1e-4)


def test_barnes_hut_kl_is_an_estimate():
    n = 100
    P = joint_affinity(n)
    Y = 5 * torch.randn(n, 2, dtype=torch.float64)
    P_csr = CSRMatrix.from_dense(P)

    C_exact = barnes_hut_kl_divergence(P_csr, Y, theta=0.0)
    C_approx = barnes_hut_kl_divergence(P_csr, Y, theta=0.8)

    assert C_approx.item() == pytest.approx(C_exact.item(), rel=1e-1)
