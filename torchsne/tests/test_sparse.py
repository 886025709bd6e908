"""Tests for sparse utility functions."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import pytest
import torch
from torch.testing import assert_close

from torchsne.utils import CSRMatrix, check_symmetry, check_total_sum, symmetrize_csr


def random_sparse_dense(n, density=0.3, dtype=torch.float64, seed=0):
    generator = torch.Generator().manual_seed(seed)
    A = torch.rand((n, n), generator=generator, dtype=dtype)
    mask = torch.rand((n, n), generator=generator) < density
    A = A * mask
    A.fill_diagonal_(0)
    return A


class TestCSRMatrix:
    """Tests for the CSRMatrix container."""

    def test_from_rowwise(self):
        """Fixed-degree rows are laid out contiguously."""
        values = torch.tensor([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        indices = torch.tensor([[1, 2], [0, 2], [0, 1]])

        P = CSRMatrix.from_rowwise(values, indices)

        assert P.crow_indices.tolist() == [0, 2, 4, 6]
        assert P.col_indices.tolist() == [1, 2, 0, 2, 0, 1]
        assert P.row_indices().tolist() == [0, 0, 1, 1, 2, 2]
        assert P.nnz == 6
        assert P.shape == (3, 3)

    def test_from_dense_drops_diagonal(self):
        A = torch.tensor([[7.0, 1.0, 0.0], [0.0, 7.0, 2.0], [3.0, 0.0, 7.0]])

        P = CSRMatrix.from_dense(A)

        assert P.nnz == 3
        assert P.crow_indices.tolist() == [0, 1, 2, 3]
        expected = A.clone()
        expected.fill_diagonal_(0)
        assert_close(P.to_dense(), expected)

    def test_to_sparse_csr(self):
        A = random_sparse_dense(10)
        P = CSRMatrix.from_dense(A)
        assert_close(P.to_sparse_csr().to_dense(), A)

    def test_inplace_scaling(self):
        A = random_sparse_dense(10)
        P = CSRMatrix.from_dense(A)
        total = float(P.sum())

        P.mul_(12.0)
        assert float(P.sum()) == pytest.approx(12.0 * total)
        P.div_(12.0)
        assert float(P.sum()) == pytest.approx(total)


class TestSymmetrizeCSR:
    """Tests for symmetrize_csr function."""

    def test_one_sided_entry_is_mirrored(self):
        """An entry stored in one direction only is split between both."""
        P = CSRMatrix(
            crow_indices=torch.tensor([0, 1, 1]),
            col_indices=torch.tensor([1]),
            values=torch.tensor([0.4], dtype=torch.float64),
        )

        P_sym = symmetrize_csr(P)

        assert P_sym.crow_indices.tolist() == [0, 1, 2]
        assert P_sym.col_indices.tolist() == [1, 0]
        assert_close(P_sym.values, torch.tensor([0.2, 0.2], dtype=torch.float64))

    def test_two_sided_entries_are_averaged(self):
        P = CSRMatrix(
            crow_indices=torch.tensor([0, 1, 2]),
            col_indices=torch.tensor([1, 0]),
            values=torch.tensor([1.0, 3.0], dtype=torch.float64),
        )

        P_sym = symmetrize_csr(P)

        assert P_sym.nnz == 2
        assert_close(P_sym.values, torch.tensor([2.0, 2.0], dtype=torch.float64))

    @pytest.mark.parametrize("n", [5, 40])
    def test_matches_dense(self, n):
        A = random_sparse_dense(n)

        P_sym = symmetrize_csr(CSRMatrix.from_dense(A))

        assert_close(P_sym.to_dense(), (A + A.T) / 2)
        check_symmetry(P_sym)
        check_total_sum(P_sym, float(A.sum()))

    def test_columns_sorted_within_rows(self):
        A = random_sparse_dense(30)
        P_sym = symmetrize_csr(CSRMatrix.from_dense(A))

        for i in range(P_sym.n_rows):
            start, stop = P_sym.crow_indices[i], P_sym.crow_indices[i + 1]
            cols = P_sym.col_indices[start:stop]
            assert torch.all(cols[1:] > cols[:-1])

    def test_idempotent(self):
        """Symmetrizing a symmetric matrix leaves it unchanged."""
        A = random_sparse_dense(50, density=0.2, seed=3)
        P_sym = symmetrize_csr(CSRMatrix.from_dense(A))

        P_sym2 = symmetrize_csr(P_sym)

        assert torch.equal(P_sym2.crow_indices, P_sym.crow_indices)
        assert torch.equal(P_sym2.col_indices, P_sym.col_indices)
        assert_close(P_sym2.values, P_sym.values, rtol=0, atol=1e-9)
