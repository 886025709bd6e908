"""Compressed sparse row affinity matrices and their symmetrization."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

from dataclasses import dataclass
from typing import Tuple

import torch


@dataclass
class CSRMatrix:
    """Square sparse matrix in compressed sparse row format.

    Parameters
    ----------
    crow_indices : torch.LongTensor of shape (n + 1,)
        Row offsets, non-decreasing, starting at 0 and ending at ``nnz``.
    col_indices : torch.LongTensor of shape (nnz,)
        Column index of each stored entry.
    values : torch.Tensor of shape (nnz,)
        Value of each stored entry.
    """

    crow_indices: torch.Tensor
    col_indices: torch.Tensor
    values: torch.Tensor

    @property
    def n_rows(self) -> int:
        return self.crow_indices.numel() - 1

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.n_rows, self.n_rows)

    @property
    def nnz(self) -> int:
        return self.values.numel()

    @property
    def dtype(self) -> torch.dtype:
        return self.values.dtype

    @property
    def device(self) -> torch.device:
        return self.values.device

    def row_indices(self) -> torch.Tensor:
        """Row index of each stored entry."""
        rows = torch.arange(self.n_rows, device=self.device)
        return torch.repeat_interleave(rows, self.crow_indices.diff())

    def sum(self) -> torch.Tensor:
        return self.values.sum()

    def mul_(self, coeff: float) -> "CSRMatrix":
        self.values.mul_(coeff)
        return self

    def div_(self, coeff: float) -> "CSRMatrix":
        self.values.div_(coeff)
        return self

    def to_dense(self) -> torch.Tensor:
        dense = torch.zeros(self.shape, dtype=self.dtype, device=self.device)
        dense.index_put_(
            (self.row_indices(), self.col_indices), self.values, accumulate=True
        )
        return dense

    def to_sparse_csr(self) -> torch.Tensor:
        return torch.sparse_csr_tensor(
            self.crow_indices, self.col_indices, self.values, size=self.shape
        )

    @classmethod
    def from_rowwise(cls, values: torch.Tensor, indices: torch.Tensor) -> "CSRMatrix":
        """Build a fixed-degree matrix from (n, k) values and column indices."""
        n, k = values.shape
        crow = torch.arange(n + 1, device=values.device) * k
        return cls(crow, indices.reshape(-1).long(), values.reshape(-1))

    @classmethod
    def from_dense(cls, A: torch.Tensor) -> "CSRMatrix":
        """Keep the non-zero off-diagonal entries of a dense square matrix."""
        mask = A != 0
        mask.fill_diagonal_(False)
        rows, cols = mask.nonzero(as_tuple=True)
        counts = torch.bincount(rows, minlength=A.shape[0])
        crow = torch.zeros(A.shape[0] + 1, dtype=torch.long, device=A.device)
        crow[1:] = torch.cumsum(counts, dim=0)
        return cls(crow, cols, A[rows, cols])


def symmetrize_csr(P: CSRMatrix) -> CSRMatrix:
    r"""Symmetrize a sparse matrix as :math:`(\mathbf{P} + \mathbf{P}^\top) / 2`.

    Entries stored in both directions are summed, entries stored in only one
    direction are mirrored, and every value is finally halved. The total mass
    of the matrix is therefore preserved. A first pass counts the degree of
    each row of the symmetric pattern so that the output arrays are allocated
    once; a second pass fills them, rows ordered and columns sorted.

    Parameters
    ----------
    P : CSRMatrix
        Input matrix.

    Returns
    -------
    P_sym : CSRMatrix
        Symmetric matrix.
    """
    n = P.n_rows
    i = P.row_indices()
    j = P.col_indices
    v = P.values

    # union of the patterns of P and P^T, encoded as i * n + j
    keys = torch.cat([i * n + j, j * n + i], dim=0)
    uniq_keys, inv_idx = torch.unique(keys, sorted=True, return_inverse=True)
    M = uniq_keys.numel()

    rows_out = uniq_keys // n
    cols_out = uniq_keys % n
    counts = torch.bincount(rows_out, minlength=n)
    crow_out = torch.zeros(n + 1, dtype=torch.long, device=P.device)
    crow_out[1:] = torch.cumsum(counts, dim=0)

    vP = torch.zeros(M, dtype=v.dtype, device=v.device)
    vPT = torch.zeros(M, dtype=v.dtype, device=v.device)
    vP.scatter_add_(0, inv_idx[: v.numel()], v)
    vPT.scatter_add_(0, inv_idx[v.numel() :], v)

    return CSRMatrix(crow_out, cols_out, (vP + vPT) / 2)
