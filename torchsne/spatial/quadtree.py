"""Space-partitioning tree for Barnes-Hut approximations of t-SNE forces."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import itertools
from typing import Tuple

import torch

from torchsne.utils.sparse import CSRMatrix


class QuadTree:
    r"""Barnes-Hut tree over the points of an embedding.

    In two dimensions this is a quadtree; in :math:`d` dimensions each cell
    has :math:`2^d` children. Each cell stores the number of points it
    contains and their center of mass, so that a distant group of points can
    act as a single mass when computing repulsive forces. A leaf holds at most
    one distinct point; exact duplicates only add to its mass.

    Nodes are stored in flat tensors addressed by node index, level after
    level, the :math:`2^d` children of a node being consecutive. The tree is
    built one level at a time for all points at once, and repulsive forces
    are computed by expanding a frontier of (point, node) pairs level by
    level, so that every step is a batched tensor operation.

    Parameters
    ----------
    Y : torch.Tensor of shape (n_samples, n_components)
        Current embedding.

    Attributes
    ----------
    count : torch.Tensor of shape (n_nodes,)
        Number of points in each cell.
    center_of_mass : torch.Tensor of shape (n_nodes, n_components)
        Mean of the points in each cell.
    max_half_width : torch.Tensor of shape (n_nodes,)
        Largest half-width of each cell.
    point : torch.Tensor of shape (n_nodes,)
        Smallest index of the points stored in a leaf, -1 for internal or
        empty cells.
    first_child : torch.Tensor of shape (n_nodes,)
        Index of the first child of each cell, -1 for leaves.
    n_interactions_ : int
        Number of (point, cell) pairs evaluated by the last force computation.

    Examples
    --------
    >>> import torch
    >>> from torchsne import QuadTree
    >>> Y = torch.randn(50, 2, dtype=torch.float64)
    >>> tree = QuadTree(Y)
    >>> neg_f, sum_Q = tree.compute_all_non_edge_forces(theta=0.5)
    """

    def __init__(self, Y: torch.Tensor):
        self.Y = Y.detach()
        self.n_samples, self.n_dims = self.Y.shape
        self.n_children = 2**self.n_dims

        device = self.Y.device
        self._orthants = torch.tensor(
            list(itertools.product((-1.0, 1.0), repeat=self.n_dims)),
            dtype=self.Y.dtype,
            device=device,
        )
        # children are ordered as the orthants, first dimension most significant
        self._bits = 2 ** torch.arange(self.n_dims - 1, -1, -1, device=device)

        self._build()
        self.n_interactions_ = 0

    def _build(self):
        Y = self.Y
        n, d = Y.shape
        device, dtype = Y.device, Y.dtype
        eps = torch.finfo(dtype).eps

        mean = Y.mean(dim=0)
        center = mean.unsqueeze(0)
        half_width = ((Y - mean).abs().amax(dim=0) + 1e-5).unsqueeze(0)
        points = torch.arange(n, device=device)
        local = torch.zeros(n, dtype=torch.long, device=device)

        levels = []
        offset = 0
        while True:
            m = center.shape[0]
            Y_level = Y[points]
            count = torch.bincount(local, minlength=m)
            com = torch.zeros(m, d, dtype=dtype, device=device).index_add_(
                0, local, Y_level
            ) / count.clamp(min=1).unsqueeze(1).to(dtype)

            scatter_index = local[:, None].repeat(1, d)
            lo = torch.full((m, d), float("inf"), dtype=dtype, device=device)
            lo = lo.scatter_reduce(0, scatter_index, Y_level, "amin")
            hi = torch.full((m, d), -float("inf"), dtype=dtype, device=device)
            hi = hi.scatter_reduce(0, scatter_index, Y_level, "amax")
            point = torch.full((m,), -1, dtype=torch.long, device=device)
            point = point.scatter_reduce(0, local, points, "amin", include_self=False)

            # cells below the float resolution of their center are not divided
            resolvable = half_width.amax(dim=1) > eps * center.abs().amax(dim=1)
            split = (count > 1) & (hi > lo).any(dim=1) & resolvable
            point = point.masked_fill(split, -1)
            rank = torch.cumsum(split, dim=0) - 1
            first_child = torch.where(
                split, offset + m + rank * self.n_children, -1
            )
            levels.append((count, com, half_width.amax(dim=1), point, first_child))

            parents = split.nonzero().squeeze(1)
            if parents.numel() == 0:
                break

            child_half_width = half_width[parents] / 2
            child_center = (
                center[parents].unsqueeze(1)
                + self._orthants.unsqueeze(0) * child_half_width.unsqueeze(1)
            ).reshape(-1, d)

            keep = split[local]
            points, parent = points[keep], local[keep]
            orthant = ((Y[points] > center[parent]).long() * self._bits).sum(dim=1)
            local = rank[parent] * self.n_children + orthant

            offset += m
            center = child_center
            half_width = child_half_width.repeat_interleave(self.n_children, dim=0)

        self._n_levels = len(levels)
        (
            self.count,
            self.center_of_mass,
            self.max_half_width,
            self.point,
            self.first_child,
        ) = (torch.cat(field) for field in zip(*levels))

    @property
    def n_nodes(self) -> int:
        return self.count.shape[0]

    def depth(self) -> int:
        """Depth of the tree, a root without children having depth 1."""
        return self._n_levels

    def children(self, node: int) -> torch.Tensor:
        """Indices of the children of a node, empty for a leaf."""
        first = int(self.first_child[node])
        if first < 0:
            return torch.empty(0, dtype=torch.long, device=self.Y.device)
        return torch.arange(first, first + self.n_children, device=self.Y.device)

    def compute_edge_forces(self, P: CSRMatrix) -> torch.Tensor:
        r"""Exact attractive forces along the stored entries of P.

        For every stored entry :math:`(i, j, p_{ij})` accumulates
        :math:`p_{ij} (1 + \|y_i - y_j\|^2)^{-1} (y_i - y_j)` into row i.

        Parameters
        ----------
        P : CSRMatrix
            Sparse input affinity.

        Returns
        -------
        pos_f : torch.Tensor of shape (n_samples, n_components)
        """
        rows = P.row_indices()
        cols = P.col_indices
        diff = self.Y[rows] - self.Y[cols]
        q = 1 / (1 + (diff**2).sum(dim=-1))
        pos_f = torch.zeros_like(self.Y)
        pos_f.index_add_(0, rows, (P.values * q).unsqueeze(-1) * diff)
        return pos_f

    def _non_edge(
        self, queries: torch.Tensor, theta: float
    ) -> Tuple[torch.Tensor, torch.Tensor, int]:
        Y = self.Y
        neg_f = torch.zeros(len(queries), self.n_dims, dtype=Y.dtype, device=Y.device)
        sum_q = torch.zeros(len(queries), dtype=Y.dtype, device=Y.device)
        children = torch.arange(self.n_children, device=Y.device)

        query = torch.arange(len(queries), device=Y.device)
        node = torch.zeros_like(query)
        n_interactions = 0
        while query.numel() > 0:
            point = queries[query]
            is_leaf = self.first_child[node] < 0
            # empty cells and the leaf storing the query point itself
            valid = (self.count[node] > 0) & ~(is_leaf & (self.point[node] == point))
            query, node, point, is_leaf = (
                query[valid],
                node[valid],
                point[valid],
                is_leaf[valid],
            )
            n_interactions += query.numel()

            diff = Y[point] - self.center_of_mass[node]
            D = (diff**2).sum(dim=1)
            summarize = is_leaf | (self.max_half_width[node] < theta * D.sqrt())

            q = 1 / (1 + D[summarize])
            mult = self.count[node[summarize]].to(Y.dtype) * q
            target = query[summarize]
            neg_f.index_add_(0, target, (mult * q).unsqueeze(1) * diff[summarize])
            sum_q.index_add_(0, target, mult)

            opened = ~summarize
            query = query[opened].repeat_interleave(self.n_children)
            node = (self.first_child[node[opened]].unsqueeze(1) + children).reshape(-1)

        return neg_f, sum_q, n_interactions

    def compute_non_edge_forces(
        self, i: int, theta: float
    ) -> Tuple[torch.Tensor, float]:
        r"""Approximate repulsive force acting on point i.

        Cells are summarized by their center of mass when they are leaves or
        when their half-width is smaller than ``theta`` times their distance to
        :math:`y_i`. With ``theta = 0`` every cell is opened and the forces are
        exact.

        Parameters
        ----------
        i : int
            Index of the point.
        theta : float
            Barnes-Hut accuracy parameter.

        Returns
        -------
        neg_f : torch.Tensor of shape (n_components,)
            Unnormalized repulsive force
            :math:`\sum_j q_{ij}^2 (y_i - y_j)`.
        sum_q : float
            Contribution :math:`\sum_j q_{ij}` to the normalization.
        """
        queries = torch.tensor([i], dtype=torch.long, device=self.Y.device)
        neg_f, sum_q, self.n_interactions_ = self._non_edge(queries, theta)
        return neg_f[0], float(sum_q[0])

    def compute_all_non_edge_forces(
        self, theta: float, batch_size: int = 16384
    ) -> Tuple[torch.Tensor, float]:
        """Repulsive forces on every point and the normalization sum_Q.

        Parameters
        ----------
        theta : float
            Barnes-Hut accuracy parameter.
        batch_size : int, optional
            Number of points traversing the tree together, by default 16384.

        Returns
        -------
        neg_f : torch.Tensor of shape (n_samples, n_components)
        sum_Q : float
        """
        neg_f = torch.zeros_like(self.Y)
        sum_Q = 0.0
        self.n_interactions_ = 0
        for start in range(0, self.n_samples, batch_size):
            queries = torch.arange(
                start, min(start + batch_size, self.n_samples), device=self.Y.device
            )
            neg_f_batch, sum_q, n_interactions = self._non_edge(queries, theta)
            neg_f[queries] = neg_f_batch
            sum_Q += float(sum_q.sum())
            self.n_interactions_ += n_interactions
        return neg_f, sum_Q
