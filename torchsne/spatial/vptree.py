"""Vantage-point tree for exact nearest neighbor search in metric spaces."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

from typing import Callable, Optional, Tuple, Union

import numpy as np
import torch

from torchsne.exceptions import UnsupportedConfigurationError


def _euclidean(X: torch.Tensor, Y: torch.Tensor) -> torch.Tensor:
    return ((X - Y) ** 2).sum(dim=-1).sqrt()


def _manhattan(X: torch.Tensor, Y: torch.Tensor) -> torch.Tensor:
    return (X - Y).abs().sum(dim=-1)


def _chebyshev(X: torch.Tensor, Y: torch.Tensor) -> torch.Tensor:
    return (X - Y).abs().amax(dim=-1)


VPTREE_METRICS = {
    "euclidean": _euclidean,
    "manhattan": _manhattan,
    "chebyshev": _chebyshev,
}


def _segment_sort(values: torch.Tensor, segments: torch.Tensor) -> torch.Tensor:
    """Permutation sorting values within each segment, segments kept in order."""
    order = torch.argsort(values, stable=True)
    return order[torch.argsort(segments[order], stable=True)]


def _segment_starts(segments: torch.Tensor, n_segments: int) -> torch.Tensor:
    counts = torch.bincount(segments, minlength=n_segments)
    return torch.cumsum(counts, dim=0) - counts


class VPTree:
    r"""Vantage-point tree over the rows of a data matrix.

    Each node picks a vantage point (the last point of its subset), splits
    the remaining points at the median of their distances to it, and hands
    both halves to its children. Queries return exact k nearest neighbors for
    any metric satisfying the triangle inequality.

    The tree is built one level at a time: all nodes of a level compute
    their distances and medians together with segmented sorts. Nodes are
    stored in flat tensors, and the points of the subtree rooted at a node
    are the contiguous slice ``start:end`` of a single permutation of the
    data. Queries are answered in batches by expanding a frontier of
    (query, node) pairs, each query being first seeded with the points of
    the smallest subtree around it that holds enough candidates.

    Parameters
    ----------
    X : torch.Tensor or np.ndarray of shape (n_samples, n_features)
        Points to index.
    metric : {"euclidean", "manhattan", "chebyshev"} or callable, optional
        Distance used to build and query the tree. A callable receives two
        tensors of shape (m, n_features) and returns the m row-wise distances
        as a tensor of shape (m,). Default is "euclidean".
    batch_size : int, optional
        Number of queries processed together. Default is 1024.

    Attributes
    ----------
    n_distance_evaluations_ : int
        Number of point-to-point distances evaluated by the last query.

    Examples
    --------
    >>> import torch
    >>> from torchsne import VPTree
    >>> X = torch.randn(100, 5)
    >>> tree = VPTree(X)
    >>> indices, distances = tree.search(X[0], k=3)
    """

    def __init__(
        self,
        X: Union[torch.Tensor, np.ndarray],
        metric: Union[
            str, Callable[[torch.Tensor, torch.Tensor], torch.Tensor]
        ] = "euclidean",
        batch_size: int = 1024,
    ):
        if isinstance(metric, str):
            if metric not in VPTREE_METRICS:
                raise UnsupportedConfigurationError(
                    f"[TorchSNE] ERROR : The vantage-point tree does not support the "
                    f"'{metric}' metric. Supported metrics are "
                    f"{list(VPTREE_METRICS)} or a callable."
                )
            self._distance = VPTREE_METRICS[metric]
        elif callable(metric):
            self._distance = metric
        else:
            raise UnsupportedConfigurationError(
                "[TorchSNE] ERROR : metric must be a string or a callable."
            )
        self.metric = metric
        self.batch_size = batch_size

        if isinstance(X, torch.Tensor):
            self.dtype = X.dtype
            self._data = X.detach().to(torch.float64)
        else:
            self._data = torch.as_tensor(np.asarray(X, dtype=np.float64))
            self.dtype = torch.float64
        if self._data.ndim != 2:
            self._data = self._data.reshape(len(self._data), -1)
        self.device = self._data.device

        self._build()
        self.n_distance_evaluations_ = 0

    def __len__(self) -> int:
        return self._data.shape[0]

    def _build(self):
        n = len(self)
        device = self.device
        self._perm = torch.arange(n, device=device)

        levels = []
        start = torch.zeros(1 if n > 0 else 0, dtype=torch.long, device=device)
        end = torch.full_like(start, n)
        offset = 0
        while start.numel() > 0:
            m = start.numel()
            index = self._perm[end - 1]
            size = end - 1 - start
            median = size // 2

            seg = torch.repeat_interleave(torch.arange(m, device=device), size)
            seg_start = torch.cumsum(size, dim=0) - size
            pos = start[seg] + torch.arange(len(seg), device=device) - seg_start[seg]
            dist = self._distance(self._data[self._perm[pos]], self._data[index[seg]])
            order = _segment_sort(dist, seg)
            self._perm[pos] = self._perm[pos[order]]

            has_inside = size > 0
            has_outside = size - median - 1 > 0
            threshold = torch.zeros(m, dtype=torch.float64, device=device)
            threshold[has_inside] = dist[order][(seg_start + median)[has_inside]]

            n_inside = int(has_inside.sum())
            inside = torch.where(
                has_inside, offset + m + torch.cumsum(has_inside, dim=0) - 1, -1
            )
            outside = torch.where(
                has_outside,
                offset + m + n_inside + torch.cumsum(has_outside, dim=0) - 1,
                -1,
            )
            levels.append((index, threshold, inside, outside, start, end))

            split = start + median + 1
            start = torch.cat([start[has_inside], split[has_outside]])
            end = torch.cat([split[has_inside], (end - 1)[has_outside]])
            offset += m

        if levels:
            fields = [torch.cat(field) for field in zip(*levels)]
        else:
            fields = [torch.empty(0, dtype=torch.long, device=device)] * 6
            fields[1] = fields[1].to(torch.float64)
        (
            self._index,
            self._threshold,
            self._inside,
            self._outside,
            self._start,
            self._end,
        ) = fields

    def _pairwise(self, Q: torch.Tensor, indices: torch.Tensor) -> torch.Tensor:
        self.n_distance_evaluations_ += indices.numel()
        return self._distance(Q, self._data[indices])

    def _home(self, Q: torch.Tensor, n_candidates: int) -> torch.Tensor:
        """Smallest subtree holding at least n_candidates points along the
        descent of each query."""
        node = torch.zeros(len(Q), dtype=torch.long, device=self.device)
        active = torch.arange(len(Q), device=self.device)
        while active.numel() > 0:
            current = node[active]
            d = self._pairwise(Q[active], self._index[current])
            child = torch.where(
                d < self._threshold[current],
                self._inside[current],
                self._outside[current],
            )
            size = (self._end - self._start)[child.clamp(min=0)]
            descend = (child >= 0) & (size >= n_candidates)
            node[active[descend]] = child[descend]
            active = active[descend]
        return node

    def _knn(
        self, Q: torch.Tensor, k: int, exclude: Optional[torch.Tensor] = None
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        q = len(Q)
        device = self.device
        n_candidates = k + 1 if exclude is not None else k

        # seed every query with the points of its home subtree
        home = self._home(Q, n_candidates)
        home_start, home_end = self._start[home], self._end[home]
        width = int((home_end - home_start).max())
        slots = home_start.unsqueeze(1) + torch.arange(width, device=device)
        valid = slots < home_end.unsqueeze(1)
        candidates = self._perm[slots.clamp(max=len(self) - 1)]
        if exclude is not None:
            valid &= candidates != exclude.unsqueeze(1)
        d = self._pairwise(
            Q.repeat_interleave(width, dim=0), candidates.reshape(-1)
        ).reshape(q, width)
        d = d.masked_fill(~valid, float("inf"))
        best_d, best_slot = torch.topk(d, k, dim=1, largest=False)
        best_i = candidates.gather(1, best_slot)

        rows = torch.arange(q, device=device).repeat_interleave(k)
        query = torch.arange(q, device=device)
        node = torch.zeros_like(query)
        while query.numel() > 0:
            # subtrees inside the home subtree were already scanned
            covered = (self._start[node] >= home_start[query]) & (
                self._end[node] <= home_end[query]
            )
            query, node = query[~covered], node[~covered]
            if query.numel() == 0:
                break

            vantage = self._index[node]
            d = self._pairwise(Q[query], vantage)
            new_d = d
            if exclude is not None:
                new_d = d.masked_fill(vantage == exclude[query], float("inf"))

            # keep the k closest among the current best and the new vantages
            owner = torch.cat([rows, query])
            all_d = torch.cat([best_d.reshape(-1), new_d])
            all_i = torch.cat([best_i.reshape(-1), vantage])
            order = _segment_sort(all_d, owner)
            starts = _segment_starts(owner, q)
            rank = torch.arange(len(order), device=device) - starts[owner[order]]
            keep = order[rank < k]
            best_d = all_d[keep].reshape(q, k)
            best_i = all_i[keep].reshape(q, k)

            tau = best_d[query, -1]
            threshold = self._threshold[node]
            go_inside = (self._inside[node] >= 0) & (d - tau <= threshold)
            go_outside = (self._outside[node] >= 0) & (d + tau >= threshold)
            query = torch.cat([query[go_inside], query[go_outside]])
            node = torch.cat(
                [self._inside[node][go_inside], self._outside[node][go_outside]]
            )

        return best_i, best_d

    def _as_point(self, query) -> torch.Tensor:
        if isinstance(query, torch.Tensor) and query.ndim == 0:
            query = int(query)
        if isinstance(query, (int, np.integer)):
            return self._data[int(query)]
        if isinstance(query, torch.Tensor):
            return query.detach().to(device=self.device, dtype=torch.float64)
        return torch.as_tensor(
            np.asarray(query, dtype=np.float64), device=self.device
        )

    def search(self, query, k: int) -> Tuple[torch.Tensor, torch.Tensor]:
        """Find the k nearest indexed points of a query.

        Parameters
        ----------
        query : int or array-like of shape (n_features,)
            Index of an indexed point, or a feature vector.
        k : int
            Number of neighbors. If larger than the tree size, all points are
            returned.

        Returns
        -------
        indices : torch.LongTensor of shape (min(k, n_samples),)
            Indices of the nearest points, by increasing distance.
        distances : torch.Tensor of shape (min(k, n_samples),)
            Corresponding distances.
        """
        self.n_distance_evaluations_ = 0
        k = min(k, len(self))
        if k <= 0:
            return (
                torch.empty(0, dtype=torch.long),
                torch.empty(0, dtype=self.dtype),
            )
        x = self._as_point(query).reshape(1, -1)
        indices, distances = self._knn(x, k)
        return indices[0], distances[0].to(self.dtype)

    def kneighbors(self, k: int, exclude_self: bool = True):
        """Query the k nearest neighbors of every indexed point.

        Parameters
        ----------
        k : int
            Number of neighbors per point, clipped to the number of available
            points.
        exclude_self : bool, optional
            If True, each point is removed from its own neighbor list.

        Returns
        -------
        distances : torch.Tensor of shape (n_samples, k)
            Distances to the neighbors, by increasing distance.
        indices : torch.LongTensor of shape (n_samples, k)
            Indices of the neighbors.
        """
        n = len(self)
        k = max(min(k, n - 1) if exclude_self else min(k, n), 0)
        self.n_distance_evaluations_ = 0

        distances = torch.empty(n, k, dtype=torch.float64, device=self.device)
        indices = torch.empty(n, k, dtype=torch.long, device=self.device)
        if k == 0:
            return distances.to(self.dtype), indices

        for start in range(0, n, self.batch_size):
            stop = min(start + self.batch_size, n)
            batch = torch.arange(start, stop, device=self.device)
            exclude = batch if exclude_self else None
            indices[batch], distances[batch] = self._knn(
                self._data[batch], k, exclude
            )

        return distances.to(self.dtype), indices
