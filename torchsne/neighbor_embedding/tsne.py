# -*- coding: utf-8 -*-
"""t-distributed Stochastic Neighbor embedding (TSNE) algorithm."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import logging
from typing import Callable, Optional, Union

import numpy as np
import torch

from torchsne.affinity import (
    EntropicAffinity,
    KNNEntropicAffinity,
    ThresholdEntropicAffinity,
)
from torchsne.exceptions import UnsupportedConfigurationError
from torchsne.losses import barnes_hut_kl_divergence, kl_divergence
from torchsne.neighbor_embedding.base import NeighborEmbedding
from torchsne.neighbor_embedding.gradients import barnes_hut_gradient, exact_gradient
from torchsne.spatial import VPTREE_METRICS


class TSNE(NeighborEmbedding):
    r"""Implementation of t-Stochastic Neighbor Embedding (t-SNE) introduced in [2]_.

    The input affinity :math:`\mathbf{P}` is the symmetrized entropic
    affinity, the output affinity :math:`\mathbf{Q}` is the normalized
    Student-t kernel, and the embedding minimizes

    .. math::

        \mathrm{KL}(\mathbf{P} \| \mathbf{Q}) = \sum_{ij} P_{ij} \log \frac{P_{ij}}{Q_{ij}} \:.

    With ``theta = 0`` the affinity, gradient and cost are dense and exact,
    with quadratic cost in the number of samples. With ``theta > 0`` the
    Barnes-Hut variant [3]_ is used: the affinity is sparse (``3 * perplexity``
    nearest neighbors found with a vantage-point tree, or the entries above
    ``threshold / n_samples`` when ``threshold`` is given) and repulsive
    forces are approximated with a space-partitioning tree over the embedding.

    Parameters
    ----------
    perplexity : float
        Number of 'effective' nearest neighbors.
        Consider selecting a value between 2 and the number of samples.
        Different values can result in significantly different results.
    n_components : int, optional
        Dimension of the embedding space.
    theta : float, optional
        Barnes-Hut accuracy parameter, by default 0.5. 0 selects the exact
        algorithm.
    threshold : float, optional
        If not None and ``theta > 0``, the sparse affinity keeps the entries
        larger than ``threshold / n_samples`` instead of a fixed number of
        nearest neighbors.
    n_neighbors : int, optional
        Number of nearest neighbors of the sparse affinity, by default
        ``int(3 * perplexity)``.
    lr : float, optional
        Learning rate, by default 200.
    max_iter : int, optional
        Number of iterations, by default 1000.
    early_exaggeration : float, optional
        Coefficient of the input affinity during the early exaggeration
        phase, by default 12.
    early_exaggeration_iter : int, optional
        Iteration at which early exaggeration stops, by default 250.
    momentum : float, optional
        Initial momentum, by default 0.5.
    final_momentum : float, optional
        Momentum after ``momentum_switch_iter``, by default 0.8.
    momentum_switch_iter : int, optional
        Iteration at which the momentum is switched, by default 250.
    min_gain : float, optional
        Lower bound of the adaptive gains, by default 0.01.
    check_interval : int, optional
        Number of iterations between two evaluations of the cost, by default 50.
    init : {'random', 'normal'} or torch.Tensor of shape (n_samples, n_components), optional
        Initialization for the embedding, default 'random'.
    init_scaling : float, optional
        Scaling factor for the random initialization, by default 1e-4.
    metric : str or callable, optional
        Metric of the input space, by default "euclidean". The exact and
        threshold modes only support "euclidean". The nearest neighbor mode
        also supports "manhattan", "chebyshev" and callables, see
        :class:`~torchsne.VPTree`.
    tol_affinity : float, optional
        Tolerance on the entropy for the perplexity search, by default 1e-5.
    max_iter_affinity : int, optional
        Number of bisection steps of the perplexity search, by default 200.
    device : str, optional
        Device to use, by default "auto".
    verbose : bool, optional
        Verbosity, by default False.
    random_state : float, optional
        Random seed for reproducibility, by default None.
    logger : logging.Logger, optional
        Logger receiving progress messages.
    cancel : callable, optional
        Checked once before any computation. If it returns True,
        :class:`~torchsne.CancelledError` is raised.

    Attributes
    ----------
    embedding_ : torch.Tensor or np.ndarray of shape (n_samples, n_components)
        Final embedding.
    kl_divergence_ : float
        Last evaluated cost. In Barnes-Hut mode this is an estimate, see
        :func:`~torchsne.barnes_hut_kl_divergence`.
    history_ : list of tuple
        Evaluated costs as ``(iteration, cost)`` pairs.
    n_iter_ : int
        Number of iterations run.

    References
    ----------

    .. [2]  Laurens van der Maaten, Geoffrey Hinton (2008).
            Visualizing Data using t-SNE.
            The Journal of Machine Learning Research 9.11 (JMLR).

    .. [3]  Laurens van der Maaten (2014).
            Accelerating t-SNE using Tree-Based Algorithms.
            The Journal of Machine Learning Research 15.93 (JMLR).

    """  # noqa: E501

    _loop_name = "Main t-SNE loop"

    def __init__(
        self,
        perplexity: float = 30,
        n_components: int = 2,
        theta: float = 0.5,
        threshold: Optional[float] = None,
        n_neighbors: Optional[int] = None,
        lr: float = 200.0,
        max_iter: int = 1000,
        early_exaggeration: float = 12.0,
        early_exaggeration_iter: int = 250,
        momentum: float = 0.5,
        final_momentum: float = 0.8,
        momentum_switch_iter: int = 250,
        min_gain: float = 0.01,
        check_interval: int = 50,
        init: Union[str, torch.Tensor, np.ndarray] = "random",
        init_scaling: float = 1e-4,
        metric: Union[str, Callable] = "euclidean",
        tol_affinity: float = 1e-5,
        max_iter_affinity: int = 200,
        device: str = "auto",
        verbose: bool = False,
        random_state: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
        cancel: Optional[Callable[[], bool]] = None,
    ):
        if theta < 0:
            raise ValueError(
                f"[TorchSNE] ERROR : theta must be non-negative, got {theta}."
            )
        self.perplexity = perplexity
        self.theta = theta
        self.threshold = threshold
        self.n_neighbors = n_neighbors
        self.metric = metric
        self.tol_affinity = tol_affinity
        self.max_iter_affinity = max_iter_affinity

        exact = theta == 0
        if (exact or threshold is not None) and metric != "euclidean":
            mode = "exact" if exact else "threshold"
            raise UnsupportedConfigurationError(
                f"[TorchSNE] ERROR : The {mode} mode only supports the euclidean "
                f"metric, got {metric}."
            )
        if not (exact or threshold is not None) and not (
            callable(metric) or metric in VPTREE_METRICS
        ):
            raise UnsupportedConfigurationError(
                f"[TorchSNE] ERROR : Barnes-Hut t-SNE does not support the "
                f"'{metric}' metric. Supported metrics are {list(VPTREE_METRICS)} "
                "or a callable."
            )

        if exact:
            affinity_in = EntropicAffinity(
                perplexity=perplexity,
                tol=tol_affinity,
                max_iter=max_iter_affinity,
                metric="sqeuclidean",
                device=device,
                verbose=verbose,
            )
        elif threshold is not None:
            affinity_in = ThresholdEntropicAffinity(
                perplexity=perplexity,
                threshold=threshold,
                tol=tol_affinity,
                max_iter=max_iter_affinity,
                metric="sqeuclidean",
                device=device,
                verbose=verbose,
            )
        else:
            affinity_in = KNNEntropicAffinity(
                perplexity=perplexity,
                n_neighbors=n_neighbors,
                tol=tol_affinity,
                max_iter=max_iter_affinity,
                metric=metric,
                device=device,
                verbose=verbose,
            )

        super().__init__(
            affinity_in=affinity_in,
            n_components=n_components,
            lr=lr,
            max_iter=max_iter,
            init=init,
            init_scaling=init_scaling,
            device=device,
            verbose=verbose,
            random_state=random_state,
            early_exaggeration=early_exaggeration,
            early_exaggeration_iter=early_exaggeration_iter,
            momentum=momentum,
            final_momentum=final_momentum,
            momentum_switch_iter=momentum_switch_iter,
            min_gain=min_gain,
            check_interval=check_interval,
            logger=logger,
            cancel=cancel,
        )

    @property
    def exact(self) -> bool:
        return self.theta == 0

    def _compute_gradients(self):
        if self.exact:
            return exact_gradient(self.affinity_in_, self.embedding_)
        return barnes_hut_gradient(self.affinity_in_, self.embedding_, self.theta)

    @torch.no_grad()
    def _compute_loss(self):
        if self.exact:
            return kl_divergence(self.affinity_in_, self.embedding_)
        return barnes_hut_kl_divergence(self.affinity_in_, self.embedding_, self.theta)
