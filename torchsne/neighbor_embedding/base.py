"""Base classes for Neighbor Embedding methods."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import logging
from typing import Any, Callable, Dict, Optional, Type, Union

import numpy as np
import torch

from torchsne.affinity import Affinity
from torchsne.affinity_matcher import AffinityMatcher
from torchsne.utils import GainsMomentumSGD, zero_mean


class NeighborEmbedding(AffinityMatcher):
    r"""Solves the neighbor embedding problem.

    It amounts to solving:

    .. math::

        \min_{\mathbf{Z}} \: - \lambda \sum_{ij} P_{ij} \log Q_{ij} + \mathcal{L}_{\mathrm{rep}}(\mathbf{Q})

    where :math:`\mathbf{P}` is the input affinity matrix, :math:`\mathbf{Q}` is the
    output affinity matrix, :math:`\mathcal{L}_{\mathrm{rep}}` is the repulsive
    term of the loss function, :math:`\lambda` is the :attr:`early_exaggeration`
    parameter.

    The input data is centered and scaled by its largest absolute coefficient
    before the affinity is computed. The affinity is multiplied by
    :math:`\lambda` once computed and divided back at iteration
    :attr:`early_exaggeration_iter`. The momentum of the optimizer switches
    from :attr:`momentum` to :attr:`final_momentum` at iteration
    :attr:`momentum_switch_iter`. The embedding is re-centered after every
    update.

    Parameters
    ----------
    affinity_in : Affinity
        The affinity object for the input space.
    n_components : int, optional
        Number of dimensions for the embedding. Default is 2.
    lr : float, optional
        Learning rate for the optimizer. Default is 200.
    optimizer : str or torch.optim.Optimizer, optional
        Name of an optimizer from torch.optim or an optimizer class.
        Default is :class:`~torchsne.utils.GainsMomentumSGD`.
    optimizer_kwargs : dict, optional
        Additional keyword arguments for the optimizer. By default, momentum
        and min_gain are passed to :class:`~torchsne.utils.GainsMomentumSGD`.
    max_iter : int, optional
        Number of iterations. Default is 1000.
    init : {"random", "normal"}, torch.Tensor or np.ndarray, optional
        Initialization for the embedding. Default is "random".
    init_scaling : float, optional
        Scaling factor for the random initial embedding. Default is 1e-4.
    device : str, optional
        Device to use for computations. Default is "auto".
    verbose : bool, optional
        Verbosity. Default is False.
    random_state : float, optional
        Random seed for reproducibility. Default is None.
    early_exaggeration : float, optional
        Coefficient applied to the input affinity during the early
        exaggeration phase. Default is 12.
    early_exaggeration_iter : int, optional
        Iteration at which the early exaggeration phase ends. Default is 250.
    momentum : float, optional
        Momentum before ``momentum_switch_iter``. Default is 0.5.
    final_momentum : float, optional
        Momentum after ``momentum_switch_iter``. Default is 0.8.
    momentum_switch_iter : int, optional
        Iteration at which the momentum is switched. Default is 250.
    min_gain : float, optional
        Lower bound of the adaptive gains. Default is 0.01.
    check_interval : int, optional
        Number of iterations between two evaluations of the loss. Default is 50.
    logger : logging.Logger, optional
        Logger receiving progress messages.
    cancel : callable, optional
        Checked once before any computation.
    """  # noqa: E501

    def __init__(
        self,
        affinity_in: Affinity,
        n_components: int = 2,
        lr: float = 200.0,
        optimizer: Union[str, Type[torch.optim.Optimizer]] = GainsMomentumSGD,
        optimizer_kwargs: Optional[Dict] = None,
        max_iter: int = 1000,
        init: Union[str, torch.Tensor, np.ndarray] = "random",
        init_scaling: float = 1e-4,
        device: str = "auto",
        verbose: bool = False,
        random_state: Optional[float] = None,
        early_exaggeration: float = 12.0,
        early_exaggeration_iter: int = 250,
        momentum: float = 0.5,
        final_momentum: float = 0.8,
        momentum_switch_iter: int = 250,
        min_gain: float = 0.01,
        check_interval: int = 50,
        logger: Optional[logging.Logger] = None,
        cancel: Optional[Callable[[], bool]] = None,
        **kwargs: Any,
    ):
        self.early_exaggeration = early_exaggeration
        self.early_exaggeration_iter = early_exaggeration_iter
        self.momentum = momentum
        self.final_momentum = final_momentum
        self.momentum_switch_iter = momentum_switch_iter
        self.min_gain = min_gain

        super().__init__(
            affinity_in=affinity_in,
            n_components=n_components,
            optimizer=optimizer,
            optimizer_kwargs=optimizer_kwargs,
            lr=lr,
            max_iter=max_iter,
            init=init,
            init_scaling=init_scaling,
            device=device,
            verbose=verbose,
            random_state=random_state,
            check_interval=check_interval,
            logger=logger,
            cancel=cancel,
            **kwargs,
        )

    def _fit_transform(self, X: torch.Tensor, y: Optional[Any] = None) -> torch.Tensor:
        # early_exaggeration_coeff_ changes during the optimization
        self.early_exaggeration_coeff_ = self.early_exaggeration

        X = X - X.mean(dim=0, keepdim=True)
        max_abs = X.abs().max()
        if max_abs > 0:
            X = X / max_abs

        return super()._fit_transform(X, y)

    def on_affinity_computation_end(self):
        if self.early_exaggeration_coeff_ != 1:
            self.affinity_in_.mul_(self.early_exaggeration_coeff_)
        return self

    @torch.no_grad()
    def on_training_step_end(self):
        zero_mean(self.embedding_)

        if (  # stop early exaggeration phase
            self.early_exaggeration_coeff_ != 1
            and self.n_iter_ == self.early_exaggeration_iter
        ):
            self.affinity_in_.div_(self.early_exaggeration_coeff_)
            self.early_exaggeration_coeff_ = 1
            self.logger.info(f"End of early exaggeration at iter {self.n_iter_}.")

        if self.n_iter_ == self.momentum_switch_iter:
            for group in self.optimizer_.param_groups:
                if "momentum" in group:
                    group["momentum"] = self.final_momentum

        return self

    def _configure_optimizer(self):
        if self.optimizer is GainsMomentumSGD and self.optimizer_kwargs is None:
            self.optimizer_ = GainsMomentumSGD(
                self.params_,
                lr=self.lr_,
                momentum=self.momentum,
                min_gain=self.min_gain,
            )
            return self.optimizer_
        return super()._configure_optimizer()
