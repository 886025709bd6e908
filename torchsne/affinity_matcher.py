"""Affinity matcher base classes."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#         Titouan Vayer <titouan.vayer@inria.fr>
#         Nicolas Courty <ncourty@irisa.fr>
#
# License: BSD 3-Clause License

import logging

import numpy as np
import torch

from torchsne.affinity import Affinity
from torchsne.base import DRModule
from torchsne.utils import (
    CSRMatrix,
    GainsMomentumSGD,
    check_NaNs,
    timed_context,
    to_torch,
)

from typing import Callable, Union, Dict, Optional, Any, Type


class AffinityMatcher(DRModule):
    r"""Perform dimensionality reduction by matching two affinity matrices.

    It amounts to solving a problem of the form:

    .. math::

        \min_{\mathbf{Z}} \: \mathcal{L}( \mathbf{P}, \mathbf{Q})

    where :math:`\mathcal{L}` is a loss function, :math:`\mathbf{P}` is the
    input affinity matrix and :math:`\mathbf{Q}` is the affinity matrix of the
    embedding.

    The input affinity is computed once. The embedding is then optimized by a
    first-order method fed with gradients computed directly by
    ``_compute_gradients``, without automatic differentiation. Every
    ``check_interval`` iterations and at the last one, the loss is evaluated,
    stored in ``history_`` and reported through the logger.

    Parameters
    ----------
    affinity_in : Affinity
        The affinity object for the input space.
    n_components : int, optional
        Number of dimensions for the embedding. Default is 2.
    optimizer : str or torch.optim.Optimizer, optional
        Name of an optimizer from torch.optim or an optimizer class.
        Default is :class:`~torchsne.utils.GainsMomentumSGD`.
    optimizer_kwargs : dict, optional
        Additional keyword arguments for the optimizer.
    lr : float, optional
        Learning rate for the optimizer. Default is 200.
    max_iter : int, optional
        Number of iterations. Default is 1000.
    init : {"random", "normal"}, torch.Tensor or np.ndarray, optional
        Initialization of the embedding. "random" draws Gaussian coordinates
        scaled by ``init_scaling``, an array is used as is. Default is "random".
    init_scaling : float, optional
        Scaling factor for the random initial embedding. Default is 1e-4.
    device : str, optional
        Device to use for computations. Default is "auto".
    verbose : bool, optional
        Verbosity of the optimization process. Default is False.
    random_state : float, optional
        Random seed for reproducibility. Default is None.
    check_interval : int, optional
        Number of iterations between two evaluations of the loss. Default is 50.
    logger : logging.Logger, optional
        Logger receiving progress messages, also used by ``affinity_in``.
    cancel : callable, optional
        Checked once before any computation.
    """  # noqa: E501

    _loop_name = "Main optimization loop"

    def __init__(
        self,
        affinity_in: Affinity,
        n_components: int = 2,
        optimizer: Union[str, Type[torch.optim.Optimizer]] = GainsMomentumSGD,
        optimizer_kwargs: Optional[Dict] = None,
        lr: float = 200.0,
        max_iter: int = 1000,
        init: Union[str, torch.Tensor, np.ndarray] = "random",
        init_scaling: float = 1e-4,
        device: str = "auto",
        verbose: bool = False,
        random_state: Optional[float] = None,
        check_interval: int = 50,
        logger: Optional[logging.Logger] = None,
        cancel: Optional[Callable[[], bool]] = None,
        **kwargs,
    ):
        super().__init__(
            n_components=n_components,
            device=device,
            verbose=verbose,
            random_state=random_state,
            logger=logger,
            cancel=cancel,
            **kwargs,
        )

        self.optimizer = optimizer
        self.optimizer_kwargs = optimizer_kwargs
        self.lr = lr
        if check_interval < 1:
            raise ValueError(
                "[TorchSNE] ERROR : check_interval must be a positive integer, "
                f"got {check_interval}."
            )
        self.check_interval = check_interval
        self.max_iter = max_iter

        self.init = init
        self.init_scaling = init_scaling

        if not isinstance(affinity_in, Affinity):
            raise ValueError(
                "[TorchSNE] ERROR : affinity_in must be an Affinity instance."
            )
        self.affinity_in = affinity_in
        self.affinity_in._pre_processed = True
        if logger is not None:
            self.affinity_in.logger = logger

        self.n_iter_ = -1

    def _fit_transform(self, X: torch.Tensor, y: Optional[Any] = None) -> torch.Tensor:
        """Fit the model from data in X.

        Parameters
        ----------
        X : torch.Tensor of shape (n_samples, n_features)
            Input data.
        y : None
            Ignored.

        Returns
        -------
        embedding_ : torch.Tensor
            The embedding of the input data.
        """
        self.n_samples_in_, self.n_features_in_ = X.shape

        # --- Input affinity computation ---

        self.on_affinity_computation_start()
        self.logger.info(
            f"----- Computing the input affinity matrix with "
            f"{self.affinity_in.__class__.__name__} -----"
        )
        with timed_context(self.logger, "Input similarities computation"):
            affinity_matrix = self.affinity_in(X)

        # CSRMatrix is not a tensor and can't be registered as a buffer
        if isinstance(affinity_matrix, CSRMatrix):
            self.affinity_in_ = affinity_matrix
        else:
            self.register_buffer("affinity_in_", affinity_matrix, persistent=False)

        self.on_affinity_computation_end()

        # --- Embedding optimization ---

        self.logger.info("----- Optimizing the embedding -----")
        self._init_embedding(X)
        self._set_params()
        self._set_learning_rate()
        self._configure_optimizer()
        del X

        self.history_ = []
        self.kl_divergence_ = None
        with timed_context(self.logger, self._loop_name):
            for step in range(self.max_iter):
                self.n_iter_ = step

                self.on_training_step_start()
                self._training_step()
                self.on_training_step_end()

                check_NaNs(
                    self.embedding_,
                    msg="[TorchSNE] ERROR AffinityMatcher : NaNs in the embeddings "
                    f"at iter {step}.",
                )

                if step > 0 and (
                    step % self.check_interval == 0 or step == self.max_iter - 1
                ):
                    self.kl_divergence_ = float(self._compute_loss())
                    self.history_.append((step, self.kl_divergence_))
                    self.logger.info(f"Iteration {step}: error is {self.kl_divergence_}")

        self.n_iter_ = self.max_iter

        # Always clear memory after training
        self.clear_memory()

        return self.embedding_

    @torch.no_grad()
    def _training_step(self):
        self.optimizer_.zero_grad(set_to_none=True)
        self.embedding_.grad = self._compute_gradients()
        self.optimizer_.step()

    def _compute_gradients(self):
        raise NotImplementedError(
            "[TorchSNE] ERROR : _compute_gradients method must be implemented."
        )

    def _compute_loss(self):
        raise NotImplementedError(
            "[TorchSNE] ERROR : _compute_loss method must be implemented."
        )

    def on_affinity_computation_start(self):
        pass

    def on_affinity_computation_end(self):
        pass

    def on_training_step_start(self):
        pass

    def on_training_step_end(self):
        pass

    def _set_params(self):
        self.params_ = [{"params": self.embedding_}]
        return self.params_

    def _configure_optimizer(self):
        if isinstance(self.optimizer, str):
            # Try to get the optimizer from torch.optim
            try:
                optimizer_class = getattr(torch.optim, self.optimizer)
            except AttributeError:
                raise ValueError(
                    f"[TorchSNE] ERROR: Optimizer '{self.optimizer}' not found in torch.optim."
                )
        else:
            if not (
                isinstance(self.optimizer, type)
                and issubclass(self.optimizer, torch.optim.Optimizer)
            ):
                raise ValueError(
                    "[TorchSNE] ERROR: optimizer must be a string (name of an optimizer in "
                    "torch.optim) or a subclass of torch.optim.Optimizer."
                )
            optimizer_class = self.optimizer

        self.optimizer_ = optimizer_class(
            self.params_, lr=self.lr_, **(self.optimizer_kwargs or {})
        )
        return self.optimizer_

    def _set_learning_rate(self):
        self.lr_ = self.lr

    def _init_embedding(self, X):
        n = X.shape[0]
        target_device = X.device

        if isinstance(self.init, (torch.Tensor, np.ndarray)):
            embedding_ = to_torch(self.init)
            if tuple(embedding_.shape) != (n, self.n_components):
                raise ValueError(
                    f"[TorchSNE] ERROR : init has shape {tuple(embedding_.shape)}, "
                    f"expected {(n, self.n_components)}."
                )
            self.embedding_ = embedding_.to(device=target_device, dtype=X.dtype).clone()

        elif self.init == "normal" or self.init == "random":
            generator = torch.Generator(device=target_device)
            if self.random_state is not None:
                generator.manual_seed(int(self.random_state))
            else:
                generator.seed()
            embedding_ = torch.randn(
                (n, self.n_components),
                generator=generator,
                device=target_device,
                dtype=X.dtype,
            )
            self.embedding_ = self.init_scaling * embedding_

        else:
            raise ValueError(
                f"[TorchSNE] ERROR : init {self.init} not supported in "
                f"{self.__class__.__name__}."
            )

        return self.embedding_.requires_grad_()

    def clear_memory(self):
        """Clear all training-related memory including buffers and optimizer state."""
        super().clear_memory()

        # CSRMatrix affinities are plain attributes
        if hasattr(self, "affinity_in_"):
            delattr(self, "affinity_in_")

        self.affinity_in.clear_memory()

        for attr in ["optimizer_", "params_", "lr_"]:
            if hasattr(self, attr):
                delattr(self, attr)
