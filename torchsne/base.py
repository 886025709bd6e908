"""Base classes for DR methods."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

import logging
from abc import ABC, abstractmethod

import torch
import torch.nn as nn
import numpy as np
from sklearn.base import BaseEstimator

from torchsne.exceptions import CancelledError
from torchsne.utils import (
    seed_everything,
    set_logger,
    handle_type,
)

from typing import Callable, Optional, Any, TypeVar

ArrayLike = TypeVar("ArrayLike", torch.Tensor, np.ndarray)


class DRModule(BaseEstimator, nn.Module, ABC):
    """Base class for DR methods.

    Each children class should implement the _fit_transform method.

    Parameters
    ----------
    n_components : int, optional
        Number of dimensions for the embedding. Default is 2.
    device : str, optional
        Device to use for computations. Default is "auto".
    verbose : bool, optional
        Verbosity of the optimization process. Default is False.
    random_state : float, optional
        Random seed for reproducibility. Default is None.
    logger : logging.Logger, optional
        Logger receiving progress messages. If None, a logger named after the
        class is created with :func:`~torchsne.utils.set_logger`.
    cancel : callable, optional
        Called without arguments once before any computation. If it returns
        True, :class:`~torchsne.CancelledError` is raised.
    """

    def __init__(
        self,
        n_components: int = 2,
        device: str = "auto",
        verbose: bool = False,
        random_state: Optional[float] = None,
        logger: Optional[logging.Logger] = None,
        cancel: Optional[Callable[[], bool]] = None,
        **kwargs,
    ):
        super().__init__()

        self.n_components = n_components
        self.device = device
        self.verbose = verbose
        self.random_state = random_state
        self.cancel = cancel

        if logger is None:
            logger = set_logger(self.__class__.__name__, self.verbose)
        self.logger = logger

        if self.random_state is not None:
            self._actual_seed = seed_everything(
                self.random_state, fast=True, deterministic=False
            )
            self.logger.info(f"Random seed set to: {self._actual_seed}.")

        self.embedding_ = None
        self.is_fitted_ = False

    @abstractmethod
    def _fit_transform(self, X: torch.Tensor, y: Optional[Any] = None) -> torch.Tensor:
        """Fit the dimensionality reduction model and transform the input data.

        This method should be implemented by subclasses and contains the core
        logic for the DR algorithm.

        Parameters
        ----------
        X : torch.Tensor of shape (n_samples, n_features)
            Input data.
        y : None
            Ignored.

        Returns
        -------
        embedding_ : torch.Tensor of shape (n_samples, n_components)
            The embedding of the input data in the lower-dimensional space.
        """
        raise NotImplementedError(
            "[TorchSNE] ERROR : _fit_transform method is not implemented."
        )

    @handle_type()
    def fit(self, X: ArrayLike, y: Optional[Any] = None) -> "DRModule":
        """Fit the dimensionality reduction model from the input data.

        Parameters
        ----------
        X : ArrayLike of shape (n_samples, n_features)
            Input data.
        y : None
            Ignored.

        Returns
        -------
        self : DRModule
            The fitted DRModule instance.
        """
        self.fit_transform(X, y=y)
        return self

    @handle_type()
    def fit_transform(
        self,
        X: ArrayLike,
        y: Optional[Any] = None,
        out: Optional[ArrayLike] = None,
    ) -> ArrayLike:
        """Fit the dimensionality reduction model and transform the input data.

        Parameters
        ----------
        X : ArrayLike of shape (n_samples, n_features)
            Input data.
        y : None
            Ignored.
        out : ArrayLike of shape (n_samples, n_components), optional
            If given, the embedding is also written into it in place.

        Returns
        -------
        embedding_ : ArrayLike of shape (n_samples, n_components)
            The embedding of the input data in the lower-dimensional space.

        Raises
        ------
        CancelledError
            If the ``cancel`` callable returns True before the computation.
        """
        if out is not None and tuple(out.shape) != (X.shape[0], self.n_components):
            raise ValueError(
                f"[TorchSNE] ERROR : out has shape {tuple(out.shape)}, expected "
                f"{(X.shape[0], self.n_components)}."
            )
        if self.cancel is not None and self.cancel():
            raise CancelledError(
                f"[TorchSNE] {self.__class__.__name__} was cancelled before "
                "the computation started."
            )

        self.embedding_ = self._fit_transform(X, y=y).detach()
        self.is_fitted_ = True

        if out is not None:
            if isinstance(out, torch.Tensor):
                out.copy_(self.embedding_)
            else:
                out[...] = self.embedding_.cpu().numpy()
        return self.embedding_

    def transform(self, X: Optional[ArrayLike] = None) -> ArrayLike:
        """Transform the input data into the learned embedding space.

        This method can only be called after the model has been fitted.
        If `X` is not provided, it returns the embedding of the training data.

        Parameters
        ----------
        X : ArrayLike of shape (n_samples, n_features), optional
            The data to transform. If None, returns the training data embedding.
            t-SNE does not support transforming new data.

        Returns
        -------
        embedding_ : ArrayLike of shape (n_samples, n_components)
            The embedding of the input data.

        Raises
        ------
        NotImplementedError
            If X is given.
        ValueError
            If the model has not been fitted yet.
        """
        if not self.is_fitted_:
            raise ValueError(
                "This DRModule instance is not fitted yet. "
                "Call 'fit' or 'fit_transform' with some data first."
            )

        if X is not None:
            raise NotImplementedError(
                "Transforming new data is not implemented for this model."
            )

        return self.embedding_

    def clear_memory(self):
        """Clear non-persistent buffers to free memory after training."""
        if hasattr(self, "_non_persistent_buffers_set"):
            for name in list(self._non_persistent_buffers_set):
                if hasattr(self, name):
                    delattr(self, name)

        if torch.cuda.is_available():
            torch.cuda.empty_cache()
