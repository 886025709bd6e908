"""Useful functions for logging, seeding and timing."""

# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#         Rémi Flamary <remi.flamary@polytechnique.edu>
#
# License: BSD 3-Clause License

import contextlib
import os
import random
import time
import logging
import numpy as np
import torch


def set_logger(name: str, verbose: bool = False) -> logging.Logger:
    """Set up a logger for a given name.

    Parameters
    ----------
    name : str
        The name of the logger.
    verbose : bool, optional
        Whether to set the logger level to INFO (if True) or WARNING (if False).
        Default is False.

    Returns
    -------
    logging.Logger
        The configured logger instance.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("[TorchSNE] %(name)s: %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if verbose:
        logger.setLevel(logging.INFO)
    else:
        logger.setLevel(logging.WARNING)

    return logger


@contextlib.contextmanager
def timed_context(logger: logging.Logger, name: str):
    """Report the wall-clock duration of a phase through ``logger``.

    Parameters
    ----------
    logger : logging.Logger
        Logger receiving the message, at INFO level.
    name : str
        Name of the phase, used in the reported message.
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        logger.info(f"{name} took {elapsed:.3f} seconds.")


def seed_everything(seed, fast=True, deterministic=False):
    """Seed all random number generators for reproducibility.

    Sets the seed for Python's random module, NumPy, PyTorch (CPU and GPU),
    and environment variables to ensure reproducible results across different runs.

    Parameters
    ----------
    seed : int or None
        The seed value to use. If None or negative, uses current time as seed.
    fast : bool, optional (default=True)
        If True, enables fast but non-deterministic cuDNN operations.
        If False, ensures deterministic cuDNN operations but may be slower.
    deterministic : bool, optional (default=False)
        If True, enables torch.use_deterministic_algorithms for maximum reproducibility.

    Returns
    -------
    int
        The actual seed value used.
    """
    if seed is None or not isinstance(seed, int) or seed < 0:
        seed = int(time.time())
    else:
        seed = int(seed)

    random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    torch.cuda.manual_seed_all(seed)

    if fast:
        torch.backends.cudnn.deterministic = False
        torch.backends.cudnn.benchmark = True
    else:
        torch.backends.cudnn.deterministic = True
        torch.backends.cudnn.benchmark = False

    if deterministic:
        torch.use_deterministic_algorithms(True)
        os.environ["CUBLAS_WORKSPACE_CONFIG"] = ":4096:8"

    return seed


def tiny(dtype: torch.dtype) -> float:
    """Smallest positive normal number representable with ``dtype``."""
    return torch.finfo(dtype).tiny


def zero_mean(X: torch.Tensor) -> torch.Tensor:
    """Subtract the column mean of X in place and return it."""
    X -= X.mean(dim=0, keepdim=True)
    return X


def entropy(P, log=False, dim=1):
    r"""Compute the Shannon entropy (in nats) of P along axis dim.

    Unlike the generalized entropy with the ``- 1`` offset, this is the usual
    :math:`- \sum_j P_j \log P_j`, so that a row with perplexity
    :math:`\xi` has entropy :math:`\log \xi`.

    Parameters
    ----------
    P : torch.Tensor
        Input probabilities, or log-probabilities if ``log`` is True.
    log : bool, optional
        If True, assumes that P is in log domain.
    dim : int, optional
        Axis along which entropy is computed.
    """
    if log:
        return -(P.exp() * P).sum(dim)
    return -torch.special.xlogy(P, P).sum(dim)


def bool_arg(arg):
    """Convert a string or int to a boolean."""
    if isinstance(arg, bool):
        return arg
    if isinstance(arg, str):
        return arg.lower() in ("true", "1", "yes")
    return bool(arg)
