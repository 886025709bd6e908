# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

from .base import pairwise_distances
from .torch import pairwise_distances_torch, LIST_METRICS_TORCH

__all__ = [
    "pairwise_distances",
    "pairwise_distances_torch",
    "LIST_METRICS_TORCH",
]
