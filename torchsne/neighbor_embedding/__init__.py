# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License


from .base import NeighborEmbedding
from .gradients import barnes_hut_gradient, exact_gradient
from .tsne import TSNE

__all__ = [
    "NeighborEmbedding",
    "TSNE",
    "exact_gradient",
    "barnes_hut_gradient",
]
