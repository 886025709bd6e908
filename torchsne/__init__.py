# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

from .__about__ import (
    __author__,
    __license__,
    __summary__,
    __title__,
    __url__,
    __version__,
)

# import affinities
from .affinity import (
    Affinity,
    SparseAffinity,
    EntropicAffinity,
    KNNEntropicAffinity,
    ThresholdEntropicAffinity,
)
from .affinity_matcher import AffinityMatcher

# import DR methods
from .base import DRModule
from .exceptions import CancelledError, UnsupportedConfigurationError
from .losses import barnes_hut_kl_divergence, kl_divergence
from .neighbor_embedding import (
    TSNE,
    NeighborEmbedding,
    barnes_hut_gradient,
    exact_gradient,
)
from .spatial import QuadTree, VPTree

# import utils
from .utils import CSRMatrix, binary_search_precision, symmetrize_csr
from .distance import pairwise_distances

__all__ = [
    "__title__",
    "__summary__",
    "__url__",
    "__version__",
    "__author__",
    "__license__",
    "Affinity",
    "SparseAffinity",
    "EntropicAffinity",
    "KNNEntropicAffinity",
    "ThresholdEntropicAffinity",
    "DRModule",
    "AffinityMatcher",
    "NeighborEmbedding",
    "TSNE",
    "VPTree",
    "QuadTree",
    "CSRMatrix",
    "symmetrize_csr",
    "binary_search_precision",
    "pairwise_distances",
    "exact_gradient",
    "barnes_hut_gradient",
    "kl_divergence",
    "barnes_hut_kl_divergence",
    "CancelledError",
    "UnsupportedConfigurationError",
]
