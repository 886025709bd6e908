# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

from .base import Affinity, SparseAffinity
from .entropic import (
    EntropicAffinity,
    KNNEntropicAffinity,
    ThresholdEntropicAffinity,
    check_perplexity,
)

__all__ = [
    "Affinity",
    "SparseAffinity",
    "EntropicAffinity",
    "KNNEntropicAffinity",
    "ThresholdEntropicAffinity",
    "check_perplexity",
]
