# Author: Rémi Flamary <remi.flamary@polytechnique.edu>
#         Hugues Van Assel <vanasselhugues@gmail.com>
#         Nicolas Courty <ncourty@irisa.fr>
#
# License: BSD 3-Clause License

from .root_search import binary_search_precision
from .sparse import CSRMatrix, symmetrize_csr
from .optim import GainsMomentumSGD
from .utils import (
    seed_everything,
    set_logger,
    timed_context,
    entropy,
    tiny,
    zero_mean,
    bool_arg,
)
from .validation import (
    check_array,
    check_NaNs,
    check_nonnegativity,
    check_shape,
    check_similarity,
    check_symmetry,
    check_total_sum,
    relative_similarity,
)
from .wrappers import (
    handle_type,
    to_torch,
    torch_to_backend,
)

__all__ = [
    "binary_search_precision",
    "CSRMatrix",
    "symmetrize_csr",
    "GainsMomentumSGD",
    "seed_everything",
    "set_logger",
    "timed_context",
    "entropy",
    "tiny",
    "zero_mean",
    "bool_arg",
    "check_array",
    "check_NaNs",
    "check_nonnegativity",
    "check_shape",
    "check_similarity",
    "check_symmetry",
    "check_total_sum",
    "relative_similarity",
    "handle_type",
    "to_torch",
    "torch_to_backend",
]
