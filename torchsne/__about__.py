# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License


__all__ = [
    "__title__",
    "__summary__",
    "__version__",
    "__author__",
    "__license__",
    "__url__",
]

__title__ = "torchsne"
__summary__ = "Exact and Barnes-Hut t-SNE using PyTorch"
__version__ = "0.1"
__author__ = "Hugues Van Assel"
__license__ = "BSD-3-Clause-Clear"
__url__ = "https://github.com/TorchDR/TorchDR"
