# Author: Hugues Van Assel <vanasselhugues@gmail.com>
#
# License: BSD 3-Clause License

from .quadtree import QuadTree
from .vptree import VPTREE_METRICS, VPTree

__all__ = ["QuadTree", "VPTree", "VPTREE_METRICS"]
