"""
Data structures for the random-forest regression engine.

`Dataset` holds an immutable standardized feature matrix with its targets,
and `RegressionTree` stores one fitted tree as an index-addressed node arena.
"""

from data_structures.dataset import Dataset
from data_structures.tree import LEAF, RegressionTree, TreeArenaBuilder

__all__ = ["Dataset", "LEAF", "RegressionTree", "TreeArenaBuilder"]
