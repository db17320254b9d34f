from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from data_structures.dataset import Dataset
from data_structures.tree import RegressionTree, TreeArenaBuilder
from errors import InvalidInputError
from random_source import RandomSource
from split_search import VarianceSplitFinder

MAX_FEATURES_STRATEGIES = ("sqrt", "log2")


def require_int(name: str, value, minimum: int | None = None) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if minimum is not None and value < minimum:
        raise InvalidInputError(f"{name} must be >= {minimum}")


def validate_max_features(max_features) -> None:
    if max_features is None:
        return
    if isinstance(max_features, str):
        if max_features not in MAX_FEATURES_STRATEGIES:
            raise InvalidInputError("max_features must be one of: sqrt, log2, or a fraction in (0, 1]")
        return
    if isinstance(max_features, bool) or not isinstance(max_features, (int, float)):
        raise InvalidInputError(f"unsupported max_features: {max_features!r}")
    if not (0.0 < float(max_features) <= 1.0):
        raise InvalidInputError("fractional max_features must be in (0, 1]")


def n_features_to_try(max_features, n_features: int) -> int:
    """Number of features sampled per node; None and unknown strategies fall back to sqrt."""
    if max_features == "log2":
        count = int(math.floor(math.log2(n_features)))
    elif isinstance(max_features, (int, float)) and not isinstance(max_features, bool):
        count = int(math.floor(float(max_features) * n_features))
    else:
        count = int(math.floor(math.sqrt(n_features)))
    return min(max(1, count), n_features)


@dataclass
class TreeBuilderParams:
    max_depth: int = 10
    min_samples_split: int = 5
    min_samples_leaf: int = 1
    max_features: str | float | None = "sqrt"

    def __post_init__(self) -> None:
        require_int("max_depth", self.max_depth, minimum=0)
        require_int("min_samples_split", self.min_samples_split, minimum=1)
        require_int("min_samples_leaf", self.min_samples_leaf, minimum=1)
        validate_max_features(self.max_features)


class TreeBuilder:
    """Grows one regression tree by recursive variance-minimizing partitioning.

    A node becomes a leaf predicting the mean of its targets when, in order:
    depth has reached max_depth, it holds fewer than min_samples_split rows,
    its targets are all equal, or no valid split exists among the randomly
    chosen candidate features.
    """

    def __init__(self, params: TreeBuilderParams, random_source: RandomSource) -> None:
        self.params = params
        self.random_source = random_source
        self.split_finder = VarianceSplitFinder(
            min_samples_split=params.min_samples_split,
            min_samples_leaf=params.min_samples_leaf,
        )
        self.nodes_split = 0

    def _is_leaf(self, targets: np.ndarray, depth: int) -> bool:
        if depth >= self.params.max_depth:
            return True
        if targets.size < self.params.min_samples_split:
            return True
        if np.all(targets == targets[0]):
            return True
        return False

    def _candidate_features(self, n_features: int) -> list[int]:
        size = n_features_to_try(self.params.max_features, n_features)
        return self.random_source.choice_without_replacement(n_features, size)

    def build(self, dataset: Dataset, depth: int = 0) -> RegressionTree:
        """Grow a tree over every row of `dataset`. Stored node depths are relative to `depth`."""
        arena = TreeArenaBuilder()
        # (rows, depth, parent_id, is_left); left subtrees are grown before right ones.
        stack = [(np.arange(dataset.n_samples, dtype=np.int64), depth, None, True)]

        while stack:
            rows, node_depth, parent_id, is_left = stack.pop()
            targets = dataset.y[rows]

            split = None
            if not self._is_leaf(targets, node_depth):
                features = self._candidate_features(dataset.n_features)
                split = self.split_finder.find_best_split(dataset, features, rows=rows)

            if split is None:
                node_id = arena.add_leaf(float(np.mean(targets)), node_depth - depth)
            else:
                node_id = arena.add_internal(
                    split.feature_index, split.threshold, node_depth - depth
                )
                go_left = dataset.X[rows, split.feature_index] <= split.threshold
                stack.append((rows[~go_left], node_depth + 1, node_id, False))
                stack.append((rows[go_left], node_depth + 1, node_id, True))
                self.nodes_split += 1

            if parent_id is not None:
                arena.attach(parent_id, node_id, is_left)

        return arena.freeze()
