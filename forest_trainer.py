from __future__ import annotations

from dataclasses import asdict, dataclass, fields

import numpy as np
from joblib import Parallel, delayed
from loguru import logger

from bootstrap import BootstrapSampler
from data_structures.dataset import Dataset
from data_structures.tree import RegressionTree
from errors import InvalidInputError
from importance import compute_importance
from random_source import RandomSource
from tree_builder import TreeBuilder, TreeBuilderParams, require_int, validate_max_features

PROGRESS_EVERY_N_TREES = 20


def validate_n_jobs(n_jobs) -> None:
    """joblib semantics: a positive worker count, or negative to count back from all cores."""
    if isinstance(n_jobs, bool) or not isinstance(n_jobs, (int, np.integer)) or n_jobs == 0:
        raise InvalidInputError(f"n_jobs must be a non-zero integer, got {n_jobs!r}")


@dataclass(frozen=True)
class Hyperparameters:
    n_estimators: int = 100
    max_depth: int = 10
    min_samples_split: int = 5
    min_samples_leaf: int = 1
    max_features: str | float | None = "sqrt"
    random_seed: int = 42
    bootstrap: bool = True

    def __post_init__(self) -> None:
        require_int("n_estimators", self.n_estimators, minimum=1)
        require_int("max_depth", self.max_depth, minimum=0)
        require_int("min_samples_split", self.min_samples_split, minimum=1)
        require_int("min_samples_leaf", self.min_samples_leaf, minimum=1)
        require_int("random_seed", self.random_seed, minimum=0)
        if not isinstance(self.bootstrap, (bool, np.bool_)):
            raise InvalidInputError(f"bootstrap must be a bool, got {self.bootstrap!r}")
        validate_max_features(self.max_features)

    def tree_params(self) -> TreeBuilderParams:
        return TreeBuilderParams(
            max_depth=self.max_depth,
            min_samples_split=self.min_samples_split,
            min_samples_leaf=self.min_samples_leaf,
            max_features=self.max_features,
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Hyperparameters":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidInputError(f"unknown hyperparameters: {sorted(unknown)}")
        return cls(**data)


class RandomForest:
    """Bagged regression trees; the prediction is the mean over all trees."""

    def __init__(
        self,
        trees: list[RegressionTree],
        feature_names: list[str],
        hyperparameters: Hyperparameters,
    ) -> None:
        if not trees:
            raise InvalidInputError("a forest needs at least one tree")
        if len(trees) != hyperparameters.n_estimators:
            raise InvalidInputError(
                f"expected {hyperparameters.n_estimators} trees, got {len(trees)}"
            )
        for tree in trees:
            used = tree.feature[tree.internal_nodes()]
            if used.size and (used.min() < 0 or used.max() >= len(feature_names)):
                raise InvalidInputError(
                    f"tree split feature indices must lie in [0, {len(feature_names)})"
                )
        self.trees = tuple(trees)
        self.feature_names = tuple(feature_names)
        self.hyperparameters = hyperparameters

    @property
    def n_features(self) -> int:
        return len(self.feature_names)

    def _check_width(self, width: int) -> None:
        if width != self.n_features:
            raise InvalidInputError(
                f"forest was trained on {self.n_features} features, got {width}"
            )

    def predict(self, features) -> float:
        x = np.asarray(features, dtype=np.float64)
        if x.ndim != 1:
            raise InvalidInputError("predict expects a single 1D feature vector")
        self._check_width(x.shape[0])
        if not np.all(np.isfinite(x)):
            raise InvalidInputError("feature vector contains non-finite values")
        return float(np.mean([tree.predict_row(x) for tree in self.trees]))

    def predict_batch(self, X) -> np.ndarray:
        X = np.asarray(X, dtype=np.float64)
        if X.ndim != 2:
            raise InvalidInputError("predict_batch expects a 2D feature matrix")
        self._check_width(X.shape[1])
        if not np.all(np.isfinite(X)):
            raise InvalidInputError("feature matrix contains non-finite values")
        preds = np.zeros(X.shape[0], dtype=np.float64)
        for tree in self.trees:
            preds += tree.predict_batch(X)
        return preds / len(self.trees)

    def feature_importance(self) -> np.ndarray:
        return compute_importance(self)

    def to_dict(self) -> dict:
        return {
            "hyperparameters": self.hyperparameters.to_dict(),
            "feature_names": list(self.feature_names),
            "trees": [tree.to_record() for tree in self.trees],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RandomForest":
        try:
            return cls(
                trees=[RegressionTree.from_record(t) for t in data["trees"]],
                feature_names=list(data["feature_names"]),
                hyperparameters=Hyperparameters.from_dict(data["hyperparameters"]),
            )
        except KeyError as e:
            raise InvalidInputError(f"forest record is missing field {e}") from e
        except TypeError as e:
            raise InvalidInputError(f"malformed forest record: {e}") from e


def _build_one_tree(
    dataset: Dataset,
    tree_params: TreeBuilderParams,
    seed: int,
    bootstrap: bool,
) -> RegressionTree:
    random_source = RandomSource(seed)
    sample = BootstrapSampler.sample(dataset, random_source) if bootstrap else dataset
    return TreeBuilder(tree_params, random_source).build(sample)


class ForestTrainer:
    """Trains a RandomForest on an already standardized training partition.

    One child seed per tree is drawn from the parent RandomSource before any
    tree is grown, so the forest is the same for every n_jobs setting.
    """

    def __init__(self, params: Hyperparameters | None = None, n_jobs: int = 1) -> None:
        validate_n_jobs(n_jobs)
        self.params = params or Hyperparameters()
        self.n_jobs = n_jobs

    def fit(
        self,
        X,
        y,
        feature_names: list[str],
        random_source: RandomSource | None = None,
    ) -> RandomForest:
        dataset = X if isinstance(X, Dataset) else Dataset(X, y)
        if len(feature_names) != dataset.n_features:
            raise InvalidInputError(
                f"got {len(feature_names)} feature names for {dataset.n_features} features"
            )
        if random_source is None:
            random_source = RandomSource(self.params.random_seed)

        tree_params = self.params.tree_params()
        seeds = [random_source.next_seed() for _ in range(self.params.n_estimators)]
        logger.info(
            f"Building {self.params.n_estimators} trees on {dataset.n_samples} rows "
            f"x {dataset.n_features} features (n_jobs={self.n_jobs})"
        )

        if self.n_jobs == 1:
            trees = []
            for tree_idx, seed in enumerate(seeds):
                if tree_idx % PROGRESS_EVERY_N_TREES == 0:
                    logger.debug(f"Tree {tree_idx + 1}/{self.params.n_estimators}")
                trees.append(_build_one_tree(dataset, tree_params, seed, self.params.bootstrap))
        else:
            trees = Parallel(n_jobs=self.n_jobs, backend="threading")(
                delayed(_build_one_tree)(dataset, tree_params, seed, self.params.bootstrap)
                for seed in seeds
            )

        forest = RandomForest(
            trees=list(trees),
            feature_names=list(feature_names),
            hyperparameters=self.params,
        )
        logger.info(
            f"Random forest ready: {len(forest.trees)} trees, "
            f"{sum(t.internal_nodes().size for t in forest.trees)} splits"
        )
        return forest
