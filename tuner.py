from __future__ import annotations

import itertools
from dataclasses import dataclass, field, fields
from typing import Callable, Iterator

import numpy as np
import pandas as pd
from loguru import logger

from data_structures.dataset import Dataset
from errors import InvalidInputError
from forest_trainer import ForestTrainer, Hyperparameters, RandomForest, validate_n_jobs
from metrics import RegressionMetrics, compute_metrics


@dataclass
class HyperparameterGrid:
    """One list of candidate values per hyperparameter; a single-value list pins that field."""

    n_estimators: list[int] = field(default_factory=lambda: [100])
    max_depth: list[int] = field(default_factory=lambda: [10])
    min_samples_split: list[int] = field(default_factory=lambda: [5])
    min_samples_leaf: list[int] = field(default_factory=lambda: [1])
    max_features: list = field(default_factory=lambda: ["sqrt"])
    random_seed: list[int] = field(default_factory=lambda: [42])
    bootstrap: list[bool] = field(default_factory=lambda: [True])

    def __post_init__(self) -> None:
        for f in fields(self):
            values = getattr(self, f.name)
            if not isinstance(values, (list, tuple)) or len(values) == 0:
                raise InvalidInputError(f"grid field '{f.name}' must be a non-empty list")

    @classmethod
    def default(cls) -> "HyperparameterGrid":
        """Grid used for the assists model: a single tuned configuration."""
        return cls(
            n_estimators=[75],
            max_depth=[10],
            min_samples_split=[5],
            min_samples_leaf=[2],
            max_features=["sqrt"],
            random_seed=[42],
        )

    def __len__(self) -> int:
        size = 1
        for f in fields(self):
            size *= len(getattr(self, f.name))
        return size


def iter_grid(grid: HyperparameterGrid) -> Iterator[Hyperparameters]:
    names = [f.name for f in fields(grid)]
    for combo in itertools.product(*(getattr(grid, name) for name in names)):
        yield Hyperparameters(**dict(zip(names, combo)))


@dataclass(frozen=True)
class TuningResult:
    params: Hyperparameters
    train_metrics: RegressionMetrics
    test_metrics: RegressionMetrics
    score: float

    def to_dict(self) -> dict:
        return {
            "params": self.params.to_dict(),
            "train_metrics": self.train_metrics.to_dict(),
            "test_metrics": self.test_metrics.to_dict(),
            "score": None if not np.isfinite(self.score) else self.score,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TuningResult":
        score = data.get("score")
        return cls(
            params=Hyperparameters.from_dict(data["params"]),
            train_metrics=RegressionMetrics.from_dict(data["train_metrics"]),
            test_metrics=RegressionMetrics.from_dict(data["test_metrics"]),
            score=float(score) if score is not None else -np.inf,
        )


@dataclass
class TuningOutcome:
    best_forest: RandomForest | None
    best_params: Hyperparameters | None
    best_score: float
    results: list[TuningResult]
    cancelled: bool = False


def selection_score(metrics: RegressionMetrics) -> float:
    """Test R^2, higher is better; an undefined R^2 never beats a defined one."""
    return metrics.r2 if metrics.r2_defined else -np.inf


def rank_results(results: list[TuningResult]) -> list[TuningResult]:
    return sorted(results, key=lambda r: r.score, reverse=True)


class HyperparameterTuner:
    """Exhaustive grid search scored on a held-out partition.

    Every combination is trained with its own random_seed value, which the
    default grid pins to a single value so all combinations see the same
    random stream. Ties go to the combination encountered first.
    """

    def __init__(self, grid: HyperparameterGrid | None = None, n_jobs: int = 1) -> None:
        validate_n_jobs(n_jobs)
        self.grid = grid or HyperparameterGrid.default()
        self.n_jobs = n_jobs

    def tune(
        self,
        train_X,
        train_y,
        test_X,
        test_y,
        feature_names: list[str],
        should_stop: Callable[[], bool] | None = None,
    ) -> TuningOutcome:
        train = Dataset(train_X, train_y)
        test = Dataset(test_X, test_y)
        if test.n_features != train.n_features:
            raise InvalidInputError(
                f"train has {train.n_features} features but test has {test.n_features}"
            )
        if len(feature_names) != train.n_features:
            raise InvalidInputError(
                f"got {len(feature_names)} feature names for {train.n_features} features"
            )

        logger.info(f"Starting hyperparameter tuning over {len(self.grid)} combinations")
        results: list[TuningResult] = []
        best_forest: RandomForest | None = None
        best: TuningResult | None = None
        cancelled = False

        for idx, params in enumerate(iter_grid(self.grid)):
            if should_stop is not None and should_stop():
                logger.warning(f"Tuning cancelled after {idx} combinations")
                cancelled = True
                break

            forest = ForestTrainer(params, n_jobs=self.n_jobs).fit(train, None, feature_names)
            train_metrics = compute_metrics(train.y, forest.predict_batch(train.X))
            test_metrics = compute_metrics(test.y, forest.predict_batch(test.X))
            if not test_metrics.r2_defined:
                logger.warning("Test R^2 is undefined (constant test targets); scoring as -inf")

            result = TuningResult(
                params=params,
                train_metrics=train_metrics,
                test_metrics=test_metrics,
                score=selection_score(test_metrics),
            )
            results.append(result)
            logger.info(
                f"[{idx + 1}/{len(self.grid)}] {params} -> test R2={test_metrics.r2:.4f} "
                f"RMSE={test_metrics.rmse:.3f} MAE={test_metrics.mae:.3f}"
            )

            if best is None or result.score > best.score:
                best = result
                best_forest = forest

        if best is not None:
            logger.info(f"Best params: {best.params} (test R2={best.test_metrics.r2:.4f})")

        return TuningOutcome(
            best_forest=best_forest,
            best_params=best.params if best is not None else None,
            best_score=best.score if best is not None else -np.inf,
            results=rank_results(results),
            cancelled=cancelled,
        )


def results_frame(results: list[TuningResult]) -> pd.DataFrame:
    rows = []
    for rank, result in enumerate(rank_results(results), start=1):
        row = {"rank": rank}
        row.update(result.params.to_dict())
        row.update(
            {
                "train_r2": result.train_metrics.r2,
                "test_r2": result.test_metrics.r2,
                "test_rmse": result.test_metrics.rmse,
                "test_mae": result.test_metrics.mae,
                "score": result.score,
            }
        )
        rows.append(row)
    return pd.DataFrame(rows)
