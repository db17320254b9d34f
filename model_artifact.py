from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import joblib
import numpy as np
from loguru import logger

from data_structures.dataset import as_feature_matrix, as_target_vector
from errors import InvalidInputError, TrainingCancelledError
from forest_trainer import RandomForest
from importance import rank_features
from metrics import RegressionMetrics, compute_metrics
from standardizer import FeatureStandardizer, StandardizationParams
from tuner import HyperparameterGrid, HyperparameterTuner, TuningResult

MODEL_TYPE = "random_forest"


@dataclass
class ModelArtifact:
    """Everything needed to reload a trained model and predict without retraining."""

    forest: RandomForest
    standardization: StandardizationParams
    train_metrics: RegressionMetrics
    test_metrics: RegressionMetrics
    feature_importance: list[float]
    training_samples: int
    trained_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    tuning_results: list[TuningResult] = field(default_factory=list)

    @property
    def feature_names(self) -> tuple[str, ...]:
        return self.forest.feature_names

    def predict(self, raw_features) -> float:
        """Standardize one raw feature vector with the stored params, then predict."""
        x = FeatureStandardizer.apply_row(self.standardization, raw_features)
        return self.forest.predict(x)

    def predict_batch(self, raw_X) -> np.ndarray:
        return self.forest.predict_batch(FeatureStandardizer.apply(self.standardization, raw_X))

    def top_features(self, n: int = 10) -> list[tuple[str, float]]:
        return rank_features(self.forest, top_n=n)

    def to_dict(self) -> dict:
        return {
            "model_type": MODEL_TYPE,
            "hyperparameters": self.forest.hyperparameters.to_dict(),
            "features": list(self.feature_names),
            "standardization": self.standardization.to_dict(),
            "forest": self.forest.to_dict(),
            "performance": {
                "train": self.train_metrics.to_dict(),
                "test": self.test_metrics.to_dict(),
            },
            "feature_importance": list(self.feature_importance),
            "training_samples": self.training_samples,
            "trained_at": self.trained_at,
            "tuning_results": [r.to_dict() for r in self.tuning_results],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ModelArtifact":
        if data.get("model_type") != MODEL_TYPE:
            raise InvalidInputError(f"unsupported model_type: {data.get('model_type')!r}")
        try:
            forest = RandomForest.from_dict(data["forest"])
            standardization = StandardizationParams.from_dict(data["standardization"])
            artifact = cls(
                forest=forest,
                standardization=standardization,
                train_metrics=RegressionMetrics.from_dict(data["performance"]["train"]),
                test_metrics=RegressionMetrics.from_dict(data["performance"]["test"]),
                feature_importance=[float(v) for v in data["feature_importance"]],
                training_samples=int(data["training_samples"]),
                trained_at=data["trained_at"],
                tuning_results=[TuningResult.from_dict(r) for r in data.get("tuning_results", [])],
            )
        except KeyError as e:
            raise InvalidInputError(f"model record is missing field {e}") from e
        if standardization.n_features != forest.n_features:
            raise InvalidInputError("standardization and forest disagree on feature count")
        return artifact

    def save(self, path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self.to_dict(), path)
        logger.info(f"Saved model to {path}")
        return path

    @classmethod
    def load(cls, path) -> "ModelArtifact":
        return cls.from_dict(joblib.load(Path(path)))


def chronological_split(X, y, test_fraction: float = 0.2):
    """Positional split: the first rows train, the last `test_fraction` of rows test."""
    if not (0.0 < test_fraction < 1.0):
        raise InvalidInputError("test_fraction must be in (0, 1)")
    X = as_feature_matrix(X)
    y = as_target_vector(y, X.shape[0])
    split_index = int(np.floor(X.shape[0] * (1.0 - test_fraction) + 1e-9))
    if split_index < 1 or split_index >= X.shape[0]:
        raise InvalidInputError(
            f"{X.shape[0]} rows are too few for a {test_fraction:.0%} test split"
        )
    return X[:split_index], X[split_index:], y[:split_index], y[split_index:]


def train_model(
    X,
    y,
    feature_names: list[str],
    grid: HyperparameterGrid | None = None,
    test_fraction: float = 0.2,
    n_jobs: int = 1,
    should_stop: Callable[[], bool] | None = None,
) -> ModelArtifact:
    """Split, standardize on the training rows only, tune, and package the best forest."""
    X = as_feature_matrix(X)
    y = as_target_vector(y, X.shape[0])
    if len(feature_names) != X.shape[1]:
        raise InvalidInputError(
            f"got {len(feature_names)} feature names for {X.shape[1]} features"
        )

    X_train, X_test, y_train, y_test = chronological_split(X, y, test_fraction)
    standardization = FeatureStandardizer.fit(X_train)
    X_train_std = FeatureStandardizer.apply(standardization, X_train)
    X_test_std = FeatureStandardizer.apply(standardization, X_test)
    logger.info(
        f"Training on {X_train.shape[0]} rows, testing on {X_test.shape[0]} rows, "
        f"{X.shape[1]} features"
    )

    outcome = HyperparameterTuner(grid, n_jobs=n_jobs).tune(
        X_train_std, y_train, X_test_std, y_test, feature_names, should_stop=should_stop
    )
    if outcome.best_forest is None:
        raise TrainingCancelledError("tuning was cancelled before any model was trained")

    forest = outcome.best_forest
    train_metrics = compute_metrics(y_train, forest.predict_batch(X_train_std))
    test_metrics = compute_metrics(y_test, forest.predict_batch(X_test_std))
    logger.info(
        f"Best model: train R2={train_metrics.r2:.4f}, test R2={test_metrics.r2:.4f}, "
        f"test RMSE={test_metrics.rmse:.3f}, test MAE={test_metrics.mae:.3f}"
    )

    return ModelArtifact(
        forest=forest,
        standardization=standardization,
        train_metrics=train_metrics,
        test_metrics=test_metrics,
        feature_importance=forest.feature_importance().tolist(),
        training_samples=int(X.shape[0]),
        tuning_results=outcome.results,
    )
