from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from data_structures.dataset import as_feature_matrix
from errors import InvalidInputError


@dataclass(frozen=True, eq=False)
class StandardizationParams:
    """Per-feature (mean, std) pairs fitted once on the training partition."""

    means: np.ndarray
    stds: np.ndarray

    def __post_init__(self) -> None:
        means = np.asarray(self.means, dtype=np.float64)
        stds = np.asarray(self.stds, dtype=np.float64)
        if means.ndim != 1 or means.shape != stds.shape:
            raise InvalidInputError("means and stds must be 1D arrays of equal length")
        if not (np.all(np.isfinite(means)) and np.all(np.isfinite(stds))):
            raise InvalidInputError("standardization parameters must be finite")
        if np.any(stds <= 0.0):
            raise InvalidInputError("standard deviations must be positive")
        means.flags.writeable = False
        stds.flags.writeable = False
        object.__setattr__(self, "means", means)
        object.__setattr__(self, "stds", stds)

    @property
    def n_features(self) -> int:
        return int(self.means.size)

    def to_dict(self) -> dict:
        return {"means": self.means.tolist(), "stds": self.stds.tolist()}

    @classmethod
    def from_dict(cls, data: dict) -> "StandardizationParams":
        try:
            return cls(means=data["means"], stds=data["stds"])
        except KeyError as e:
            raise InvalidInputError(f"standardization record is missing field {e}") from e


class FeatureStandardizer:
    """Zero-mean/unit-variance transform with stored parameters.

    Population standard deviation is used; a constant column gets std 1 so it
    maps to all zeros instead of dividing by zero. Non-finite input fails hard
    rather than being skipped, since dropping values would misalign columns.
    """

    @staticmethod
    def fit(X) -> StandardizationParams:
        X = as_feature_matrix(X)
        # Decide constancy exactly; rounding in the mean leaves a tiny non-zero std.
        constant = np.all(X == X[0], axis=0)
        means = np.where(constant, X[0], X.mean(axis=0))
        stds = X.std(axis=0)
        stds = np.where(constant | (stds <= 0.0), 1.0, stds)
        return StandardizationParams(means=means, stds=stds)

    @staticmethod
    def apply(params: StandardizationParams, X) -> np.ndarray:
        X = as_feature_matrix(X)
        if X.shape[1] != params.n_features:
            raise InvalidInputError(
                f"expected {params.n_features} features, got {X.shape[1]}"
            )
        return (X - params.means) / params.stds

    @staticmethod
    def apply_row(params: StandardizationParams, x) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        if x.ndim != 1:
            raise InvalidInputError("feature vector must be 1D")
        return FeatureStandardizer.apply(params, x.reshape(1, -1))[0]
