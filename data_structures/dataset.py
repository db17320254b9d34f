from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from errors import InvalidInputError


def as_feature_matrix(X, name: str = "X") -> np.ndarray:
    try:
        X = np.asarray(X, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} must be a rectangular numeric matrix") from e
    if X.ndim != 2:
        raise InvalidInputError(f"{name} must be 2D, got {X.ndim}D")
    if X.shape[0] == 0:
        raise InvalidInputError(f"{name} must contain at least one row")
    if X.shape[1] == 0:
        raise InvalidInputError(f"{name} must contain at least one feature")
    if not np.all(np.isfinite(X)):
        bad_rows = np.where(~np.all(np.isfinite(X), axis=1))[0]
        raise InvalidInputError(
            f"{name} contains non-finite values in rows {bad_rows[:10].tolist()}"
        )
    return X


def as_target_vector(y, n_rows: int, name: str = "y") -> np.ndarray:
    try:
        y = np.asarray(y, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} must be a numeric vector") from e
    if y.ndim != 1:
        raise InvalidInputError(f"{name} must be 1D, got {y.ndim}D")
    if y.shape[0] != n_rows:
        raise InvalidInputError(
            f"{name} has {y.shape[0]} values but the feature matrix has {n_rows} rows"
        )
    if not np.all(np.isfinite(y)):
        raise InvalidInputError(f"{name} contains non-finite values")
    return y


def _readonly(a: np.ndarray) -> np.ndarray:
    a = np.array(a, dtype=np.float64, copy=True)
    a.flags.writeable = False
    return a


@dataclass(frozen=True, eq=False)
class Dataset:
    """Validated, read-only (X, y) pair. Every row has the same feature count."""

    X: np.ndarray
    y: np.ndarray

    def __post_init__(self) -> None:
        X = as_feature_matrix(self.X)
        y = as_target_vector(self.y, X.shape[0])
        object.__setattr__(self, "X", _readonly(X))
        object.__setattr__(self, "y", _readonly(y))

    @property
    def n_samples(self) -> int:
        return int(self.X.shape[0])

    @property
    def n_features(self) -> int:
        return int(self.X.shape[1])

    def __len__(self) -> int:
        return self.n_samples

    def take(self, rows: np.ndarray) -> "Dataset":
        rows = np.asarray(rows, dtype=np.int64)
        return Dataset(self.X[rows], self.y[rows])
